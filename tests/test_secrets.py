import json

import pytest

from trunkci import dsl
from trunkci.errors import SecretMissing
from trunkci.secrets import REDACTED, SecretStore, redact, resolve


def test_from_env_strips_prefix():
    store = SecretStore.from_env(
        environ={"TRUNKCI_SECRET_LITCHI_USERNAME": "pilot", "HOME": "/root", "TRUNKCI_SECRET_": "x"},
    )
    assert dict(store) == {"LITCHI_USERNAME": "pilot"}


def test_from_file_and_merge(tmp_path):
    path = tmp_path / "secrets.json"
    path.write_text(json.dumps({"A": "from-file", "B": "b"}))
    merged = SecretStore({"A": "from-env"}).merged(SecretStore.from_file(path))
    assert merged["A"] == "from-file"
    assert merged["B"] == "b"


def test_from_file_rejects_non_strings(tmp_path):
    path = tmp_path / "secrets.json"
    path.write_text(json.dumps({"A": 1}))
    with pytest.raises(ValueError):
        SecretStore.from_file(path)


def test_repr_hides_values():
    store = SecretStore({"LITCHI_PASSWORD": "hunter2"})
    assert "hunter2" not in repr(store)
    assert "LITCHI_PASSWORD" in repr(store)


def test_resolve_binds_only_declared_secrets():
    step = dsl.sh("Run tests", "cargo test", env={"USER_VAR": dsl.secret("LITCHI_USERNAME"), "PLAIN": "1"})
    store = SecretStore({"LITCHI_USERNAME": "pilot", "LITCHI_PASSWORD": "hunter2"})
    assert resolve(step, store) == {"USER_VAR": "pilot"}


def test_resolve_reports_every_missing_name():
    step = dsl.sh(
        "Run tests",
        "cargo test",
        env={"U": dsl.secret("LITCHI_USERNAME"), "P": dsl.secret("LITCHI_PASSWORD")},
    )
    with pytest.raises(SecretMissing) as exc:
        resolve(step, SecretStore({"LITCHI_USERNAME": "pilot"}), job="build")
    assert exc.value.kind == "secret_missing"
    assert exc.value.details["missing"] == ["LITCHI_PASSWORD"]
    assert "pilot" not in str(exc.value)


def test_redact_masks_longest_first():
    text = "user=pilot pass=pilot123"
    assert redact(text, ["pilot", "pilot123"]) == f"user={REDACTED} pass={REDACTED}"
    assert redact("nothing here", [""]) == "nothing here"


def test_secret_ref_renders_as_reference():
    assert str(dsl.secret("LITCHI_PASSWORD")) == "${{ secrets.LITCHI_PASSWORD }}"
