# trunkci_workflow.py
# Build, test and publish the Litchi CLI on every push / pull request to master.
from __future__ import annotations

from trunkci import dsl


def pipeline():
    return dsl.pipeline(
        "Rust",
        dsl.job(
            "build",
            dsl.checkout(),
            dsl.sh(
                "Run tests",
                "cargo test --verbose",
                # credentials for the Litchi service the tests talk to
                env={
                    "LITCHI_USERNAME": dsl.secret("LITCHI_USERNAME"),
                    "LITCHI_PASSWORD": dsl.secret("LITCHI_PASSWORD"),
                },
            ),
            dsl.sh("Release Build", "cargo build --release --verbose"),
            dsl.upload_artifact(
                "Litchi CLI",
                "target/release/litchi-cli",
                step_name="Upload CLI artifact",
                if_no_files_found="error",
            ),
            runs_on="ubuntu-latest",
        ),
        on=dsl.on(push=["master"], pull_request=["master"]),
        env={"CARGO_TERM_COLOR": "always"},
    )
