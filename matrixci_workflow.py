# matrixci_workflow.py
# Pull request unit tests: run the Rust test suite on Linux, macOS and Windows.
from __future__ import annotations

from matrixci.dsl import plan, platform
from matrixci.step_workflows.checkout import checkout
from matrixci.step_workflows.deps import install_packages
from matrixci.step_workflows.test import test_step
from matrixci.step_workflows.toolchain import rust_toolchain


def workflow():
    return plan(
        "unit_tests",
        checkout(),
        # rustup itself comes from the host image
        rust_toolchain("check Rust toolchain"),
        # native libraries for the webview build, only needed on Linux
        install_packages(
            "install dependencies (ubuntu only)",
            [
                "libgtk-3-dev",
                "libwebkit2gtk-4.0-dev",
                "libappindicator3-dev",
                "librsvg2-dev",
                "patchelf",
            ],
        ),
        test_step("Run Cargo Tests", framework="cargo"),
        matrix=[
            platform("ubuntu-20.04"),
            platform("macos-latest"),
            platform("windows-latest"),
        ],
        branches=["develop"],
        fail_fast=False,
    )
