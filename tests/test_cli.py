"""End-to-end tests for the click CLI, using real subprocesses."""

import json
import sys
import textwrap

import pytest
from click.testing import CliRunner

from matrixci.cli import cli


def _write_workflow(path, *, fail_on=None, branches=None, fail_fast=False):
    """Workflow whose steps run the current interpreter, so it works on any host."""
    run_tests = (
        "import os, sys; p = os.environ['MATRIX_PLATFORM']; "
        f"print('testing', p); sys.exit(1 if p == {str(fail_on)!r} else 0)"
    )
    path.write_text(textwrap.dedent(f"""
        from matrixci.conditions import family
        from matrixci.dsl import plan, platform, sh

        EXE = {sys.executable!r}

        def py(code):
            return '"' + EXE + '" -c "' + code + '"'

        def workflow():
            return plan(
                "unit_tests",
                sh("install-deps", py("print('installing')"), when=family("linux")),
                sh("run-tests", py({run_tests!r})),
                matrix=[
                    platform("ubuntu-20.04"),
                    platform("macos-latest"),
                    platform("windows-latest"),
                ],
                branches={branches!r},
                fail_fast={fail_fast!r},
            )
    """))
    return path


@pytest.fixture
def runner():
    return CliRunner()


class TestRunCommand:
    def test_all_variants_pass(self, runner, tmp_path):
        wf = _write_workflow(tmp_path / "pr_workflow.py")
        result = runner.invoke(cli, ["run", "--workflow", str(wf), "--workdir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "RUN STARTED" in result.output
        assert "OVERALL: PASSED (3 passed, 0 failed, 0 cancelled)" in result.output

    def test_failure_exits_non_zero(self, runner, tmp_path):
        wf = _write_workflow(tmp_path / "pr_workflow.py", fail_on="windows-latest")
        result = runner.invoke(cli, ["run", "--workflow", str(wf), "--workdir", str(tmp_path)])

        assert result.exit_code == 1
        assert "windows-latest: FAILED" in result.output
        assert "first failure: run-tests" in result.output
        assert "testing windows-latest" in result.output
        assert "ubuntu-20.04: PASSED" in result.output

    def test_json_report(self, runner, tmp_path):
        wf = _write_workflow(tmp_path / "pr_workflow.py", fail_on="macos-latest")
        report = tmp_path / "report.json"
        result = runner.invoke(
            cli,
            ["--quiet", "run", "--workflow", str(wf), "--workdir", str(tmp_path), "--json-report", str(report)],
        )

        assert result.exit_code == 1
        data = json.loads(report.read_text())
        statuses = {v["platform"]: v["status"] for v in data["variants"]}
        assert statuses == {"macos-latest": "failed", "ubuntu-20.04": "passed", "windows-latest": "passed"}

    def test_branch_not_targeted_is_skipped(self, runner, tmp_path):
        wf = _write_workflow(tmp_path / "pr_workflow.py", branches=["develop"])
        result = runner.invoke(cli, ["run", "--workflow", str(wf), "--branch", "main"])

        assert result.exit_code == 0
        assert "does not trigger on branch 'main'" in result.output
        assert "RUN STARTED" not in result.output

    def test_only_subset(self, runner, tmp_path):
        wf = _write_workflow(tmp_path / "pr_workflow.py", fail_on="windows-latest")
        result = runner.invoke(
            cli,
            ["run", "--workflow", str(wf), "--workdir", str(tmp_path), "--only", "ubuntu-20.04", "--only", "macos-latest"],
        )

        assert result.exit_code == 0, result.output
        assert "windows-latest" not in result.output

    def test_unknown_platform_in_only(self, runner, tmp_path):
        wf = _write_workflow(tmp_path / "pr_workflow.py")
        result = runner.invoke(cli, ["run", "--workflow", str(wf), "--only", "solaris"])
        assert result.exit_code == 2

    def test_fail_fast_flag_with_single_worker(self, runner, tmp_path):
        wf = _write_workflow(tmp_path / "pr_workflow.py", fail_on="ubuntu-20.04")
        result = runner.invoke(
            cli,
            ["run", "--workflow", str(wf), "--workdir", str(tmp_path), "--fail-fast", "--workers", "1"],
        )

        assert result.exit_code == 1
        assert "macos-latest: CANCELLED" in result.output
        assert "windows-latest: CANCELLED" in result.output

    def test_missing_workflow(self, runner, tmp_path):
        result = runner.invoke(cli, ["run", "--workflow", str(tmp_path / "missing.py")])
        assert result.exit_code == 2
        assert "Workflow file not found" in result.output

    def test_workflow_with_invalid_plan(self, runner, tmp_path):
        wf = tmp_path / "bad_workflow.py"
        wf.write_text(textwrap.dedent("""
            from matrixci.dsl import plan, sh

            def workflow():
                return plan("empty", sh("t", "true"), matrix=[])
        """))
        result = runner.invoke(cli, ["run", "--workflow", str(wf)])

        assert result.exit_code == 2
        assert "empty matrix" in result.output


def test_plan_command(runner, tmp_path):
    wf = _write_workflow(tmp_path / "pr_workflow.py", branches=["develop"])
    result = runner.invoke(cli, ["plan", "--workflow", str(wf)])

    assert result.exit_code == 0, result.output
    assert "PLAN: unit_tests" in result.output
    assert "Branches: develop" in result.output
    assert "⏭ install-deps (skipped: family == 'linux')" in result.output


class TestWorkflowDiscovery:
    def test_single_workflow_in_cwd_is_used(self, runner, tmp_path, monkeypatch):
        _write_workflow(tmp_path / "pr_workflow.py", branches=["develop"])
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["plan"])

        assert result.exit_code == 0, result.output
        assert "PLAN: unit_tests" in result.output

    def test_no_workflow_in_cwd(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["plan"])

        assert result.exit_code == 2
        assert "No workflow file found" in result.output

    def test_ambiguous_workflows(self, runner, tmp_path, monkeypatch):
        _write_workflow(tmp_path / "a_workflow.py")
        _write_workflow(tmp_path / "b_workflow.py")
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["plan"])

        assert result.exit_code == 2
        assert "Multiple workflow files found" in result.output
        assert "a_workflow.py" in result.output
