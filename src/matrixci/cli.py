# cli.py
from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from matrixci.errors import InvalidPlan, WorkflowError
from matrixci.runner import MatrixScheduler, load_workflow
from matrixci.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "matrixci_workflow.py"

EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def find_workflow_files(root: Path = Path(".")) -> list[Path]:
    """`matrixci_workflow.py` if present, else every `*_workflow.py` in root."""
    default = root / DEFAULT_WORKFLOW
    if default.exists():
        return [default]
    return sorted(root.glob("*_workflow.py"))


def discover_workflow(workflow_arg: str | None) -> Path:
    """Resolve the workflow file to load, exiting with a usage error if ambiguous."""
    console = get_console()
    usage = "matrixci run --workflow my_workflow.py"

    if workflow_arg:
        path = Path(workflow_arg)
        if not path.exists() and path.suffix != ".py":
            path = path.with_name(path.name + ".py")
        if path.exists():
            return path
        console.print_error(
            "Workflow file not found",
            f"Could not find workflow file: {workflow_arg}",
            suggestion=f"Pass an existing file:\n  {usage}",
        )
        sys.exit(EXIT_USAGE)

    candidates = find_workflow_files()
    if len(candidates) == 1:
        return candidates[0]

    if candidates:
        console.print_error(
            "Multiple workflow files found",
            "Pick one of:",
            details=[str(c) for c in candidates],
            suggestion=usage,
        )
    else:
        console.print_error(
            "No workflow file found",
            f"Expected {DEFAULT_WORKFLOW} or a *_workflow.py file in the current directory.",
            suggestion=usage,
        )
    sys.exit(EXIT_USAGE)


def _load_plan(workflow: str | None):
    console = get_console()
    workflow_path = discover_workflow(workflow)
    try:
        return workflow_path, load_workflow(workflow_path)
    except (WorkflowError, InvalidPlan) as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        sys.exit(EXIT_USAGE)
    except Exception as e:
        # user workflow code raised
        console.print_error("Failed to load workflow", f"Error while running {workflow_path}")
        console.print_exception(e)
        sys.exit(EXIT_USAGE)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    envvar="MATRIXCI_DEBUG",
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--quiet", is_flag=True, default=False, help="Only print the final report")
@click.pass_context
def cli(ctx, debug, quiet):
    """matrixci: run one job across a matrix of platforms."""
    console = Console(debug=debug, quiet=quiet)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option(
    "--workflow",
    default=None,
    envvar="MATRIXCI_WORKFLOW",
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
@click.option(
    "--workdir",
    default=".",
    envvar="MATRIXCI_WORKDIR",
    show_default=True,
    type=click.Path(file_okay=False),
    help="Checked-out working tree the steps run in",
)
@click.option("--workers", default=None, type=click.IntRange(min=1), envvar="MATRIXCI_WORKERS", help="Max variants running at once (default: whole matrix)")
@click.option("--timeout", default=None, type=click.FloatRange(min=0, min_open=True), envvar="MATRIXCI_TIMEOUT", help="Default per-command timeout in seconds")
@click.option("--fail-fast/--no-fail-fast", default=None, help="Cancel remaining variants after the first failure (default: plan setting)")
@click.option("--branch", default=None, envvar="MATRIXCI_BRANCH", help="Target branch; the run is skipped if the plan does not trigger on it")
@click.option("--only", "only", multiple=True, help="Run only these platform ids (repeatable)")
@click.option("--json-report", default=None, type=click.Path(dir_okay=False), help="Also write the result as JSON to this file")
@click.pass_context
def run(ctx, workflow, workdir, workers, timeout, fail_fast, branch, only, json_report):
    """Run a matrixci workflow."""
    console = get_console()

    workflow_path, plan = _load_plan(workflow)

    if not plan.triggers_on(branch):
        console.print_info(
            f"Plan '{plan.name}' does not trigger on branch '{branch}' "
            f"(branches: {', '.join(plan.branches)}); nothing to do."
        )
        return

    if only:
        try:
            plan = plan.restricted_to(list(only))
        except KeyError as e:
            console.print_error("Unknown platform", str(e.args[0]))
            sys.exit(EXIT_USAGE)

    effective_fail_fast = plan.fail_fast if fail_fast is None else fail_fast
    console.print_run_started(
        plan=plan.name,
        workflow=workflow_path.name,
        platforms=plan.platform_ids,
        fail_fast=effective_fail_fast,
    )

    scheduler = MatrixScheduler(
        workdir=workdir,
        max_workers=workers,
        timeout=timeout,
        console=console,
    )

    try:
        result = scheduler.run(plan, fail_fast=effective_fail_fast)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_results(result)

    if json_report:
        Path(json_report).write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        console.print_debug(f"wrote JSON report to {json_report}")

    sys.exit(result.exit_code)


@cli.command("plan")
@click.option(
    "--workflow",
    default=None,
    envvar="MATRIXCI_WORKFLOW",
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
@click.pass_context
def show_plan(ctx, workflow):
    """Show which steps apply to which platform, without running anything."""
    _workflow_path, plan = _load_plan(workflow)
    get_console().print_plan(plan)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
