# runner.py
from __future__ import annotations

import runpy
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Dict, List, Optional

from .actions import RunnerFactory, select_runner
from .errors import WorkflowError
from .executor import VariantExecutor, cancelled_outcome
from .model import JobPlan, JobResult, PlatformDescriptor, Status, StepRecord, VariantOutcome
from .ui.console import Console, get_console


# ----------------------------------------------------------------------
# Workflow loading (local file/module)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> JobPlan:
    """
    Load a job plan from a python file path.

    The file must define either:
      - workflow() -> JobPlan
      - PLAN = JobPlan(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise WorkflowError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise WorkflowError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"matrixci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    plan = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        plan = globals_dict["workflow"]()
    elif "PLAN" in globals_dict:
        plan = globals_dict["PLAN"]

    if not isinstance(plan, JobPlan):
        raise WorkflowError(
            f"{wf_path.name} must return/define a JobPlan. "
            "Define workflow() -> JobPlan or PLAN = plan(...)."
        )

    return plan


# ----------------------------------------------------------------------
# Matrix scheduler
# ----------------------------------------------------------------------

class MatrixScheduler:
    """
    Fans a JobPlan out over its matrix, one VariantExecutor per platform.

    - no fail_fast: every variant runs to Passed/Failed
    - fail_fast: the first Failed variant cancels the rest; queued variants are
      never started, running ones stop before their next step
    Always returns one outcome per platform.
    """

    def __init__(
        self,
        *,
        workdir: str | Path = ".",
        runner_factory: Optional[RunnerFactory] = None,
        max_workers: int | None = None,
        timeout: float | None = None,
        console: Optional[Console] = None,
    ):
        self.workdir = Path(workdir).resolve()
        self.runner_factory = runner_factory or (lambda p: select_runner(p, self.workdir))
        self.max_workers = max_workers
        self.timeout = timeout
        self.console = console or get_console()
        self._cancel = threading.Event()

    @property
    def cancel_requested(self) -> threading.Event:
        return self._cancel

    def cancel(self) -> None:
        """Request cooperative cancellation of the current run."""
        self._cancel.set()

    def _executor_for(self, plan: JobPlan, platform: PlatformDescriptor) -> VariantExecutor:
        return VariantExecutor(
            plan,
            platform,
            self.runner_factory(platform),
            workdir=self.workdir,
            cancel_event=self._cancel,
            timeout=self.timeout,
            console=self.console,
        )

    def _run_variant(self, plan: JobPlan, platform: PlatformDescriptor) -> VariantOutcome:
        if self._cancel.is_set():
            # dequeued after cancellation: never instantiate an executor
            return cancelled_outcome(plan, platform)
        return self._executor_for(plan, platform).run()

    def run(self, plan: JobPlan, fail_fast: bool | None = None) -> JobResult:
        if fail_fast is None:
            fail_fast = plan.fail_fast
        self._cancel.clear()

        pending: List[PlatformDescriptor] = list(plan.matrix)
        outcomes: Dict[str, VariantOutcome] = {}
        in_flight: Dict[Future, PlatformDescriptor] = {}
        interrupted: KeyboardInterrupt | None = None

        max_workers = self.max_workers or len(pending)
        max_workers = max(1, min(max_workers, len(pending)))

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="variant") as pool:
            while pending or in_flight:
                # only as many submissions as workers, the rest stay queued here
                while pending and len(in_flight) < max_workers and not self._cancel.is_set():
                    platform = pending.pop(0)
                    in_flight[pool.submit(self._run_variant, plan, platform)] = platform

                if self._cancel.is_set():
                    for platform in pending:
                        outcomes[platform.id] = cancelled_outcome(plan, platform)
                    pending = []

                if not in_flight:
                    break

                try:
                    done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                except KeyboardInterrupt as e:
                    # never abandon a started action: cancel, then keep draining
                    interrupted = e
                    self.cancel()
                    continue

                for fut in done:
                    platform = in_flight.pop(fut)
                    outcome = self._collect(plan, platform, fut)
                    outcomes[platform.id] = outcome
                    if outcome.status is Status.FAILED and fail_fast and not self._cancel.is_set():
                        self.console.print_debug(
                            f"fail-fast: '{platform.id}' failed, cancelling remaining variants"
                        )
                        self.cancel()

        if interrupted is not None:
            raise interrupted

        return JobResult(plan_name=plan.name, outcomes=tuple(outcomes.values()), fail_fast=fail_fast)

    def _collect(self, plan: JobPlan, platform: PlatformDescriptor, fut: Future) -> VariantOutcome:
        try:
            return fut.result()
        except Exception as e:
            # executor bug, keep the one-outcome-per-platform guarantee
            self.console.print_exception(e)
            outcome = VariantOutcome(platform=platform)
            outcome.record(
                StepRecord(
                    name=plan.steps[0].name,
                    status=Status.FAILED,
                    output=f"{type(e).__name__}: {e}",
                    reason=f"internal error: {e}",
                )
            )
            for step in plan.steps[1:]:
                outcome.record(StepRecord(name=step.name, status=Status.SKIPPED, reason="earlier step failed"))
            outcome.finish(Status.FAILED)
            return outcome


def run_matrix(
    plan: JobPlan,
    *,
    fail_fast: bool | None = None,
    workdir: str | Path = ".",
    runner_factory: Optional[RunnerFactory] = None,
    max_workers: int | None = None,
    timeout: float | None = None,
    console: Optional[Console] = None,
) -> JobResult:
    scheduler = MatrixScheduler(
        workdir=workdir,
        runner_factory=runner_factory,
        max_workers=max_workers,
        timeout=timeout,
        console=console,
    )
    return scheduler.run(plan, fail_fast=fail_fast)
