# executor.py
from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Optional

from .actions import ActionContext, ActionResult, ActionRunner, variant_env
from .errors import ActionFailure, ActionTimeout, Cancelled
from .model import JobPlan, PlatformDescriptor, Status, Step, StepRecord, VariantOutcome
from .ui.console import Console, get_console


def cancelled_outcome(plan: JobPlan, platform: PlatformDescriptor) -> VariantOutcome:
    """Outcome for a variant that was never started (fail-fast hit first)."""
    outcome = VariantOutcome(platform=platform)
    for step in plan.steps:
        outcome.record(StepRecord(name=step.name, status=Status.SKIPPED, reason="cancelled"))
    outcome.finish(Status.CANCELLED)
    return outcome


class VariantExecutor:
    """
    Runs one JobPlan against one platform.

    Pending -> Running -> Passed | Failed | Cancelled

    Cancellation is cooperative: `cancel_event` is only checked between steps,
    a started step always runs to completion.
    """

    def __init__(
        self,
        plan: JobPlan,
        platform: PlatformDescriptor,
        runner: ActionRunner,
        *,
        workdir: str | Path = ".",
        cancel_event: Optional[threading.Event] = None,
        timeout: float | None = None,
        console: Optional[Console] = None,
    ):
        self.plan = plan
        self.platform = platform
        self.runner = runner
        self.workdir = Path(workdir).resolve()
        self.cancel_event = cancel_event or threading.Event()
        self.timeout = timeout
        self.console = console or get_console()
        self.outcome = VariantOutcome(platform=platform)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def run(self) -> VariantOutcome:
        outcome = self.outcome
        outcome.start()
        self.console.print_variant_start(self.platform.id)

        steps = list(self.plan.steps)
        status = Status.PASSED

        for idx, step in enumerate(steps):
            try:
                self._check_cancelled()
            except Cancelled:
                self._skip_rest(steps[idx:], "cancelled")
                status = Status.CANCELLED
                break

            if not step.applies_to(self.platform):
                reason = f"condition false: {step.condition.describe()}"
                outcome.record(StepRecord(name=step.name, status=Status.SKIPPED, reason=reason))
                self.console.print_step_skipped(self.platform.id, step.name, reason)
                continue

            record = self._run_step(step)
            outcome.record(record)
            self.console.print_step_result(self.platform.id, record)

            if record.status is Status.FAILED:
                self._skip_rest(steps[idx + 1:], "earlier step failed")
                status = Status.FAILED
                break

        outcome.finish(status)
        self.console.print_variant_finished(outcome)
        return outcome

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise Cancelled(self.platform.id)

    def _skip_rest(self, steps: list[Step], reason: str) -> None:
        for step in steps:
            self.outcome.record(StepRecord(name=step.name, status=Status.SKIPPED, reason=reason))

    # ------------------------------------------------------------------
    # Execution primitives
    # ------------------------------------------------------------------

    def _run_step(self, step: Step) -> StepRecord:
        self.console.print_step(self.platform.id, step.name)
        started = time.monotonic()
        outputs: list[str] = []

        try:
            if step.builtin is not None:
                result = self._run_builtin(step)
                outputs.append(result.output)
                if not result.ok:
                    raise ActionFailure(
                        step=step.name,
                        message="builtin step failed",
                        exit_code=result.exit_code,
                    )

            for command in step.commands:
                result = self.runner.run(
                    command,
                    step=step.name,
                    cwd=self._step_cwd(step),
                    env=self._command_env(step),
                    timeout=self._step_timeout(step),
                )
                outputs.append(result.output)
                if not result.ok:
                    raise ActionFailure(
                        step=step.name,
                        message=f"command exited with {result.exit_code}",
                        command=command,
                        exit_code=result.exit_code,
                    )
        except ActionFailure as e:
            if e.output:
                outputs.append(e.output)
            reason = e.message
            if isinstance(e, ActionTimeout):
                reason = f"timed out after {e.timeout}s"
            elif e.details.get("hint"):
                reason = f"{e.message} ({e.details['hint']})"
            return StepRecord(
                name=step.name,
                status=Status.FAILED,
                exit_code=e.exit_code,
                output=_joined(outputs),
                reason=reason,
                duration=time.monotonic() - started,
            )
        except Exception as e:
            # a broken builtin must not take the other variants down
            outputs.append(f"{type(e).__name__}: {e}")
            return StepRecord(
                name=step.name,
                status=Status.FAILED,
                output=_joined(outputs),
                reason=f"unexpected error: {e}",
                duration=time.monotonic() - started,
            )

        return StepRecord(
            name=step.name,
            status=Status.PASSED,
            exit_code=0,
            output=_joined(outputs),
            duration=time.monotonic() - started,
        )

    def _run_builtin(self, step: Step) -> ActionResult:
        ctx = ActionContext(
            step=step.name,
            platform=self.platform,
            workdir=self.workdir,
            cwd=self._step_cwd(step),
            env=self._step_env(step),
            timeout=self._step_timeout(step),
        )
        result = step.builtin(ctx)
        if result is None:
            return ActionResult(exit_code=0)
        if isinstance(result, int):
            return ActionResult(exit_code=result)
        return result

    def _step_cwd(self, step: Step) -> Path:
        return (self.workdir / (step.cwd or ".")).resolve()

    def _step_env(self, step: Step) -> dict[str, str]:
        return variant_env(self.platform, self.plan.env, step.env)

    def _command_env(self, step: Step) -> dict[str, str]:
        if self.runner.inherits_host_env:
            return self._step_env(step)
        return variant_env(self.platform, self.plan.env, step.env, base={})

    def _step_timeout(self, step: Step) -> float | None:
        return step.timeout if step.timeout is not None else self.timeout


def _joined(outputs: list[str]) -> str:
    return "".join(o for o in outputs if o)
