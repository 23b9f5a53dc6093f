"""Console output formatting utilities for matrixci."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from matrixci.model import JobPlan, JobResult, StepRecord, VariantOutcome


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, suppress per-step progress lines
        """
        self.debug = debug
        self.quiet = quiet
        # variants report from worker threads
        self._lock = threading.Lock()

    def _emit(self, text: str, *, err: bool = False) -> None:
        with self._lock:
            print(text, file=sys.stderr if err else sys.stdout, flush=True)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}\n" + "-" * len(title))

    def print_run_started(
        self,
        plan: str,
        workflow: str,
        platforms: list[str],
        fail_fast: bool,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED\n"
            f"Plan: {plan}\n"
            f"Workflow: {workflow}\n"
            f"Platforms: {', '.join(platforms)}\n"
            f"Fail fast: {'yes' if fail_fast else 'no'}\n"
        )

    def print_plan(self, plan: "JobPlan") -> None:
        """Print which steps apply to which platform, without running anything."""
        self.print_header(f"PLAN: {plan.name}")
        if plan.branches:
            self._emit(f"Branches: {', '.join(plan.branches)}")
        self._emit(f"Fail fast: {'yes' if plan.fail_fast else 'no'}")
        for p in sorted(plan.matrix, key=lambda p: p.id):
            attrs = ", ".join(f"{k}={v}" for k, v in sorted(p.attributes.items()))
            self._emit(f"\n  {p.id}" + (f" ({attrs})" if attrs else ""))
            for s in plan.steps:
                if s.applies_to(p):
                    self._emit(f"    ✓ {s.name}")
                else:
                    self._emit(f"    ⏭ {s.name} (skipped: {s.condition.describe()})")

    def print_variant_start(self, platform: str) -> None:
        if not self.quiet:
            self._emit(f"[{platform}] VARIANT STARTED")

    def print_step(self, platform: str, name: str) -> None:
        """Print step start message."""
        if not self.quiet:
            self._emit(f"[{platform}] ▶ {name}")

    def print_step_skipped(self, platform: str, name: str, reason: str) -> None:
        if not self.quiet:
            self._emit(f"[{platform}] ⏭ {name} ({reason})")

    def print_step_result(self, platform: str, record: "StepRecord") -> None:
        if self.quiet:
            return
        if record.status.value == "passed":
            self._emit(f"[{platform}] ✓ {record.name} ({record.duration:.1f}s)")
            return
        line = f"[{platform}] ✗ {record.name}"
        if record.exit_code is not None:
            line += f" (exit={record.exit_code})"
        if record.reason:
            line += f": {record.reason}"
        self._emit(line)
        if self.debug and record.output:
            self._emit(record.output.rstrip())

    def print_variant_finished(self, outcome: "VariantOutcome") -> None:
        if self.quiet:
            return
        duration = outcome.duration
        suffix = f" ({duration:.1f}s)" if duration is not None else ""
        self._emit(f"[{outcome.platform.id}] STATUS: {outcome.status.value}{suffix}")

    def print_results(self, result: "JobResult") -> None:
        """Print final results summary."""
        from matrixci.report import render_report

        self._emit("\n" + "=" * 40 + "\nRESULTS\n" + "=" * 40)
        self._emit(render_report(result))

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {detail}" for detail in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit("\n".join(lines), err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback

            with self._lock:
                traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
