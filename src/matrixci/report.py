# report.py
"""
Reduce per-variant outcomes into one status and a readable report.

A cancelled variant only exists because another one failed (fail-fast) or the
run was interrupted, so it never counts as a pass.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List

from .model import Status

if TYPE_CHECKING:
    from .model import JobResult, StepRecord, VariantOutcome

OUTPUT_TAIL = 4000

_MARKS = {
    Status.PASSED: "✓",
    Status.FAILED: "✗",
    Status.SKIPPED: "⏭",
    Status.CANCELLED: "⊘",
}


def overall_status(outcomes: Iterable["VariantOutcome"]) -> Status:
    statuses = [o.status for o in outcomes]
    if any(s in (Status.FAILED, Status.CANCELLED) for s in statuses):
        return Status.FAILED
    if any(not s.terminal for s in statuses):
        return Status.RUNNING
    return Status.PASSED


def summary_counts(result: "JobResult") -> Dict[str, int]:
    counts = {Status.PASSED.value: 0, Status.FAILED.value: 0, Status.CANCELLED.value: 0}
    for o in result.outcomes:
        counts[o.status.value] = counts.get(o.status.value, 0) + 1
    return counts


def _step_line(rec: "StepRecord") -> str:
    line = f"    {_MARKS.get(rec.status, '?')} {rec.name}: {rec.status.value}"
    if rec.exit_code is not None and rec.status is Status.FAILED:
        line += f" (exit={rec.exit_code})"
    if rec.reason:
        line += f" [{rec.reason}]"
    return line


def _indent(text: str, prefix: str = "      | ") -> str:
    return "\n".join(prefix + line for line in text.rstrip().splitlines())


def render_report(result: "JobResult") -> str:
    lines: List[str] = [f"Plan: {result.plan_name}"]

    for outcome in result.outcomes:
        lines.append(f"\n  {outcome.platform.id}: {outcome.status.value.upper()}")
        for rec in outcome.steps:
            lines.append(_step_line(rec))

        failed = outcome.failed_step
        if failed is not None:
            lines.append(f"    first failure: {failed.name}")
            if failed.output:
                tail = failed.output[-OUTPUT_TAIL:]
                if len(failed.output) > OUTPUT_TAIL:
                    lines.append("      | ...")
                lines.append(_indent(tail))

    counts = summary_counts(result)
    lines.append("")
    lines.append(
        f"OVERALL: {result.overall_status.value.upper()} "
        f"({counts['passed']} passed, {counts['failed']} failed, {counts['cancelled']} cancelled)"
    )
    return "\n".join(lines)


def result_to_dict(result: "JobResult") -> Dict[str, Any]:
    """Plain dict for --json-report."""
    variants = []
    for o in result.outcomes:
        failed = o.failed_step
        variants.append(
            {
                "platform": o.platform.id,
                "attributes": dict(o.platform.attributes),
                "status": o.status.value,
                "duration": o.duration,
                "failed_step": failed.name if failed else None,
                "steps": [
                    {
                        "name": s.name,
                        "status": s.status.value,
                        "exit_code": s.exit_code,
                        "reason": s.reason,
                        "duration": round(s.duration, 3),
                        "output": s.output[-OUTPUT_TAIL:],
                    }
                    for s in o.steps
                ],
            }
        )
    return {
        "plan": result.plan_name,
        "status": result.overall_status.value,
        "fail_fast": result.fail_fast,
        "exit_code": result.exit_code,
        "variants": variants,
    }
