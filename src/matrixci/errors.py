# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


class InvalidPlan(ValueError):
    """Structural defect in a JobPlan (empty matrix, duplicate platform ids, ...)."""


class WorkflowError(Exception):
    """A workflow file could not be loaded into a JobPlan."""


# ----------------------------------------------------------------------
# Action errors
# ----------------------------------------------------------------------

@dataclass(eq=False)
class ActionFailure(Exception):
    """
    Structured step failure, enough context for:
      - the per-variant step record
      - clean CLI output without a traceback
    """
    step: str
    message: str
    command: str | None = None
    exit_code: Optional[int] = None
    output: str = ""
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"step '{self.step}' failed: {self.message}"]
        if self.command:
            lines.append(f"command={self.command}")
        if self.exit_code is not None:
            lines.append(f"exit={self.exit_code}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass(eq=False)
class ActionTimeout(ActionFailure):
    timeout: float | None = None


class Cancelled(Exception):
    """Raised between steps once fail-fast cancellation has been requested."""

    def __init__(self, platform: str):
        super().__init__(f"variant '{platform}' cancelled")
        self.platform = platform
