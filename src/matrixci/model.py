# model.py
from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .conditions import ALWAYS, Condition
from .errors import InvalidPlan


class Status(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (Status.PASSED, Status.FAILED, Status.CANCELLED)


def _frozen_mapping(values: Optional[Mapping[str, Any]]) -> Mapping[str, str]:
    # force values to str for stable env export + comparisons
    return MappingProxyType({str(k): str(v) for k, v in (values or {}).items()})


# ---------------------------------------------------------------------
# Matrix + steps
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class PlatformDescriptor:
    """One execution target of the matrix, e.g. id="ubuntu-20.04", family="linux"."""
    id: str
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidPlan("platform id must be a non-empty string")
        # frozen dataclass: bypass the restriction once, at construction
        object.__setattr__(self, "attributes", _frozen_mapping(self.attributes))

    def __hash__(self) -> int:
        return hash((self.id, tuple(sorted(self.attributes.items()))))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(key, default)

    @property
    def family(self) -> Optional[str]:
        return self.attributes.get("family")


@dataclass(frozen=True)
class Step:
    """
    A single unit of work inside a job plan.

    `commands` run one after another through the action runner; `builtin` is an
    in-process action (see step_workflows). A step with neither is a no-op that
    always passes.
    """
    name: str
    commands: Tuple[str, ...] = ()
    condition: Condition = ALWAYS
    builtin: Optional[Callable[..., Any]] = field(default=None, compare=False)
    cwd: str | None = None
    env: Mapping[str, str] = field(default_factory=dict, compare=False)
    timeout: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.commands, str):
            object.__setattr__(self, "commands", (self.commands,))
        else:
            object.__setattr__(self, "commands", tuple(self.commands))
        object.__setattr__(self, "env", _frozen_mapping(self.env))

    def __hash__(self) -> int:
        return hash((self.name, self.commands, self.condition, self.cwd, self.timeout))

    def applies_to(self, platform: PlatformDescriptor) -> bool:
        return bool(self.condition(platform))

    @property
    def is_empty(self) -> bool:
        return not self.commands and self.builtin is None


@dataclass(frozen=True)
class JobPlan:
    """
    Ordered steps + the matrix they are run against.

    Validated eagerly: construction raises InvalidPlan rather than failing
    half-way through a run.
    """
    name: str
    steps: Tuple[Step, ...]
    matrix: Tuple[PlatformDescriptor, ...]
    branches: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict, compare=False)
    fail_fast: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "matrix", tuple(self.matrix))
        object.__setattr__(self, "branches", tuple(self.branches))
        object.__setattr__(self, "env", _frozen_mapping(self.env))

        if not self.matrix:
            raise InvalidPlan(f"plan {self.name!r} has an empty matrix")

        ids = [p.id for p in self.matrix]
        if len(set(ids)) != len(ids):
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            raise InvalidPlan(f"plan {self.name!r} has duplicate platform ids: {dupes}")

        if not self.steps:
            raise InvalidPlan(f"plan {self.name!r} must have at least one step")

    def __hash__(self) -> int:
        return hash((self.name, self.steps, self.matrix, self.branches, self.fail_fast))

    def platform(self, platform_id: str) -> PlatformDescriptor:
        for p in self.matrix:
            if p.id == platform_id:
                return p
        raise KeyError(f"Unknown platform '{platform_id}'. Known platforms: {sorted(self.platform_ids)}")

    @property
    def platform_ids(self) -> List[str]:
        return [p.id for p in self.matrix]

    def triggers_on(self, branch: str | None) -> bool:
        """No branch filter (or no branch given) means the plan always triggers."""
        if not self.branches or branch is None:
            return True
        return branch in self.branches

    def restricted_to(self, platform_ids: List[str]) -> "JobPlan":
        """New plan with only the given platforms (still validated)."""
        for pid in platform_ids:
            self.platform(pid)
        wanted = set(platform_ids)
        keep = [p for p in self.matrix if p.id in wanted]
        return JobPlan(
            name=self.name,
            steps=self.steps,
            matrix=tuple(keep),
            branches=self.branches,
            env=self.env,
            fail_fast=self.fail_fast,
        )


# ---------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class StepRecord:
    name: str
    status: Status
    exit_code: Optional[int] = None
    output: str = ""
    reason: str | None = None
    duration: float = 0.0

    @property
    def executed(self) -> bool:
        return self.status in (Status.PASSED, Status.FAILED)


@dataclass
class VariantOutcome:
    """
    Outcome of one platform variant. Owned by its executor while running;
    once a terminal status is set it no longer accepts records.
    """
    platform: PlatformDescriptor
    status: Status = Status.PENDING
    steps: List[StepRecord] = field(default_factory=list)
    started_at: float | None = None
    finished_at: float | None = None

    def start(self) -> None:
        if self.status is not Status.PENDING:
            raise RuntimeError(f"variant '{self.platform.id}' already {self.status.value}")
        self.status = Status.RUNNING
        self.started_at = time.time()

    def record(self, rec: StepRecord) -> None:
        if self.status.terminal:
            raise RuntimeError(f"variant '{self.platform.id}' is {self.status.value}; outcome is sealed")
        self.steps.append(rec)

    def finish(self, status: Status) -> None:
        if not status.terminal:
            raise ValueError(f"not a terminal status: {status.value}")
        if self.status.terminal:
            raise RuntimeError(f"variant '{self.platform.id}' already {self.status.value}")
        self.status = status
        self.finished_at = time.time()

    @property
    def executed_steps(self) -> List[StepRecord]:
        return [s for s in self.steps if s.executed]

    @property
    def skipped_steps(self) -> List[StepRecord]:
        return [s for s in self.steps if s.status is Status.SKIPPED]

    @property
    def failed_step(self) -> Optional[StepRecord]:
        for s in self.steps:
            if s.status is Status.FAILED:
                return s
        return None

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


@dataclass(frozen=True)
class JobResult:
    plan_name: str
    outcomes: Tuple[VariantOutcome, ...]
    fail_fast: bool = False

    def __post_init__(self) -> None:
        # report order is by platform id, independent of completion order
        object.__setattr__(
            self, "outcomes", tuple(sorted(self.outcomes, key=lambda o: o.platform.id))
        )

    @property
    def overall_status(self) -> Status:
        from .report import overall_status

        return overall_status(self.outcomes)

    @property
    def passed(self) -> bool:
        return self.overall_status is Status.PASSED

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def outcome(self, platform_id: str) -> VariantOutcome:
        for o in self.outcomes:
            if o.platform.id == platform_id:
                return o
        raise KeyError(platform_id)

    def statuses(self) -> Dict[str, Status]:
        return {o.platform.id: o.status for o in self.outcomes}

    def to_dict(self) -> Dict[str, Any]:
        from .report import result_to_dict

        return result_to_dict(self)
