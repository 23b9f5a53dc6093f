# src/matrixci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .conditions import ALWAYS, Condition, family
from .model import JobPlan, PlatformDescriptor, Step

# Platform names as used by common hosted runners -> family attribute
KNOWN_FAMILIES = {
    "ubuntu": "linux",
    "linux": "linux",
    "debian": "linux",
    "macos": "darwin",
    "darwin": "darwin",
    "windows": "windows",
}


def guess_family(platform_id: str) -> Optional[str]:
    """'ubuntu-20.04' -> 'linux', 'macos-latest' -> 'darwin', ..."""
    head = platform_id.lower().split("-", 1)[0]
    return KNOWN_FAMILIES.get(head)


# ---------------------------------------------------------------------
# Platform helpers
# ---------------------------------------------------------------------

def platform(id: str, **attributes: Any) -> PlatformDescriptor:
    """
    Create a platform descriptor. `family` is filled in from the id when it
    is a well known runner name and was not given explicitly.
    """
    attrs = {k: str(v) for k, v in attributes.items()}
    if "family" not in attrs:
        fam = guess_family(id)
        if fam:
            attrs["family"] = fam
    return PlatformDescriptor(id=id, attributes=attrs)


class Matrix:
    """
    Minimal matrix expander.

    Example:
        matrix("platform", ["ubuntu-20.04", "macos-latest", "windows-latest"]).platforms()
        matrix("python", ["3.11", "3.12"]).platforms(lambda v: platform(f"py{v}", python=v))
    """
    def __init__(self, key: str, values: Iterable[Any], **common: Any):
        self.key = key
        self.values = list(values)
        self.common = common

    def platforms(
        self, builder: Optional[Callable[[Any], PlatformDescriptor]] = None
    ) -> List[PlatformDescriptor]:
        if builder is not None:
            return [builder(v) for v in self.values]
        out = []
        for v in self.values:
            attrs = dict(self.common)
            attrs[self.key] = v
            out.append(platform(str(v), **attrs))
        return out


def matrix(key: str, values: Iterable[Any], **common: Any) -> List[PlatformDescriptor]:
    return Matrix(key, values, **common).platforms()


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    *commands: str,
    when: Condition = ALWAYS,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
    timeout: float | None = None,
) -> Step:
    """Create a shell step, one or more commands run in order."""
    return Step(
        name=name,
        commands=tuple(commands),
        condition=when,
        cwd=cwd,
        env=env or {},
        timeout=timeout,
    )


def uses(
    name: str,
    builtin: Callable[..., Any],
    *,
    when: Condition = ALWAYS,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
    timeout: float | None = None,
) -> Step:
    """Create a step backed by an in-process builtin (see step_workflows)."""
    return Step(name=name, builtin=builtin, condition=when, cwd=cwd, env=env or {}, timeout=timeout)


def only_on(family_name: str, step: Step) -> Step:
    """Gate an existing step on the platform family."""
    return replace(step, condition=family(family_name))


# ---------------------------------------------------------------------
# Functional plan helper (nice DX)
# ---------------------------------------------------------------------

PlatformsArg = Union[Iterable[PlatformDescriptor], Iterable[str]]


def _as_platforms(values: PlatformsArg) -> List[PlatformDescriptor]:
    return [v if isinstance(v, PlatformDescriptor) else platform(str(v)) for v in values]


def plan(
    name: str,
    *steps: Step,  # allow: plan("x", sh(...), sh(...), matrix=[...])
    matrix: PlatformsArg = (),
    branches: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    fail_fast: bool = False,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> JobPlan:
    steps_final = list(steps)
    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return JobPlan(
        name=name,
        steps=tuple(steps_final),
        matrix=tuple(_as_platforms(matrix)),
        branches=tuple(branches or ()),
        env=env or {},
        fail_fast=fail_fast,
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class PlanBuilder:
    def __init__(self, name: str):
        self.name = name
        self._steps: list[Step] = []
        self._platforms: list[PlatformDescriptor] = []
        self._branches: list[str] = []
        self._env: dict[str, str] = {}
        self._fail_fast = False

    def on_branches(self, *branches: str):
        self._branches.extend(branches)
        return self

    def on_platform(self, id: str, **attributes: Any):
        self._platforms.append(platform(id, **attributes))
        return self

    def on_platforms(self, *ids: str):
        self._platforms.extend(platform(i) for i in ids)
        return self

    def define_step(
        self,
        name: str,
        *commands: str,
        when: Condition = ALWAYS,
        cwd: str | None = None,
        timeout: float | None = None,
    ):
        self._steps.append(sh(name, *commands, when=when, cwd=cwd, timeout=timeout))
        return self

    def add_step(self, step: Step):
        self._steps.append(step)
        return self

    def with_env(self, **env):
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def fail_fast(self, enabled: bool = True):
        self._fail_fast = enabled
        return self

    def build(self) -> JobPlan:
        return JobPlan(
            name=self.name,
            steps=tuple(self._steps),
            matrix=tuple(self._platforms),
            branches=tuple(self._branches),
            env=self._env,
            fail_fast=self._fail_fast,
        )


def build(name: str) -> PlanBuilder:
    """Convenience: build('unit_tests').on_platforms(...).define_step(...).build()"""
    return PlanBuilder(name)
