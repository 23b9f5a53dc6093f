"""Shared fixtures: scripted action runners and the three-platform scenario plan."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Tuple

import pytest

from matrixci.actions import ActionResult, ActionRunner
from matrixci.conditions import family
from matrixci.dsl import plan, platform, sh
from matrixci.model import JobPlan, PlatformDescriptor
from matrixci.ui.console import Console, set_console


class ScriptedRunner(ActionRunner):
    """
    Fake action runner. `script` maps (platform_id, command) or command to:
      - int exit code
      - ActionResult
      - an exception instance to raise
      - a callable(platform, env) returning any of the above
    Unknown commands exit 0.
    """

    def __init__(self, platform: PlatformDescriptor, script: Dict[Any, Any], calls: List[Tuple[str, str, str]]):
        self.platform = platform
        self.script = script
        self.calls = calls
        self.envs: List[Dict[str, str]] = []
        self.timeouts: List[float | None] = []

    def run(self, command, *, step, cwd, env, timeout=None):
        self.calls.append((self.platform.id, step, command))
        self.envs.append(dict(env))
        self.timeouts.append(timeout)
        behaviour = self.script.get((self.platform.id, command), self.script.get(command, 0))
        if callable(behaviour) and not isinstance(behaviour, BaseException):
            behaviour = behaviour(self.platform, env)
        if isinstance(behaviour, BaseException):
            raise behaviour
        if isinstance(behaviour, ActionResult):
            return behaviour
        return ActionResult(exit_code=behaviour, output=f"{self.platform.id}: {command}\n")


class Script:
    """Factory for ScriptedRunner instances that records every call."""

    def __init__(self, script: Dict[Any, Any] | None = None):
        self.script = script or {}
        self.calls: List[Tuple[str, str, str]] = []
        self.runners: Dict[str, ScriptedRunner] = {}
        self._lock = threading.Lock()

    def __call__(self, platform: PlatformDescriptor) -> ScriptedRunner:
        runner = ScriptedRunner(platform, self.script, self.calls)
        with self._lock:
            self.runners[platform.id] = runner
        return runner

    def calls_for(self, platform_id: str) -> List[str]:
        return [cmd for pid, _step, cmd in self.calls if pid == platform_id]


@pytest.fixture(autouse=True)
def quiet_console():
    console = Console(quiet=True)
    set_console(console)
    yield console
    set_console(Console())


@pytest.fixture
def script_factory() -> Callable[..., Script]:
    return Script


def scenario_plan(*, order=("linux", "macos", "windows"), fail_fast: bool = False) -> JobPlan:
    families = {"linux": "linux", "macos": "darwin", "windows": "windows"}
    return plan(
        "unit_tests",
        sh("install-deps", "install-deps", when=family("linux")),
        sh("run-tests", "run-tests"),
        matrix=[platform(pid, family=families[pid]) for pid in order],
        fail_fast=fail_fast,
    )


@pytest.fixture
def three_platform_plan() -> JobPlan:
    return scenario_plan()
