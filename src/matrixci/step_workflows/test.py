# step_workflows/test.py
from __future__ import annotations

from typing import List

from ..conditions import ALWAYS, Condition
from ..dsl import sh
from ..model import Step

# framework -> (install command or None, test command)
FRAMEWORKS = {
    "cargo": (None, "cargo test"),
    "pytest": ("python -m pip install -r requirements.txt", "python -m pytest"),
    "npm": ("npm ci", "npm test"),
}


def test_step(
    name: str,
    *,
    framework: str = "cargo",
    args: str = "",
    install: bool = False,
    cwd: str | None = None,
    when: Condition = ALWAYS,
    timeout: float | None = None,
) -> Step:
    """
    Turn a typed test step into one runnable shell step. The framework itself
    is opaque: only its exit status and output are looked at.
    """
    if framework not in FRAMEWORKS:
        raise ValueError(f"Unknown framework: {framework!r}")

    install_cmd, test_cmd = FRAMEWORKS[framework]
    commands: List[str] = []
    if install and install_cmd:
        commands.append(install_cmd)
    commands.append(f"{test_cmd} {args}".strip())
    return sh(name, *commands, cwd=cwd, when=when, timeout=timeout)


# not a pytest test
test_step.__test__ = False
