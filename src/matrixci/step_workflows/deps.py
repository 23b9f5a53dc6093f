# step_workflows/deps.py
from __future__ import annotations

from typing import List

from ..conditions import Condition, family
from ..dsl import sh
from ..model import Step


# ---------------------------------------------------------------------
# Native dependency install helper
# ---------------------------------------------------------------------

def _apt(packages: List[str]) -> List[str]:
    return ["sudo apt-get update", "sudo apt-get install -y " + " ".join(packages)]


def _brew(packages: List[str]) -> List[str]:
    return ["brew install " + " ".join(packages)]


def _choco(packages: List[str]) -> List[str]:
    return ["choco install -y " + " ".join(packages)]


# package manager -> (platform family, commands builder)
MANAGERS = {
    "apt-get": ("linux", _apt),
    "brew": ("darwin", _brew),
    "choco": ("windows", _choco),
}


def install_packages(
    name: str,
    packages: List[str],
    *,
    manager: str = "apt-get",
    when: Condition | None = None,
    timeout: float | None = None,
) -> Step:
    """
    Install native packages with the platform's package manager. By default the
    step only applies to the family the manager belongs to.

    Example:
        install_packages("install dependencies (ubuntu only)",
                         ["libgtk-3-dev", "libwebkit2gtk-4.0-dev"])
    """
    if manager not in MANAGERS:
        raise ValueError(f"Unknown package manager: {manager!r}. Known: {sorted(MANAGERS)}")
    if not packages:
        raise ValueError(f"install_packages({name!r}) needs at least one package")

    fam, commands = MANAGERS[manager]
    return sh(name, *commands(list(packages)), when=when or family(fam), timeout=timeout)
