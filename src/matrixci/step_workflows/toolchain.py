# step_workflows/toolchain.py
from __future__ import annotations

import shutil
from typing import Iterable

from ..actions import TOOL_HINTS, ActionContext, ActionResult
from ..conditions import ALWAYS, Condition
from ..dsl import uses
from ..model import Step


# ---------------------------------------------------------------------
# Toolchain step helper
# ---------------------------------------------------------------------

def require_tools(
    name: str,
    tools: Iterable[str],
    *,
    when: Condition = ALWAYS,
) -> Step:
    """Fail early (with an install hint) when a tool is missing from PATH."""
    wanted = list(tools)

    def _check(ctx: ActionContext) -> ActionResult:
        path = ctx.env.get("PATH")
        lines = []
        missing = []
        for tool in wanted:
            found = shutil.which(tool, path=path)
            if found:
                lines.append(f"{tool}: {found}")
            else:
                missing.append(tool)
                hint = TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.")
                lines.append(f"{tool}: not found. Hint: {hint}")
        return ActionResult(exit_code=1 if missing else 0, output="\n".join(lines) + "\n")

    return uses(name, _check, when=when)


def rust_toolchain(name: str = "check Rust toolchain", *, when: Condition = ALWAYS) -> Step:
    return require_tools(name, ["cargo", "rustc"], when=when)
