# step_workflows/checkout.py
from __future__ import annotations

from ..actions import ActionContext, ActionResult
from ..conditions import ALWAYS, Condition
from ..dsl import uses
from ..model import Step


# ---------------------------------------------------------------------
# Checkout step helper
# ---------------------------------------------------------------------
# Sources are checked out before matrixci starts; this step only asserts the
# working tree is there (and optionally that it is a git checkout).

def checkout(name: str = "Checkout", *, require_git: bool = False, when: Condition = ALWAYS) -> Step:
    def _verify(ctx: ActionContext) -> ActionResult:
        if not ctx.workdir.is_dir():
            return ActionResult(exit_code=1, output=f"working tree not found: {ctx.workdir}\n")
        if require_git and not (ctx.workdir / ".git").exists():
            return ActionResult(exit_code=1, output=f"not a git checkout: {ctx.workdir}\n")
        return ActionResult(exit_code=0, output=f"using working tree {ctx.workdir}\n")

    return uses(name, _verify, when=when)
