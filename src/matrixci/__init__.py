from .conditions import always, equals, one_of, family, negate, all_of, any_of
from .dsl import platform, matrix, sh, uses, plan, PlanBuilder, build
from .errors import InvalidPlan, ActionFailure, ActionTimeout, Cancelled, WorkflowError
from .model import PlatformDescriptor, Step, JobPlan, Status, StepRecord, VariantOutcome, JobResult
from .runner import MatrixScheduler, run_matrix, load_workflow

__all__ = [
    "always", "equals", "one_of", "family", "negate", "all_of", "any_of",
    "platform", "matrix", "sh", "uses", "plan", "PlanBuilder", "build",
    "InvalidPlan", "ActionFailure", "ActionTimeout", "Cancelled", "WorkflowError",
    "PlatformDescriptor", "Step", "JobPlan", "Status", "StepRecord", "VariantOutcome", "JobResult",
    "MatrixScheduler", "run_matrix", "load_workflow",
]
