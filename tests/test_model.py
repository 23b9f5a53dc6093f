"""Tests for plan validation and outcome bookkeeping."""

import pytest

from matrixci.dsl import plan, platform, sh
from matrixci.errors import InvalidPlan
from matrixci.model import (
    JobPlan,
    JobResult,
    PlatformDescriptor,
    Status,
    Step,
    StepRecord,
    VariantOutcome,
)


class TestPlatformDescriptor:
    def test_attributes_are_read_only(self):
        p = PlatformDescriptor("ubuntu-20.04", {"family": "linux"})
        with pytest.raises(TypeError):
            p.attributes["family"] = "darwin"

    def test_source_dict_changes_do_not_leak_in(self):
        attrs = {"family": "linux"}
        p = PlatformDescriptor("ubuntu-20.04", attrs)
        attrs["family"] = "windows"
        assert p.family == "linux"

    def test_hashable_and_comparable(self):
        a = PlatformDescriptor("linux", {"family": "linux"})
        b = PlatformDescriptor("linux", {"family": "linux"})
        assert a == b
        assert len({a, b}) == 1

    def test_empty_id_rejected(self):
        with pytest.raises(InvalidPlan):
            PlatformDescriptor("")


class TestJobPlanValidation:
    def test_empty_matrix_is_invalid(self):
        with pytest.raises(InvalidPlan, match="empty matrix"):
            plan("unit_tests", sh("run-tests", "cargo test"), matrix=[])

    def test_duplicate_platform_ids_are_invalid(self):
        with pytest.raises(InvalidPlan, match="duplicate platform ids"):
            plan(
                "unit_tests",
                sh("run-tests", "cargo test"),
                matrix=[platform("linux"), platform("linux", arch="arm64")],
            )

    def test_plan_without_steps_is_invalid(self):
        with pytest.raises(InvalidPlan, match="at least one step"):
            JobPlan(name="empty", steps=(), matrix=(platform("linux"),))

    def test_invalid_plan_is_a_value_error(self):
        assert issubclass(InvalidPlan, ValueError)

    def test_plan_is_immutable(self, three_platform_plan):
        with pytest.raises(AttributeError):
            three_platform_plan.fail_fast = True
        assert isinstance(three_platform_plan.steps, tuple)
        assert isinstance(three_platform_plan.matrix, tuple)

    def test_step_order_preserved(self, three_platform_plan):
        assert [s.name for s in three_platform_plan.steps] == ["install-deps", "run-tests"]


class TestJobPlanQueries:
    def test_platform_lookup(self, three_platform_plan):
        assert three_platform_plan.platform("macos").family == "darwin"
        with pytest.raises(KeyError):
            three_platform_plan.platform("solaris")

    def test_triggers_on(self):
        p = plan("pr", sh("t", "true"), matrix=["ubuntu-20.04"], branches=["develop"])
        assert p.triggers_on("develop")
        assert not p.triggers_on("main")
        assert p.triggers_on(None)

    def test_no_branch_filter_always_triggers(self, three_platform_plan):
        assert three_platform_plan.triggers_on("anything")

    def test_restricted_to(self, three_platform_plan):
        sub = three_platform_plan.restricted_to(["windows", "linux"])
        assert sub.platform_ids == ["linux", "windows"]
        assert sub.steps == three_platform_plan.steps

    def test_restricted_to_unknown_platform(self, three_platform_plan):
        with pytest.raises(KeyError):
            three_platform_plan.restricted_to(["solaris"])


class TestStep:
    def test_single_command_string_is_wrapped(self):
        step = Step(name="x", commands="echo hi")
        assert step.commands == ("echo hi",)

    def test_empty_action_is_valid(self):
        step = Step(name="group marker")
        assert step.is_empty


class TestVariantOutcome:
    def test_lifecycle(self):
        outcome = VariantOutcome(platform=platform("linux"))
        assert outcome.status is Status.PENDING
        outcome.start()
        assert outcome.status is Status.RUNNING
        outcome.record(StepRecord(name="a", status=Status.PASSED, exit_code=0))
        outcome.record(StepRecord(name="b", status=Status.SKIPPED, reason="condition false"))
        outcome.finish(Status.PASSED)

        assert [s.name for s in outcome.executed_steps] == ["a"]
        assert [s.name for s in outcome.skipped_steps] == ["b"]
        assert outcome.failed_step is None
        assert outcome.duration is not None

    def test_sealed_after_terminal_status(self):
        outcome = VariantOutcome(platform=platform("linux"))
        outcome.start()
        outcome.finish(Status.FAILED)
        with pytest.raises(RuntimeError):
            outcome.record(StepRecord(name="late", status=Status.PASSED))
        with pytest.raises(RuntimeError):
            outcome.finish(Status.PASSED)

    def test_finish_requires_terminal_status(self):
        outcome = VariantOutcome(platform=platform("linux"))
        with pytest.raises(ValueError):
            outcome.finish(Status.RUNNING)

    def test_terminal_statuses(self):
        assert {s for s in Status if s.terminal} == {Status.PASSED, Status.FAILED, Status.CANCELLED}


def test_job_result_orders_outcomes_by_platform_id():
    outcomes = []
    for pid in ("windows", "linux", "macos"):
        o = VariantOutcome(platform=platform(pid))
        o.start()
        o.finish(Status.PASSED)
        outcomes.append(o)

    result = JobResult(plan_name="unit_tests", outcomes=tuple(outcomes))
    assert [o.platform.id for o in result.outcomes] == ["linux", "macos", "windows"]
    assert result.outcome("macos").status is Status.PASSED
    assert result.statuses() == {"linux": Status.PASSED, "macos": Status.PASSED, "windows": Status.PASSED}
    assert result.exit_code == 0
