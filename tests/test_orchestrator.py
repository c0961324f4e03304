"""
Tests for the orchestrator control loop.

Run with: pytest -q tests/test_orchestrator.py
"""
import asyncio

import pytest

from conductor.agents import AgentResponse
from conductor.executor import (
    CancellationToken,
    Orchestrator,
    OrchestratorConfig,
    PlanAlreadyRunningError,
    PlanStatus,
    SentinelStep,
    Step,
)
from conductor.planning import PlanGenerationError, PlanRevisionError

from conftest import FakePlanner, ScriptedAgent, make_plan


def _step(title: str, agent: str = "worker") -> Step:
    return Step(title=title, details=f"do {title}", agent_name=agent)


def _orchestrator(step_executor, sentinel_executor, planner=None, **config) -> Orchestrator:
    return Orchestrator(
        step_executor,
        sentinel_executor,
        planner or FakePlanner(),
        OrchestratorConfig(**config),
    )


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


class TestExecutePlan:
    """Happy paths and failure handling."""

    @pytest.mark.asyncio
    async def test_all_steps_succeed(self, registry, step_executor, sentinel_executor):
        registry.register("worker", ScriptedAgent("worker", ["done"]))
        plan = make_plan(_step("A"), _step("B"), SentinelStep(
            title="Wait", details="poll", agent_name="worker", condition=2,
        ))
        orchestrator = _orchestrator(step_executor, sentinel_executor)

        result = await orchestrator.execute_plan(plan)

        assert result.success
        assert result.error is None
        assert plan.status == PlanStatus.COMPLETED
        assert all(s.is_completed for s in plan.steps)
        assert plan.steps[0].result == "done"
        assert plan.steps[2].result.startswith("Condition met after 2")
        assert result.plan_snapshot["status"] == "Completed"
        assert result.duration >= 0
        assert not orchestrator.is_running(plan)

    @pytest.mark.asyncio
    async def test_empty_plan_completes(self, step_executor, sentinel_executor):
        plan = make_plan()
        result = await _orchestrator(step_executor, sentinel_executor).execute_plan(plan)
        assert result.success
        assert plan.status == PlanStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_rerun_of_finished_plan_completes(self, registry, step_executor, sentinel_executor):
        worker = ScriptedAgent("worker", ["done"])
        registry.register("worker", worker)
        plan = make_plan(_step("A"), _step("B"))
        orchestrator = _orchestrator(step_executor, sentinel_executor)

        await orchestrator.execute_plan(plan)
        result = await orchestrator.execute_plan(plan)

        assert result.success
        assert result.error is None
        assert plan.status == PlanStatus.COMPLETED
        assert len(worker.calls) == 2

    @pytest.mark.asyncio
    async def test_empty_revision_completes(self, registry, step_executor, sentinel_executor):
        registry.register("bad", ScriptedAgent("bad", [AgentResponse.fail("broken")]))
        planner = FakePlanner()

        async def revise_to_nothing(plan, feedback, cancel_token=None):
            planner.revise_calls.append(feedback)
            return make_plan()

        planner.revise_plan = revise_to_nothing
        plan = make_plan(_step("A", agent="bad"))
        orchestrator = _orchestrator(
            step_executor, sentinel_executor, planner,
            enable_auto_revision=True,
        )

        result = await orchestrator.execute_plan(plan)

        assert planner.revise_calls
        assert plan.steps == []
        assert plan.status == PlanStatus.COMPLETED
        assert result.success

    @pytest.mark.asyncio
    async def test_failure_without_revision_stops(self, registry, step_executor, sentinel_executor):
        worker = ScriptedAgent("worker", ["ok"])
        registry.register("worker", worker)
        registry.register("bad", ScriptedAgent("bad", [AgentResponse.fail("broken")]))
        plan = make_plan(_step("A"), _step("B", "bad"), _step("C"))
        planner = FakePlanner()
        orchestrator = _orchestrator(step_executor, sentinel_executor, planner, enable_auto_revision=False)

        result = await orchestrator.execute_plan(plan)

        assert not result.success
        assert result.error == "Agent execution failed: broken"
        assert plan.status == PlanStatus.FAILED
        assert plan.steps[1].error == "Agent execution failed: broken"
        assert plan.current_step_index == 1
        assert worker.calls == ["do A"]
        assert planner.revise_calls == []

    @pytest.mark.asyncio
    async def test_revision_budget_then_failure(self, registry, step_executor, sentinel_executor):
        registry.register("worker", ScriptedAgent("worker", ["ok"]))
        registry.register("bad", ScriptedAgent("bad", [AgentResponse.fail("broken")]))
        plan = make_plan(_step("A"), _step("B", "bad"))
        planner = FakePlanner()
        orchestrator = _orchestrator(
            step_executor, sentinel_executor, planner,
            enable_auto_revision=True, max_revision_attempts=1,
        )

        result = await orchestrator.execute_plan(plan)

        assert not result.success
        assert plan.status == PlanStatus.FAILED
        assert plan.revision_attempts == 1
        assert len(planner.revise_calls) == 1
        assert "broken" in planner.revise_calls[0]
        assert planner.revise_calls[0].startswith("The following error occurred:")
        assert plan.steps[0].is_completed
        assert plan.steps[1].error

    @pytest.mark.asyncio
    async def test_revision_fixes_plan(self, registry, step_executor, sentinel_executor):
        registry.register("worker", ScriptedAgent("worker", ["ok"]))
        registry.register("bad", ScriptedAgent("bad", [AgentResponse.fail("broken")]))
        plan = make_plan(_step("A"), _step("B", "bad"))
        planner = FakePlanner(revision=make_plan(_step("A"), _step("B fixed")))
        orchestrator = _orchestrator(step_executor, sentinel_executor, planner)

        result = await orchestrator.execute_plan(plan)

        assert result.success
        assert plan.status == PlanStatus.COMPLETED
        assert [s.title for s in plan.steps] == ["A", "B fixed"]
        assert result.metadata["revision_attempts"] == 1

    @pytest.mark.asyncio
    async def test_revision_error_is_swallowed(self, registry, step_executor, sentinel_executor):
        registry.register("bad", ScriptedAgent("bad", [AgentResponse.fail("broken")]))
        plan = make_plan(_step("A", "bad"))
        planner = FakePlanner(revise_error=PlanRevisionError("oracle down"))
        orchestrator = _orchestrator(step_executor, sentinel_executor, planner)

        result = await orchestrator.execute_plan(plan)

        assert not result.success
        assert plan.status == PlanStatus.FAILED
        assert plan.revision_attempts == 0
        assert len(planner.revise_calls) == 1

    @pytest.mark.asyncio
    async def test_continue_on_failure_skips_step(self, registry, step_executor, sentinel_executor):
        worker = ScriptedAgent("worker", ["ok"])
        registry.register("worker", worker)
        registry.register("bad", ScriptedAgent("bad", [AgentResponse.fail("broken")]))
        plan = make_plan(_step("A", "bad"), _step("B"), _step("C"))
        planner = FakePlanner()
        orchestrator = _orchestrator(
            step_executor, sentinel_executor, planner,
            continue_on_failure=True, revise_when_continuing=False,
        )

        result = await orchestrator.execute_plan(plan)

        assert not result.success
        assert plan.status == PlanStatus.FAILED
        assert worker.calls == ["do B", "do C"]
        assert planner.revise_calls == []
        assert plan.current_step_index == 3

    @pytest.mark.asyncio
    async def test_continue_on_failure_revises_first(self, registry, step_executor, sentinel_executor):
        registry.register("bad", ScriptedAgent("bad", [AgentResponse.fail("broken")]))
        plan = make_plan(_step("A", "bad"))
        planner = FakePlanner()
        orchestrator = _orchestrator(
            step_executor, sentinel_executor, planner,
            continue_on_failure=True, max_revision_attempts=2,
        )

        result = await orchestrator.execute_plan(plan)

        assert not result.success
        assert len(planner.revise_calls) == 2
        assert plan.revision_attempts == 2

    @pytest.mark.asyncio
    async def test_unknown_agent_fails_plan(self, step_executor, sentinel_executor):
        plan = make_plan(_step("A", "ghost"))
        orchestrator = _orchestrator(step_executor, sentinel_executor, enable_auto_revision=False)

        result = await orchestrator.execute_plan(plan)

        assert not result.success
        assert "ghost" in result.error


class TestPlanControl:
    """Pause, resume, cancel."""

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, registry, step_executor, sentinel_executor):
        fast = ScriptedAgent("worker", ["ok"])
        slow = ScriptedAgent("slow", ["slow ok"], delay=0.2)
        registry.register("worker", fast)
        registry.register("slow", slow)
        plan = make_plan(_step("A"), _step("B", "slow"), _step("C"))
        orchestrator = _orchestrator(step_executor, sentinel_executor)

        task = asyncio.create_task(orchestrator.execute_plan(plan))
        await _wait_for(lambda: len(slow.calls) == 1)

        assert orchestrator.is_running(plan)
        assert orchestrator.pause_plan(plan) is True
        paused = await asyncio.wait_for(task, timeout=2.0)

        assert not paused.success
        assert plan.status == PlanStatus.PAUSED
        assert plan.current_step_index == 1
        assert plan.steps[1].error is None
        assert not orchestrator.is_running(plan)

        resumed = await orchestrator.resume_plan(plan)

        assert resumed.success
        assert plan.status == PlanStatus.COMPLETED
        assert fast.calls == ["do A", "do C"]
        assert len(slow.calls) == 2

    @pytest.mark.asyncio
    async def test_resume_past_last_step_completes(self, registry, step_executor, sentinel_executor):
        worker = ScriptedAgent("worker", ["done"])
        registry.register("worker", worker)
        plan = make_plan(_step("A"), _step("B"))
        orchestrator = _orchestrator(step_executor, sentinel_executor)
        await orchestrator.execute_plan(plan)
        plan.pause()

        result = await orchestrator.resume_plan(plan)

        assert result.success
        assert plan.status == PlanStatus.COMPLETED
        assert plan.current_step_index == 2
        assert len(worker.calls) == 2

    @pytest.mark.asyncio
    async def test_resume_past_skipped_failure_fails(self, registry, step_executor, sentinel_executor):
        registry.register("worker", ScriptedAgent("worker", ["done"]))
        plan = make_plan(_step("A"), _step("B"))
        plan.start()
        plan.fail_current_step("broken")
        plan.skip_current_step()
        plan.complete_current_step("done")
        plan.pause()
        orchestrator = _orchestrator(step_executor, sentinel_executor)

        result = await orchestrator.resume_plan(plan)

        assert not result.success
        assert plan.status == PlanStatus.FAILED
        assert result.error == "broken"

    @pytest.mark.asyncio
    async def test_cancel_stops_sentinels(self, mock_client, sentinel_config, step_executor):
        from conductor.executor import SentinelExecutor

        sentinel_config.min_sleep_seconds = 10.0
        sentinel_config.max_sleep_seconds = 10.0
        sentinels = SentinelExecutor(mock_client, sentinel_config)
        watch = SentinelStep(title="Watch", details="poll", agent_name="worker", sleep_duration=10, condition=100)
        plan = make_plan(watch)
        orchestrator = _orchestrator(step_executor, sentinels)

        task = asyncio.create_task(orchestrator.execute_plan(plan))
        await _wait_for(lambda: watch.sentinel_id in sentinels.list_running_sentinels())

        orchestrator.cancel_plan(plan)
        result = await asyncio.wait_for(task, timeout=2.0)

        assert not result.success
        assert plan.status == PlanStatus.CANCELLED
        assert sentinels.list_running_sentinels() == []
        assert watch.error is None

    @pytest.mark.asyncio
    async def test_caller_token_cancels_plan(self, registry, step_executor, sentinel_executor):
        registry.register("slow", ScriptedAgent("slow", ["late"], delay=1.0))
        plan = make_plan(_step("A", "slow"), _step("B", "slow"))
        orchestrator = _orchestrator(step_executor, sentinel_executor)
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        result = await orchestrator.execute_plan(plan, token)

        assert not result.success
        assert plan.status == PlanStatus.CANCELLED
        assert plan.current_step_index == 0

    @pytest.mark.asyncio
    async def test_second_run_rejected(self, registry, step_executor, sentinel_executor):
        registry.register("slow", ScriptedAgent("slow", ["late"], delay=0.1))
        plan = make_plan(_step("A", "slow"))
        orchestrator = _orchestrator(step_executor, sentinel_executor)

        task = asyncio.create_task(orchestrator.execute_plan(plan))
        await _wait_for(lambda: orchestrator.is_running(plan))

        with pytest.raises(PlanAlreadyRunningError):
            await orchestrator.execute_plan(plan)
        assert (await task).success

    def test_pause_idle_plan(self, step_executor, sentinel_executor):
        plan = make_plan(_step("A"))
        orchestrator = _orchestrator(step_executor, sentinel_executor)

        assert orchestrator.pause_plan(plan) is False
        assert plan.status == PlanStatus.PAUSED


class TestExecuteTask:
    """Plan generation plus execution."""

    @pytest.mark.asyncio
    async def test_generates_and_executes(self, registry, step_executor, sentinel_executor):
        registry.register("worker", ScriptedAgent("worker", ["ok"]))
        planner = FakePlanner(plan=make_plan(_step("A"), _step("B")))
        orchestrator = _orchestrator(step_executor, sentinel_executor, planner)

        result = await orchestrator.execute_task("do two things")

        assert result.success
        assert planner.generate_calls == ["do two things"]
        assert result.plan is planner.plan

    @pytest.mark.asyncio
    async def test_generation_error_propagates(self, step_executor, sentinel_executor):
        planner = FakePlanner(generate_error=PlanGenerationError("no plan"))
        orchestrator = _orchestrator(step_executor, sentinel_executor, planner)

        with pytest.raises(PlanGenerationError):
            await orchestrator.execute_task("anything")

    @pytest.mark.asyncio
    async def test_other_generation_fault_becomes_result(self, step_executor, sentinel_executor):
        planner = FakePlanner(generate_error=RuntimeError("socket closed"))
        orchestrator = _orchestrator(step_executor, sentinel_executor, planner)

        result = await orchestrator.execute_task("anything")

        assert not result.success
        assert "socket closed" in result.error
        assert result.plan is None
