"""
Shared pytest fixtures for the Conductor test suite.

Module-level defaults; test classes may override them with class-level
fixtures (pytest priority: class > conftest).
"""
import asyncio
import logging
import time
from typing import List, Optional, Sequence, Union

import pytest

from conductor.agents import Agent, AgentRegistry, AgentResponse
from conductor.executor import (
    Plan,
    Step,
    StepExecutor,
    StepExecutorConfig,
    SentinelExecutor,
    SentinelExecutorConfig,
)
from conductor.llm import MockCompletionClient
from conductor.planning import PlanGenerator, PlanGenerationError, PlanRevisionError

Scripted = Union[str, AgentResponse, BaseException]


# ==================== FAKE AGENTS ====================

class ScriptedAgent(Agent):
    """
    Replays scripted outcomes, one per call; the last one repeats.

    A str is returned as success content, an exception is raised.
    """

    def __init__(self, name: str, outcomes: Sequence[Scripted], delay: float = 0.0):
        self.name = name
        self._outcomes = list(outcomes)
        self.delay = delay
        self.calls: List[str] = []
        self.call_times: List[float] = []

    async def execute(self, input_text, cancel_token=None):
        self.calls.append(input_text)
        self.call_times.append(time.monotonic())
        if self.delay:
            await asyncio.sleep(self.delay)

        index = min(len(self.calls) - 1, len(self._outcomes) - 1)
        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, AgentResponse):
            return outcome
        return AgentResponse.ok(outcome, echo=input_text)


class ConcurrencyAgent(Agent):
    """Counts how many executions are in flight at once."""

    def __init__(self, name: str = "concurrent", delay: float = 0.05):
        self.name = name
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls = 0

    async def execute(self, input_text, cancel_token=None):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return AgentResponse.ok(f"done: {input_text}")


class FakePlanner(PlanGenerator):
    """
    In-memory plan generator.

    generate_plan() returns `plan`. revise_plan() returns `revision` (or a copy
    of the current plan with fresh steps) unless `revise_error` is set.
    """

    def __init__(
        self,
        plan: Optional[Plan] = None,
        revision: Optional[Plan] = None,
        generate_error: Optional[BaseException] = None,
        revise_error: Optional[BaseException] = None,
    ):
        self.plan = plan
        self.revision = revision
        self.generate_error = generate_error
        self.revise_error = revise_error
        self.generate_calls: List[str] = []
        self.revise_calls: List[str] = []

    async def generate_plan(self, user_input, cancel_token=None):
        self.generate_calls.append(user_input)
        if self.generate_error is not None:
            raise self.generate_error
        if self.plan is None:
            raise PlanGenerationError("no plan configured")
        return self.plan

    async def revise_plan(self, plan, feedback, cancel_token=None):
        self.revise_calls.append(feedback)
        if self.revise_error is not None:
            raise self.revise_error
        source = self.revision or plan
        fresh = [Step(title=s.title, details=s.details, agent_name=s.agent_name) for s in source.steps]
        if not fresh:
            raise PlanRevisionError("nothing to revise")
        return Plan.create(source.title, source.description, fresh)


def make_plan(*steps: Step, title: str = "Test plan") -> Plan:
    return Plan.create(title, "plan for tests", list(steps))


# ==================== FIXTURES ====================

@pytest.fixture
def registry():
    """Empty agent registry."""
    return AgentRegistry()


@pytest.fixture
def step_config():
    """Fast retry policy."""
    return StepExecutorConfig(
        step_timeout_seconds=1.0,
        max_retries=3,
        retry_delay_seconds=0.01,
    )


@pytest.fixture
def step_executor(registry, step_config):
    return StepExecutor(registry, step_config)


@pytest.fixture
def mock_client():
    return MockCompletionClient()


@pytest.fixture
def sentinel_config():
    """Sentinel budgets that run in milliseconds."""
    return SentinelExecutorConfig(
        max_iterations=50,
        max_execution_time_seconds=5.0,
        max_errors=3,
        min_sleep_seconds=0.0,
        max_sleep_seconds=0.05,
        error_backoff_seconds=0.01,
        allow_zero_sleep=True,
    )


@pytest.fixture
def sentinel_executor(mock_client, sentinel_config):
    return SentinelExecutor(mock_client, sentinel_config)


@pytest.fixture
def reset_logging():
    """Drop handlers installed by setup_logging()."""
    yield
    root = logging.getLogger("conductor")
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
