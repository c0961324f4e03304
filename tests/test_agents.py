"""
Tests for built-in agents, the factory and the CLI runner.

Run with: pytest -q tests/test_agents.py
"""
import json

import pytest

from conductor.agents import (
    AgentRegistry,
    AgentResponse,
    ChatAgent,
    FunctionAgent,
    ResearchAgent,
    TaskAgent,
)
from conductor.cli import main
from conductor.config import Settings
from conductor.executor import CancellationToken, OperationCancelledError, PlanStatus, SentinelStep
from conductor.factory import create_orchestrator, register_builtin_agents
from conductor.llm import SYSTEM_PROMPTS, ChatResponse, MockCompletionClient


@pytest.fixture
def fast_settings():
    settings = Settings()
    settings.step_executor.retry_delay_seconds = 0.0
    settings.sentinel.min_sleep_seconds = 0.0
    settings.sentinel.allow_zero_sleep = True
    return settings


class TestLLMAgents:
    """Chat, task and research agents over the mock client."""

    @pytest.mark.asyncio
    async def test_task_agent(self):
        client = MockCompletionClient()
        response = await TaskAgent(client).execute("Write the report")

        assert response.success
        assert response.agent_name == "task"
        assert response.content.startswith("I understand you're asking about")
        assert response.metadata["task"] == "Write the report"
        assert response.metadata["agent_type"] == "TaskAgent"
        assert "completed_at" in response.metadata
        assert "usage" in response.metadata
        assert response.duration_ms is not None

    @pytest.mark.asyncio
    async def test_research_agent_conversation(self):
        client = MockCompletionClient()
        response = await ResearchAgent(client).execute("History of AI")

        assert response.metadata["research_query"] == "History of AI"
        assert response.metadata["research_depth"] == "comprehensive"
        messages = client.conversations[0].messages
        assert messages[0].content == SYSTEM_PROMPTS["research"]
        assert messages[1].content == "History of AI"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("agent_cls,error", [
        (ChatAgent, "Input cannot be empty"),
        (TaskAgent, "Task input cannot be empty"),
        (ResearchAgent, "Research query cannot be empty"),
    ])
    async def test_empty_input(self, agent_cls, error):
        client = MockCompletionClient()
        response = await agent_cls(client).execute("   ")

        assert not response.success
        assert response.error == error
        assert client.call_count == 0

    @pytest.mark.asyncio
    async def test_client_failure(self):
        client = MockCompletionClient(responses=[ChatResponse.fail("backend down")])
        response = await ResearchAgent(client).execute("topic")

        assert not response.success
        assert response.error == "Failed to complete research: backend down"

    @pytest.mark.asyncio
    async def test_client_fault(self):
        client = MockCompletionClient(responses=[RuntimeError("boom")])
        response = await ChatAgent(client).execute("hello")

        assert not response.success
        assert response.error == "An error occurred while processing the request"
        assert response.metadata["exception"] == "RuntimeError: boom"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await TaskAgent(MockCompletionClient()).execute("work", token)

    def test_custom_name_and_capabilities(self):
        agent = ChatAgent(MockCompletionClient(), name="helper")
        caps = agent.get_capabilities()

        assert agent.name == "helper"
        assert caps.name == "helper"
        assert caps.tags == ["llm"]


class TestFunctionAgent:
    """Plain callables as agents."""

    @pytest.mark.asyncio
    async def test_async_function(self):
        async def shout(text):
            return text.upper()

        response = await FunctionAgent("shout", shout).execute("hi")
        assert response.success
        assert response.content == "HI"
        assert response.agent_name == "shout"

    @pytest.mark.asyncio
    async def test_dict_result(self):
        agent = FunctionAgent("count", lambda text: {"content": len(text), "unit": "chars"})
        response = await agent.execute("four")

        assert response.content == "4"
        assert response.metadata == {"unit": "chars"}

    @pytest.mark.asyncio
    async def test_response_passthrough(self):
        agent = FunctionAgent("refuse", lambda text: AgentResponse.fail("not today"))
        response = await agent.execute("anything")

        assert not response.success
        assert response.error == "not today"

    def test_description_from_docstring(self):
        def summarize(text):
            """Summarize text."""
            return text

        assert FunctionAgent("summarize", summarize).description == "Summarize text."


class TestFactory:
    """create_orchestrator wiring."""

    def test_builtin_agents_registered(self):
        registry = AgentRegistry()
        register_builtin_agents(registry, MockCompletionClient())
        assert registry.list() == {"chat", "task", "research"}

    def test_existing_registry_kept(self, fast_settings):
        registry = AgentRegistry()
        registry.register("only", FunctionAgent("only", lambda text: text))

        create_orchestrator(registry=registry, settings=fast_settings)

        assert registry.list() == {"only"}

    @pytest.mark.asyncio
    async def test_end_to_end_with_mock(self, fast_settings):
        orchestrator = create_orchestrator(settings=fast_settings)

        result = await orchestrator.execute_task("Research AI and write a summary")

        assert result.success
        assert result.plan.status == PlanStatus.COMPLETED
        assert len(result.plan.steps) == 4
        assert all(s.result for s in result.plan.steps)
        assert result.to_dict()["plan"]["status"] == "Completed"

    @pytest.mark.asyncio
    async def test_end_to_end_with_sentinel(self, fast_settings):
        plan = {
            "title": "Deploy",
            "description": "Deploy and wait",
            "steps": [
                {"title": "Deploy", "details": "Start the deployment", "agent_name": "task"},
                {
                    "title": "Wait",
                    "details": "Wait until healthy",
                    "agent_name": "task",
                    "step_type": "SentinelPlanStep",
                    "sleep_duration": 0,
                    "condition": "the service is healthy",
                },
            ],
        }
        client = MockCompletionClient(plan=plan, condition_result=True)
        orchestrator = create_orchestrator(client=client, settings=fast_settings)

        result = await orchestrator.execute_task("deploy the service")

        assert result.success
        sentinel = result.plan.steps[1]
        assert isinstance(sentinel, SentinelStep)
        assert sentinel.current_iteration == 1


class TestCLI:
    """python -m conductor."""

    def test_writes_result_file(self, tmp_path, monkeypatch, reset_logging):
        monkeypatch.setenv("CONDUCTOR_RETRY_DELAY", "0")
        monkeypatch.setenv("CONDUCTOR_LOG_LEVEL", "WARNING")
        out = tmp_path / "out" / "result.json"

        code = main(["Research AI and write a summary", "--output", str(out), "--max-revisions", "1"])

        assert code == 0
        payload = json.loads(out.read_text(encoding="utf-8"))
        assert payload["success"] is True
        assert payload["plan"]["status"] == "Completed"
        assert payload["metadata"]["total_steps"] == 4

    def test_prints_result(self, capsys, monkeypatch, reset_logging):
        monkeypatch.setenv("CONDUCTOR_RETRY_DELAY", "0")
        monkeypatch.setenv("CONDUCTOR_LOG_LEVEL", "ERROR")

        code = main(["Say hello", "--no-revision"])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["success"] is True

    def test_bad_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("CONDUCTOR_MAX_RETRIES", "lots")

        assert main(["anything"]) == 2
        assert "CONDUCTOR_MAX_RETRIES" in capsys.readouterr().err

    def test_bad_log_level(self, monkeypatch, reset_logging):
        monkeypatch.setenv("CONDUCTOR_LOG_LEVEL", "LOUD")
        assert main(["anything"]) == 2
