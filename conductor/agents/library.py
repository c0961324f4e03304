"""
Conductor - Built-in Agents

LLM-backed agents: each one wraps the completion client with its own
system prompt and response metadata.
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .base import Agent, AgentResponse, AgentCapabilities
from ..config import get_logger
from ..executor.cancellation import CancellationToken, OperationCancelledError
from ..llm import CompletionClient, Conversation, Message, PromptBuilder, prompt_builder


class LLMAgent(Agent):
    """
    Agent that answers through the completion client.

    Subclasses set `prompt_key`, the error texts and `build_metadata()`.
    Client failures and faults become AgentResponse.fail().
    """

    prompt_key = "chat"
    empty_input_error = "Input cannot be empty"
    failure_prefix = "Failed to process request"
    fault_message = "An error occurred while processing the request"
    default_content = "Done"

    def __init__(
        self,
        client: CompletionClient,
        name: Optional[str] = None,
        system_prompt: Optional[str] = None,
        prompts: Optional[PromptBuilder] = None,
    ):
        self.client = client
        if name:
            self.name = name
        self._prompts = prompts or prompt_builder
        self.system_prompt = system_prompt or self._prompts.get_system_prompt(self.prompt_key)
        self._logger = get_logger(f"agents.{self.name}")

    def build_conversation(self, input_text: str) -> Conversation:
        return Conversation.of(
            Message.system(self.system_prompt),
            Message.user(input_text),
        )

    def build_metadata(self, input_text: str) -> Dict[str, Any]:
        return {}

    async def execute(
        self,
        input_text: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AgentResponse:
        if not input_text or not input_text.strip():
            return self._finish(AgentResponse.fail(self.empty_input_error), time.monotonic())

        start = time.monotonic()
        self._logger.info("%s processing input (%d chars)", type(self).__name__, len(input_text))

        try:
            response = await self.client.complete(self.build_conversation(input_text), cancel_token)
        except OperationCancelledError:
            raise
        except Exception as e:
            self._logger.error("Error in %s execution: %s", type(self).__name__, e)
            return self._finish(AgentResponse.fail(self.fault_message, exception=e), start)

        if not response.success:
            self._logger.warning("%s completion failed: %s", type(self).__name__, response.error)
            return self._finish(AgentResponse.fail(f"{self.failure_prefix}: {response.error}"), start)

        metadata = self.build_metadata(input_text)
        if response.usage:
            metadata["usage"] = response.usage.to_dict()
        return self._finish(AgentResponse.ok(response.content or self.default_content, **metadata), start)

    def _finish(self, response: AgentResponse, start: float) -> AgentResponse:
        response.agent_name = self.name
        response.duration_ms = int((time.monotonic() - start) * 1000)
        return response

    def get_capabilities(self) -> AgentCapabilities:
        return AgentCapabilities(name=self.name, description=self.description, tags=["llm"])


class ChatAgent(LLMAgent):
    """General conversation."""
    name = "chat"
    description = "General purpose assistant for open questions"
    prompt_key = "chat"


class TaskAgent(LLMAgent):
    """Executes a concrete task and reports what was done."""
    name = "task"
    description = "Executes concrete tasks and reports completion"
    prompt_key = "task"
    empty_input_error = "Task input cannot be empty"
    failure_prefix = "Failed to process task"
    fault_message = "An error occurred during task execution"
    default_content = "Task completed"

    def build_metadata(self, input_text: str) -> Dict[str, Any]:
        return {
            "task": input_text,
            "agent_type": "TaskAgent",
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }


class ResearchAgent(LLMAgent):
    """Gathers and synthesizes information on a topic."""
    name = "research"
    description = "Gathers, analyzes and synthesizes information"
    prompt_key = "research"
    empty_input_error = "Research query cannot be empty"
    failure_prefix = "Failed to complete research"
    fault_message = "An error occurred during research"
    default_content = "Research completed"

    def build_metadata(self, input_text: str) -> Dict[str, Any]:
        return {
            "research_query": input_text,
            "agent_type": "ResearchAgent",
            "research_depth": "comprehensive",
            "research_completed_at": datetime.now(timezone.utc).isoformat(),
        }


BUILTIN_AGENTS = (ChatAgent, TaskAgent, ResearchAgent)
