"""
Conductor - Mock Completion Client

Canned oracle for demos and tests. No network access.
"""
import asyncio
import json
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Union, TYPE_CHECKING

from .client import CompletionClient
from .models import Conversation, ChatResponse, Usage
from ..config import get_logger, log_llm_request

if TYPE_CHECKING:
    from ..executor.cancellation import CancellationToken

_logger = get_logger("llm.mock")

ScriptedReply = Union[str, ChatResponse, BaseException]


DEFAULT_PLAN: Dict[str, Any] = {
    "title": "AI Research and Summary Plan",
    "description": "A comprehensive plan to research and write a summary about artificial intelligence",
    "steps": [
        {
            "title": "Gather AI Definitions",
            "details": "Research and collect various definitions of artificial intelligence from reliable sources",
            "agent_name": "research",
        },
        {
            "title": "Identify Key AI Areas",
            "details": "List and describe the main areas and types of AI (ML, NLP, Computer Vision, etc.)",
            "agent_name": "research",
        },
        {
            "title": "Document Current Applications",
            "details": "Research current real-world applications and use cases of AI technology",
            "agent_name": "research",
        },
        {
            "title": "Write Summary Report",
            "details": "Compile research into a coherent, well-structured summary document",
            "agent_name": "task",
        },
    ],
}


class MockCompletionClient(CompletionClient):
    """
    Mock oracle.

    Replies come from the scripted queue first. Once it is empty the reply is
    picked from the prompt: a JSON plan for planning and revision prompts,
    `condition_result` for condition checks, an acknowledgement otherwise.

    Args:
        responses: Scripted replies; exceptions in the queue are raised
        plan: Plan document returned for planning prompts
        condition_result: Reply to condition checks
        delay_seconds: Simulated latency (interruptible by the token)
    """

    def __init__(
        self,
        responses: Optional[List[ScriptedReply]] = None,
        plan: Optional[Dict[str, Any]] = None,
        condition_result: bool = False,
        delay_seconds: float = 0.0,
    ):
        self._queue: Deque[ScriptedReply] = deque(responses or [])
        self._plan = plan or DEFAULT_PLAN
        self.condition_result = condition_result
        self.delay_seconds = delay_seconds
        self.conversations: List[Conversation] = []

    @property
    def call_count(self) -> int:
        return len(self.conversations)

    def enqueue(self, *replies: ScriptedReply) -> None:
        """Append scripted replies."""
        self._queue.extend(replies)

    async def complete(
        self,
        conversation: Conversation,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> ChatResponse:
        self.conversations.append(conversation)
        start = time.monotonic()

        if cancel_token is not None:
            await cancel_token.sleep(self.delay_seconds)
        elif self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if self._queue:
            reply = self._queue.popleft()
            if isinstance(reply, BaseException):
                raise reply
            response = reply if isinstance(reply, ChatResponse) else self._ok(conversation, reply)
        else:
            response = self._ok(conversation, self._canned(conversation.text))

        log_llm_request(
            _logger,
            purpose="mock",
            prompt_length=len(conversation.text),
            response_length=len(response.content or ""),
            duration_ms=(time.monotonic() - start) * 1000,
        )
        return response

    def _ok(self, conversation: Conversation, content: str) -> ChatResponse:
        # Rough token estimate: 4 chars per token
        usage = Usage(
            prompt_tokens=len(conversation.text) // 4,
            completion_tokens=len(content) // 4,
        )
        return ChatResponse.ok(content, usage=usage, provider="mock")

    def _canned(self, prompt: str) -> str:
        lowered = prompt.lower()

        if "condition to check:" in lowered:
            return "true" if self.condition_result else "false"

        if "respond only with the" in lowered and "json plan" in lowered:
            return json.dumps(self._plan, ensure_ascii=False, indent=2)

        last_line = prompt.strip().splitlines()[-1] if prompt.strip() else ""
        return (
            f"I understand you're asking about: '{last_line}'. This is a mock response "
            "demonstrating the agent system. A real deployment would use an actual language model."
        )
