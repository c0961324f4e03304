"""
Conductor - Agent Contract

An agent is a named capability: free-text instructions in, content or error out.
"""
import asyncio
import inspect
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..executor.cancellation import CancellationToken


@dataclass
class AgentResponse:
    """Result of one agent invocation."""
    success: bool
    content: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: Optional[int] = None
    agent_name: Optional[str] = None

    @classmethod
    def ok(cls, content: str, **metadata) -> "AgentResponse":
        return cls(success=True, content=content, metadata=metadata)

    @classmethod
    def fail(cls, error: str, exception: Optional[BaseException] = None, **metadata) -> "AgentResponse":
        if exception is not None:
            metadata["exception"] = f"{type(exception).__name__}: {exception}"
        return cls(success=False, error=error, metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "content": self.content,
            "error": self.error,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": self.duration_ms,
            "agent_name": self.agent_name,
        }


@dataclass
class AgentCapabilities:
    """Self-description an agent offers to planners and UIs."""
    name: str
    description: str = ""
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "tags": list(self.tags)}


class Agent(ABC):
    """
    Executable capability.

    Implementations report failures by returning AgentResponse.fail().
    Raising is treated as a fault by the step executor and retried.
    """

    name: str = "agent"
    description: str = ""

    @abstractmethod
    async def execute(
        self,
        input_text: str,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> AgentResponse:
        """
        Run the capability.

        Args:
            input_text: Step details
            cancel_token: Fires on timeout or caller cancellation
        """

    def get_capabilities(self) -> AgentCapabilities:
        return AgentCapabilities(name=self.name, description=self.description)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class FunctionAgent(Agent):
    """
    Wrap a plain callable as an agent.

    The callable takes the input text and returns a string, a dict
    (used as content/metadata) or an AgentResponse. Coroutine functions are
    awaited; sync functions run in a worker thread.
    """

    def __init__(self, name: str, func: Callable[..., Any], description: str = ""):
        self.name = name
        self.description = description or (func.__doc__ or "").strip()
        self._func = func

    async def execute(
        self,
        input_text: str,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> AgentResponse:
        start = time.monotonic()

        if inspect.iscoroutinefunction(self._func):
            value = await self._func(input_text)
        else:
            value = await asyncio.to_thread(self._func, input_text)

        response = self._to_response(value)
        response.agent_name = self.name
        response.duration_ms = int((time.monotonic() - start) * 1000)
        return response

    @staticmethod
    def _to_response(value: Any) -> AgentResponse:
        if isinstance(value, AgentResponse):
            return value
        if isinstance(value, dict):
            data = dict(value)
            content = data.pop("content", None)
            return AgentResponse.ok("" if content is None else str(content), **data)
        return AgentResponse.ok("" if value is None else str(value))
