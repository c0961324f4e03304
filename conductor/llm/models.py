"""
Conductor - Completion Models

Data classes for oracle conversations and responses.
"""
from dataclasses import dataclass, field
from typing import Optional, Any, Dict, List
from enum import Enum


class MessageRole(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """Chat message."""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "role": self.role.value,
            "content": self.content,
        }

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content)


@dataclass
class Conversation:
    """Ordered list of messages sent to the oracle."""
    messages: List[Message] = field(default_factory=list)

    def add(self, message: Message) -> "Conversation":
        self.messages.append(message)
        return self

    @property
    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None

    @property
    def text(self) -> str:
        """All message contents joined, for logging and matching."""
        return "\n".join(m.content for m in self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    def to_dict(self) -> List[Dict[str, str]]:
        return [m.to_dict() for m in self.messages]

    @classmethod
    def of(cls, *messages: Message) -> "Conversation":
        return cls(messages=list(messages))


@dataclass
class Usage:
    """Token usage."""
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ChatResponse:
    """Response from the oracle."""
    success: bool
    content: Optional[str] = None
    error: Optional[str] = None
    usage: Optional[Usage] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, content: str, usage: Optional[Usage] = None, **metadata) -> "ChatResponse":
        return cls(success=True, content=content, usage=usage, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata) -> "ChatResponse":
        return cls(success=False, error=error, metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "content": self.content,
            "error": self.error,
            "usage": self.usage.to_dict() if self.usage else None,
            "metadata": self.metadata,
        }
