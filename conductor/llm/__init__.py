"""
Conductor - Completion Oracle
"""
from .models import MessageRole, Message, Conversation, Usage, ChatResponse
from .client import CompletionClient
from .prompts import (
    PromptBuilder,
    prompt_builder,
    SYSTEM_PROMPTS,
    PLANNING_PROMPT,
    REVISION_PROMPT,
    CONDITION_PROMPT,
)
from .mock import MockCompletionClient, DEFAULT_PLAN

__all__ = [
    "MessageRole",
    "Message",
    "Conversation",
    "Usage",
    "ChatResponse",
    "CompletionClient",
    "PromptBuilder",
    "prompt_builder",
    "SYSTEM_PROMPTS",
    "PLANNING_PROMPT",
    "REVISION_PROMPT",
    "CONDITION_PROMPT",
    "MockCompletionClient",
    "DEFAULT_PLAN",
]
