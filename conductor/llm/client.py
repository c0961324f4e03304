"""
Conductor - Completion Client

The oracle contract used for plan generation, revision and condition checks.
"""
from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

from .models import Conversation, ChatResponse

if TYPE_CHECKING:
    from ..executor.cancellation import CancellationToken


class CompletionClient(ABC):
    """
    Text completion backend.

    Implementations report backend failures through ChatResponse.fail();
    exceptions are reserved for faults they cannot classify.
    """

    @abstractmethod
    async def complete(
        self,
        conversation: Conversation,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> ChatResponse:
        """
        Complete a conversation.

        Args:
            conversation: Ordered messages
            cancel_token: Cancellation signal for the request

        Returns:
            ChatResponse with content or error
        """
