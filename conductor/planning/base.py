"""
Conductor - Plan Generator Contract
"""
from abc import ABC, abstractmethod
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..executor.cancellation import CancellationToken
    from ..executor.models import Plan


class PlanningError(Exception):
    """Base planning error."""
    pass


class PlanGenerationError(PlanningError):
    """No valid plan could be produced from the user input."""
    pass


class PlanRevisionError(PlanningError):
    """The plan could not be revised."""
    pass


class PlanParseError(PlanningError):
    """Oracle reply does not contain a readable plan document."""
    pass


class PlanValidationError(PlanningError):
    """Plan is structurally invalid."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid plan: " + "; ".join(self.problems))


class PlanGenerator(ABC):
    """Turns user intent, or failure feedback, into a Plan."""

    @abstractmethod
    async def generate_plan(
        self,
        user_input: str,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> "Plan":
        """
        Raises:
            PlanGenerationError: If no valid plan could be produced
        """

    @abstractmethod
    async def revise_plan(
        self,
        plan: "Plan",
        feedback: str,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> "Plan":
        """
        Raises:
            PlanRevisionError: If the revision failed
        """
