"""
Conductor - Planning Engine

Generates and revises plans through the completion client.
"""
import time
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from pydantic import ValidationError

from .base import (
    PlanGenerator,
    PlanGenerationError,
    PlanRevisionError,
    PlanParseError,
    PlanValidationError,
    PlanningError,
)
from .schemas import PlanDocument
from ..config import PlanningSettings, get_logger, log_llm_request, log_error
from ..executor.cancellation import CancellationToken, OperationCancelledError
from ..executor.models import Plan
from ..llm.client import CompletionClient
from ..llm.models import Conversation, Message
from ..llm.prompts import PromptBuilder

if TYPE_CHECKING:
    from ..agents.registry import AgentRegistry

_logger = get_logger("planning.engine")


@dataclass
class PlanningEngineConfig:
    """Plan generation limits."""
    max_steps: int = 20
    max_retries: int = 3
    enable_validation: bool = True
    available_agents: List[str] = field(default_factory=list)  # empty = any agent
    planning_prompt_template: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: PlanningSettings) -> "PlanningEngineConfig":
        return cls(
            max_steps=settings.max_steps,
            max_retries=settings.max_retries,
            enable_validation=settings.enable_validation,
            available_agents=list(settings.available_agents),
        )


class PlanningEngine(PlanGenerator):
    """
    Planning Engine - turns user input into a Plan.

    Flow:
        1. Build planning prompt (agents, step limit, task)
        2. Ask the oracle
        3. Extract and parse the JSON document
        4. Validate structure
        5. Retry on any failure, up to max_retries
    """

    def __init__(
        self,
        client: CompletionClient,
        config: Optional[PlanningEngineConfig] = None,
        registry: Optional["AgentRegistry"] = None,
        prompts: Optional[PromptBuilder] = None,
    ):
        """
        Initialize PlanningEngine.

        Args:
            client: Oracle used for generation and revision
            config: Planning limits
            registry: Source of agent names for prompts when no allowlist is configured
            prompts: Prompt builder
        """
        self._client = client
        self._config = config or PlanningEngineConfig()
        self._registry = registry
        self._prompts = prompts or PromptBuilder(planning_template=self._config.planning_prompt_template)

    @property
    def config(self) -> PlanningEngineConfig:
        return self._config

    def _agent_names(self) -> List[str]:
        if self._config.available_agents:
            return list(self._config.available_agents)
        if self._registry is not None:
            return sorted(self._registry.list())
        return []

    async def _ask(self, prompt: str, purpose: str, token: CancellationToken) -> str:
        start = time.monotonic()
        response = await self._client.complete(Conversation.of(Message.system(prompt)), token)
        log_llm_request(
            _logger,
            purpose=purpose,
            prompt_length=len(prompt),
            response_length=len(response.content or ""),
            duration_ms=(time.monotonic() - start) * 1000,
        )
        if not response.success or not response.content:
            raise PlanningError(f"Oracle call failed: {response.error or 'empty response'}")
        return response.content

    # ==================== GENERATION ====================

    async def generate_plan(
        self,
        user_input: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Plan:
        """
        Generate a plan for the user input.

        Raises:
            PlanGenerationError: After max_retries failed attempts
            OperationCancelledError: If the token fires
        """
        token = cancel_token or CancellationToken.none()
        prompt = self._prompts.planning(
            user_input,
            available_agents=self._agent_names(),
            max_steps=self._config.max_steps,
        )
        attempts = max(1, self._config.max_retries)
        last_error: Optional[str] = None

        _logger.info("Generating plan for input (%d chars)", len(user_input))

        for attempt in range(1, attempts + 1):
            token.raise_if_cancelled()
            try:
                content = await self._ask(prompt, "plan_generation", token)
                plan = self.parse_plan(content)
                if self._config.enable_validation:
                    self.check_plan(plan)
            except OperationCancelledError:
                raise
            except PlanningError as e:
                last_error = str(e)
                _logger.warning("Plan generation attempt %d/%d failed: %s", attempt, attempts, e)
                continue
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"
                log_error(_logger, e, context=f"plan generation attempt {attempt}")
                continue

            plan.metadata.setdefault("user_input", user_input)
            _logger.info("Generated plan '%s' with %d steps", plan.title, len(plan.steps))
            return plan

        raise PlanGenerationError(
            f"Failed to generate plan after {attempts} attempts. Last error: {last_error}"
        )

    async def revise_plan(
        self,
        plan: Plan,
        feedback: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Plan:
        """
        Revise a plan given feedback. Single attempt.

        The revised plan keeps the original plan_id and created_at.

        Raises:
            PlanRevisionError: If the oracle reply is unusable
            OperationCancelledError: If the token fires
        """
        token = cancel_token or CancellationToken.none()
        _logger.info("Revising plan '%s' based on feedback: %s", plan.title, feedback)

        prompt = self._prompts.revision(
            current_plan=plan.to_json(indent=2),
            feedback=feedback,
            available_agents=self._agent_names(),
            max_steps=self._config.max_steps,
        )

        try:
            content = await self._ask(prompt, "plan_revision", token)
            revised = self.parse_plan(content)
            if self._config.enable_validation:
                self.check_plan(revised)
        except OperationCancelledError:
            raise
        except Exception as e:
            log_error(_logger, e, context="plan revision")
            raise PlanRevisionError(f"Failed to revise plan: {e}") from e

        revised.plan_id = plan.plan_id
        revised.created_at = plan.created_at
        revised.metadata = {**plan.metadata, **revised.metadata}
        _logger.info("Revised plan '%s' has %d steps", revised.title, len(revised.steps))
        return revised

    # ==================== PARSING ====================

    def parse_plan(self, text: str) -> Plan:
        """
        Parse the plan document from an oracle reply.

        Replies often wrap the JSON in prose or markdown fences, so only the
        span from the first '{' to the last '}' is parsed.

        Raises:
            PlanParseError: If no valid document is found
        """
        start = text.find("{")
        end = text.rfind("}")
        if start < 0 or end <= start:
            raise PlanParseError("No JSON object found in response")

        try:
            document = PlanDocument.model_validate_json(text[start:end + 1])
        except ValidationError as e:
            raise PlanParseError(f"Invalid plan document: {e.error_count()} validation errors") from e

        return document.to_plan()

    # ==================== VALIDATION ====================

    def check_plan(self, plan: Plan) -> None:
        """
        Structural checks.

        Raises:
            PlanValidationError: Listing every problem found
        """
        problems: List[str] = []

        if not plan.title or not plan.title.strip():
            problems.append("Plan title is empty")

        if not plan.steps:
            problems.append("Plan has no steps")
        elif len(plan.steps) > self._config.max_steps:
            problems.append(f"Plan has {len(plan.steps)} steps, maximum is {self._config.max_steps}")

        allowed = set(self._config.available_agents)
        for number, step in enumerate(plan.steps, start=1):
            if not step.title.strip():
                problems.append(f"Step {number} has no title")
            if not step.details.strip():
                problems.append(f"Step {number} has no details")
            if not step.agent_name.strip():
                problems.append(f"Step {number} has no agent")
            elif allowed and step.agent_name not in allowed:
                problems.append(f"Step {number} uses unknown agent '{step.agent_name}'")

        if problems:
            raise PlanValidationError(problems)

    def validate_plan(self, plan: Optional[Plan]) -> bool:
        """True if the plan passes check_plan()."""
        if plan is None:
            _logger.warning("Plan validation failed: plan is None")
            return False
        try:
            self.check_plan(plan)
        except PlanValidationError as e:
            _logger.warning("Plan validation failed: %s", "; ".join(e.problems))
            return False
        return True
