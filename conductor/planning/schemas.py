"""
Conductor - Plan Documents (Pydantic)

JSON contract exchanged with the oracle when generating or revising plans.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..executor.models import (
    Plan,
    Step,
    SentinelStep,
    SENTINEL_STEP_TYPE,
    parse_condition,
    condition_to_wire,
)


class StepDocument(BaseModel):
    """One step as the oracle writes it."""
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    details: str = ""
    agent_name: str = ""
    step_type: Optional[str] = None
    sleep_duration: Optional[int] = None
    condition: Any = None  # int -> iteration count, text -> expression

    @property
    def is_sentinel(self) -> bool:
        return self.step_type == SENTINEL_STEP_TYPE

    def to_step(self) -> Step:
        if self.is_sentinel:
            return SentinelStep(
                title=self.title,
                details=self.details,
                agent_name=self.agent_name,
                sleep_duration=self.sleep_duration or 0,
                condition=parse_condition(self.condition),
            )
        return Step(title=self.title, details=self.details, agent_name=self.agent_name)

    @classmethod
    def from_step(cls, step: Step) -> "StepDocument":
        if isinstance(step, SentinelStep):
            return cls(
                title=step.title,
                details=step.details,
                agent_name=step.agent_name,
                step_type=SENTINEL_STEP_TYPE,
                sleep_duration=step.sleep_duration,
                condition=condition_to_wire(step.condition),
            )
        return cls(title=step.title, details=step.details, agent_name=step.agent_name)


class PlanDocument(BaseModel):
    """Whole plan as the oracle writes it."""
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    description: str = ""
    steps: List[StepDocument] = Field(default_factory=list)

    def to_plan(self) -> Plan:
        return Plan.create(
            title=self.title,
            description=self.description,
            steps=[s.to_step() for s in self.steps],
        )

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanDocument":
        return cls(
            title=plan.title,
            description=plan.description,
            steps=[StepDocument.from_step(s) for s in plan.steps],
        )

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)
