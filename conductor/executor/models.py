"""
Conductor - Plan Models

Data classes for execution: Plan, Step, SentinelStep and the sentinel
condition variants.
"""
import json
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


SENTINEL_STEP_TYPE = "SentinelPlanStep"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PlanStatus(str, Enum):
    """Plan execution status. Values are the wire names."""
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


# ==================== SENTINEL CONDITIONS ====================

@dataclass(frozen=True)
class IterationCount:
    """Stop after `count` checks."""
    count: int


@dataclass(frozen=True)
class Expression:
    """Stop when the oracle judges `text` to be true."""
    text: str


Condition = Union[IterationCount, Expression]


def parse_condition(value: Any) -> Condition:
    """
    Decode a raw wire condition.

    Whole numbers select IterationCount; everything else is an Expression.
    """
    if isinstance(value, (IterationCount, Expression)):
        return value
    if isinstance(value, bool):
        return Expression(str(value).lower())
    if isinstance(value, int):
        return IterationCount(value)
    if isinstance(value, float) and value.is_integer():
        return IterationCount(int(value))
    if value is None:
        return Expression("")
    return Expression(str(value))


def condition_to_wire(condition: Condition) -> Union[int, str]:
    if isinstance(condition, IterationCount):
        return condition.count
    return condition.text


# ==================== STEPS ====================

@dataclass
class Step:
    """Single unit of work dispatched to a named agent."""
    title: str
    details: str
    agent_name: str

    # Execution state
    is_completed: bool = False
    result: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    step_type: ClassVar[Optional[str]] = None

    @property
    def is_sentinel(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "title": self.title,
            "details": self.details,
            "agent_name": self.agent_name,
            "is_completed": self.is_completed,
            "result": self.result,
            "error": self.error,
            "metadata": dict(self.metadata),
            "started_at": _to_iso(self.started_at),
            "completed_at": _to_iso(self.completed_at),
        }

    @classmethod
    def _common_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "title": data.get("title") or "",
            "details": data.get("details") or "",
            "agent_name": data.get("agent_name") or "",
            "is_completed": bool(data.get("is_completed", False)),
            "result": data.get("result"),
            "error": data.get("error"),
            "metadata": dict(data.get("metadata") or {}),
            "started_at": _from_iso(data.get("started_at")),
            "completed_at": _from_iso(data.get("completed_at")),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        """Create from wire dictionary."""
        return cls(**cls._common_fields(data))


@dataclass
class SentinelStep(Step):
    """Step that polls a condition until it holds."""
    sleep_duration: int = 0
    condition: Condition = field(default_factory=lambda: Expression(""))

    # Run-time state (not persisted)
    current_iteration: int = 0
    error_count: int = 0
    last_check_time: Optional[datetime] = None
    sentinel_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    step_type: ClassVar[Optional[str]] = SENTINEL_STEP_TYPE

    def __post_init__(self):
        self.condition = parse_condition(self.condition)

    @property
    def is_sentinel(self) -> bool:
        return True

    @property
    def is_iteration_based(self) -> bool:
        return isinstance(self.condition, IterationCount)

    def reset_counters(self) -> None:
        self.current_iteration = 0
        self.error_count = 0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "step_type": SENTINEL_STEP_TYPE,
            "sleep_duration": self.sleep_duration,
            "condition": condition_to_wire(self.condition),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SentinelStep":
        return cls(
            **cls._common_fields(data),
            sleep_duration=int(data.get("sleep_duration") or 0),
            condition=parse_condition(data.get("condition")),
        )


def step_from_dict(data: Dict[str, Any]) -> Step:
    """Decode a step, choosing the concrete type from `step_type`."""
    if data.get("step_type") == SENTINEL_STEP_TYPE:
        return SentinelStep.from_dict(data)
    return Step.from_dict(data)


# ==================== PLAN ====================

@dataclass
class Plan:
    """
    Ordered, mutable sequence of steps with a status and a progress cursor.

    The orchestrator is the single writer. Mutators and snapshot reads share
    a re-entrant lock so observers never see a half-applied update.
    """
    title: str = ""
    description: str = ""
    steps: List[Step] = field(default_factory=list)
    status: PlanStatus = PlanStatus.NOT_STARTED
    current_step_index: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)
    revision_attempts: int = 0
    plan_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    @classmethod
    def create(
        cls,
        title: str,
        description: str = "",
        steps: Optional[List[Step]] = None,
    ) -> "Plan":
        """Create a new plan."""
        return cls(title=title, description=description, steps=list(steps or []))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def current_step(self) -> Optional[Step]:
        with self._lock:
            if 0 <= self.current_step_index < len(self.steps):
                return self.steps[self.current_step_index]
            return None

    @property
    def is_completed(self) -> bool:
        with self._lock:
            return all(s.is_completed for s in self.steps)

    @property
    def has_errors(self) -> bool:
        with self._lock:
            return any(s.error for s in self.steps)

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            for step in reversed(self.steps):
                if step.error:
                    return step.error
            return None

    @property
    def completed_steps(self) -> List[Step]:
        with self._lock:
            return [s for s in self.steps if s.is_completed]

    @property
    def pending_steps(self) -> List[Step]:
        with self._lock:
            return [s for s in self.steps if not s.is_completed]

    @property
    def sentinel_steps(self) -> List[SentinelStep]:
        with self._lock:
            return [s for s in self.steps if isinstance(s, SentinelStep)]

    @property
    def progress_percentage(self) -> float:
        with self._lock:
            if not self.steps:
                return 0.0
            return len(self.completed_steps) / len(self.steps) * 100

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def _touch(self) -> None:
        self.updated_at = utc_now()

    def add_step(self, step: Step) -> None:
        with self._lock:
            self.steps.append(step)
            self._touch()

    def start(self) -> None:
        """Mark in progress and rewind the cursor to the first step."""
        with self._lock:
            self.status = PlanStatus.IN_PROGRESS
            self.current_step_index = 0
            self._touch()

    def complete_current_step(
        self,
        result: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Complete the current step and advance the cursor.

        Returns:
            False if there is no current step
        """
        with self._lock:
            step = self.current_step
            if step is None:
                return False

            step.is_completed = True
            step.completed_at = utc_now()
            step.result = result
            step.error = None
            if metadata:
                step.metadata.update(metadata)

            self.current_step_index += 1

            if self.is_completed:
                self.status = PlanStatus.COMPLETED
            elif self.has_errors:
                self.status = PlanStatus.FAILED

            self._touch()
            return True

    def fail_current_step(self, error: str) -> bool:
        """Record an error on the current step and mark the plan failed."""
        with self._lock:
            step = self.current_step
            if step is None:
                return False

            step.error = error or "Step failed"
            step.completed_at = utc_now()
            self.status = PlanStatus.FAILED
            self._touch()
            return True

    def skip_current_step(self) -> bool:
        """Move past the current step without completing it."""
        with self._lock:
            if self.current_step is None:
                return False
            self.current_step_index += 1
            self._touch()
            return True

    def pause(self) -> None:
        with self._lock:
            self.status = PlanStatus.PAUSED
            self._touch()

    def resume(self) -> None:
        """Back to in progress without moving the cursor."""
        with self._lock:
            self.status = PlanStatus.IN_PROGRESS
            self._touch()

    def cancel(self) -> None:
        with self._lock:
            self.status = PlanStatus.CANCELLED
            self._touch()

    def mark_completed(self) -> None:
        with self._lock:
            self.status = PlanStatus.COMPLETED
            self._touch()

    def mark_failed(self) -> None:
        with self._lock:
            self.status = PlanStatus.FAILED
            self._touch()

    def replace_steps(self, steps: List[Step]) -> None:
        """Swap in a revised step list and restart from its first step."""
        with self._lock:
            self.steps = list(steps)
            self.current_step_index = 0
            self.status = PlanStatus.IN_PROGRESS
            self.revision_attempts += 1
            self._touch()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        with self._lock:
            return {
                "plan_id": self.plan_id,
                "title": self.title,
                "description": self.description,
                "steps": [s.to_dict() for s in self.steps],
                "status": self.status.value,
                "current_step_index": self.current_step_index,
                "created_at": _to_iso(self.created_at),
                "updated_at": _to_iso(self.updated_at),
                "metadata": dict(self.metadata),
                "revision_attempts": self.revision_attempts,
            }

    def snapshot(self) -> Dict[str, Any]:
        """Consistent point-in-time view for observers."""
        return self.to_dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        """Create from wire dictionary."""
        steps = [step_from_dict(s) for s in data.get("steps") or []]
        kwargs: Dict[str, Any] = {
            "title": data.get("title") or "",
            "description": data.get("description") or "",
            "steps": steps,
            "status": PlanStatus(data.get("status") or PlanStatus.NOT_STARTED.value),
            "current_step_index": int(data.get("current_step_index") or 0),
            "metadata": dict(data.get("metadata") or {}),
            "revision_attempts": int(data.get("revision_attempts") or 0),
        }
        if data.get("plan_id"):
            kwargs["plan_id"] = data["plan_id"]
        created_at = _from_iso(data.get("created_at"))
        if created_at:
            kwargs["created_at"] = created_at
        updated_at = _from_iso(data.get("updated_at"))
        if updated_at:
            kwargs["updated_at"] = updated_at

        plan = cls(**kwargs)
        if not 0 <= plan.current_step_index <= len(plan.steps):
            raise ValueError(
                f"current_step_index {plan.current_step_index} out of range for {len(plan.steps)} steps"
            )
        return plan

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent, default=str)

    @classmethod
    def from_json(cls, text: str) -> "Plan":
        return cls.from_dict(json.loads(text))

    def clone(self) -> "Plan":
        """Deep copy through the wire representation."""
        return Plan.from_dict(self.to_dict())
