"""
Conductor - Planning
"""
from .base import (
    PlanGenerator,
    PlanningError,
    PlanGenerationError,
    PlanRevisionError,
    PlanParseError,
    PlanValidationError,
)
from .schemas import StepDocument, PlanDocument
from .engine import PlanningEngine, PlanningEngineConfig

__all__ = [
    "PlanGenerator",
    "PlanningError",
    "PlanGenerationError",
    "PlanRevisionError",
    "PlanParseError",
    "PlanValidationError",
    "StepDocument",
    "PlanDocument",
    "PlanningEngine",
    "PlanningEngineConfig",
]
