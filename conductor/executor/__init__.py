"""
Conductor - Executor

Plan model, cancellation, step and sentinel execution, orchestration.
"""
from .models import (
    Plan,
    PlanStatus,
    Step,
    SentinelStep,
    IterationCount,
    Expression,
    Condition,
    parse_condition,
    condition_to_wire,
    step_from_dict,
    SENTINEL_STEP_TYPE,
)
from .cancellation import CancellationToken, CancelReason, OperationCancelledError
from .step_executor import (
    StepExecutor,
    StepExecutorConfig,
    StepExecutionResult,
    StepErrorKind,
    BatchExecutionResult,
)
from .sentinel_executor import (
    SentinelExecutor,
    SentinelExecutorConfig,
    SentinelOutcome,
    SentinelInfo,
)
from .orchestrator import (
    Orchestrator,
    OrchestratorConfig,
    OrchestratorResult,
    PlanAlreadyRunningError,
)

__all__ = [
    # Models
    "Plan",
    "PlanStatus",
    "Step",
    "SentinelStep",
    "IterationCount",
    "Expression",
    "Condition",
    "parse_condition",
    "condition_to_wire",
    "step_from_dict",
    "SENTINEL_STEP_TYPE",
    # Cancellation
    "CancellationToken",
    "CancelReason",
    "OperationCancelledError",
    # Steps
    "StepExecutor",
    "StepExecutorConfig",
    "StepExecutionResult",
    "StepErrorKind",
    "BatchExecutionResult",
    # Sentinels
    "SentinelExecutor",
    "SentinelExecutorConfig",
    "SentinelOutcome",
    "SentinelInfo",
    # Orchestration
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorResult",
    "PlanAlreadyRunningError",
]
