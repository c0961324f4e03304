"""
Conductor - Plan orchestration

Drives plans of agent steps to completion: retries, timeouts, sentinel
polling, auto-revision, pause/resume/cancel.
"""
from .config import Settings, settings, setup_logging, get_logger
from .executor import (
    Plan,
    PlanStatus,
    Step,
    SentinelStep,
    IterationCount,
    Expression,
    CancellationToken,
    CancelReason,
    OperationCancelledError,
    StepExecutor,
    StepExecutorConfig,
    StepExecutionResult,
    BatchExecutionResult,
    SentinelExecutor,
    SentinelExecutorConfig,
    Orchestrator,
    OrchestratorConfig,
    OrchestratorResult,
)
from .agents import Agent, AgentResponse, AgentRegistry, FunctionAgent
from .llm import CompletionClient, ChatResponse, MockCompletionClient
from .planning import PlanningEngine, PlanningEngineConfig, PlanGenerationError, PlanRevisionError
from .factory import create_orchestrator

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "settings",
    "setup_logging",
    "get_logger",
    "Plan",
    "PlanStatus",
    "Step",
    "SentinelStep",
    "IterationCount",
    "Expression",
    "CancellationToken",
    "CancelReason",
    "OperationCancelledError",
    "StepExecutor",
    "StepExecutorConfig",
    "StepExecutionResult",
    "BatchExecutionResult",
    "SentinelExecutor",
    "SentinelExecutorConfig",
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorResult",
    "Agent",
    "AgentResponse",
    "AgentRegistry",
    "FunctionAgent",
    "CompletionClient",
    "ChatResponse",
    "MockCompletionClient",
    "PlanningEngine",
    "PlanningEngineConfig",
    "PlanGenerationError",
    "PlanRevisionError",
    "create_orchestrator",
]
