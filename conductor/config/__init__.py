"""
Conductor - Configuration
"""
from .settings import (
    Settings,
    StepExecutorSettings,
    SentinelSettings,
    OrchestratorSettings,
    PlanningSettings,
    LoggingSettings,
    settings,
)
from .logging import (
    setup_logging,
    get_logger,
    log_step_event,
    log_llm_request,
    log_error,
    JSONFormatter,
    ColoredFormatter,
    LoggerAdapter,
)

__all__ = [
    "Settings",
    "StepExecutorSettings",
    "SentinelSettings",
    "OrchestratorSettings",
    "PlanningSettings",
    "LoggingSettings",
    "settings",
    # Logging
    "setup_logging",
    "get_logger",
    "log_step_event",
    "log_llm_request",
    "log_error",
    "JSONFormatter",
    "ColoredFormatter",
    "LoggerAdapter",
]
