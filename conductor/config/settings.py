"""
Conductor - Configuration Settings
"""
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = "CONDUCTOR_"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _env(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _env(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _env(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _env(env, name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


def _env_list(env: Mapping[str, str], name: str) -> List[str]:
    raw = _env(env, name)
    if raw is None:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class StepExecutorSettings:
    """Single-step execution limits."""
    step_timeout_seconds: float = 300.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    detailed_logging: bool = True


@dataclass
class SentinelSettings:
    """Polling loop limits for sentinel steps."""
    max_iterations: int = 1000
    max_execution_time_seconds: float = 3600.0
    max_errors: int = 10
    min_sleep_seconds: float = 1.0
    max_sleep_seconds: float = 600.0
    use_adaptive_sleep: bool = True
    error_backoff_seconds: float = 5.0
    allow_zero_sleep: bool = False


@dataclass
class OrchestratorSettings:
    """Plan control loop behaviour."""
    enable_auto_revision: bool = True
    max_revision_attempts: int = 3
    continue_on_failure: bool = False
    revise_when_continuing: bool = True


@dataclass
class PlanningSettings:
    """Plan generation limits."""
    max_steps: int = 20
    max_retries: int = 3
    enable_validation: bool = True
    available_agents: List[str] = field(default_factory=list)


@dataclass
class LoggingSettings:
    """Logging output."""
    level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None


@dataclass
class Settings:
    """Main settings container."""
    step_executor: StepExecutorSettings = field(default_factory=StepExecutorSettings)
    sentinel: SentinelSettings = field(default_factory=SentinelSettings)
    orchestrator: OrchestratorSettings = field(default_factory=OrchestratorSettings)
    planning: PlanningSettings = field(default_factory=PlanningSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv: bool = False,
    ) -> "Settings":
        """
        Build settings from CONDUCTOR_* environment variables.

        Args:
            env: Mapping to read instead of os.environ
            dotenv: Load a .env file into os.environ first

        Raises:
            ValueError: If a variable is set but malformed
        """
        if dotenv:
            load_dotenv()
        if env is None:
            env = os.environ

        debug = env.get("APP_ENV", "").lower() in ("development", "dev")

        return cls(
            step_executor=StepExecutorSettings(
                step_timeout_seconds=_env_float(env, "STEP_TIMEOUT", 300.0),
                max_retries=_env_int(env, "MAX_RETRIES", 3),
                retry_delay_seconds=_env_float(env, "RETRY_DELAY", 1.0),
                detailed_logging=_env_bool(env, "DETAILED_LOGGING", True),
            ),
            sentinel=SentinelSettings(
                max_iterations=_env_int(env, "SENTINEL_MAX_ITERATIONS", 1000),
                max_execution_time_seconds=_env_float(env, "SENTINEL_MAX_EXECUTION_TIME", 3600.0),
                max_errors=_env_int(env, "SENTINEL_MAX_ERRORS", 10),
                min_sleep_seconds=_env_float(env, "SENTINEL_MIN_SLEEP", 1.0),
                max_sleep_seconds=_env_float(env, "SENTINEL_MAX_SLEEP", 600.0),
                use_adaptive_sleep=_env_bool(env, "SENTINEL_ADAPTIVE_SLEEP", True),
                error_backoff_seconds=_env_float(env, "SENTINEL_ERROR_BACKOFF", 5.0),
                allow_zero_sleep=_env_bool(env, "SENTINEL_ALLOW_ZERO_SLEEP", False),
            ),
            orchestrator=OrchestratorSettings(
                enable_auto_revision=_env_bool(env, "AUTO_REVISION", True),
                max_revision_attempts=_env_int(env, "MAX_REVISION_ATTEMPTS", 3),
                continue_on_failure=_env_bool(env, "CONTINUE_ON_FAILURE", False),
                revise_when_continuing=_env_bool(env, "REVISE_WHEN_CONTINUING", True),
            ),
            planning=PlanningSettings(
                max_steps=_env_int(env, "PLAN_MAX_STEPS", 20),
                max_retries=_env_int(env, "PLAN_MAX_RETRIES", 3),
                enable_validation=_env_bool(env, "PLAN_VALIDATION", True),
                available_agents=_env_list(env, "AVAILABLE_AGENTS"),
            ),
            logging=LoggingSettings(
                level=_env(env, "LOG_LEVEL") or ("DEBUG" if debug else "INFO"),
                json_logs=_env_bool(env, "JSON_LOGS", not debug),
                log_file=_env(env, "LOG_FILE"),
            ),
        )


# Global settings instance
settings = Settings()
