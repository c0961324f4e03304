"""
Conductor - Sentinel Executor

Polling loop for sentinel steps: check a condition, sleep, repeat, until the
condition holds or a budget runs out. Every run is registered under its
sentinel id so it can be stopped from outside.
"""
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from .cancellation import CancelReason, CancellationToken, OperationCancelledError
from .models import SentinelStep, IterationCount, utc_now
from .step_executor import StepErrorKind, StepExecutionResult
from ..config import SentinelSettings, get_logger, log_error
from ..llm.client import CompletionClient
from ..llm.models import Conversation, Message
from ..llm.prompts import PromptBuilder, prompt_builder

_logger = get_logger("executor.sentinel")


class SentinelOutcome(str, Enum):
    """Terminal state of a sentinel run."""
    CONDITION_MET = "condition_met"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    MAX_ITERATIONS_EXCEEDED = "max_iterations_exceeded"
    ERROR_BUDGET_EXCEEDED = "error_budget_exceeded"
    CANCELLED = "cancelled"


@dataclass
class SentinelExecutorConfig:
    """Budgets and sleep policy for sentinel runs."""
    max_iterations: int = 1000
    max_execution_time_seconds: float = 3600.0
    max_errors: int = 10
    min_sleep_seconds: float = 1.0
    max_sleep_seconds: float = 600.0
    use_adaptive_sleep: bool = True
    error_backoff_seconds: float = 5.0
    allow_zero_sleep: bool = False

    @classmethod
    def from_settings(cls, settings: SentinelSettings) -> "SentinelExecutorConfig":
        return cls(
            max_iterations=settings.max_iterations,
            max_execution_time_seconds=settings.max_execution_time_seconds,
            max_errors=settings.max_errors,
            min_sleep_seconds=settings.min_sleep_seconds,
            max_sleep_seconds=settings.max_sleep_seconds,
            use_adaptive_sleep=settings.use_adaptive_sleep,
            error_backoff_seconds=settings.error_backoff_seconds,
            allow_zero_sleep=settings.allow_zero_sleep,
        )


@dataclass
class SentinelInfo:
    """Read-only view of a running sentinel."""
    sentinel_id: str
    step_title: str
    started_at: datetime
    current_iteration: int
    error_count: int
    is_running: bool = True

    def to_dict(self) -> Dict:
        return {
            "sentinel_id": self.sentinel_id,
            "step_title": self.step_title,
            "started_at": self.started_at.isoformat(),
            "current_iteration": self.current_iteration,
            "error_count": self.error_count,
            "is_running": self.is_running,
        }


@dataclass
class _RunningSentinel:
    token: CancellationToken
    step: SentinelStep
    started_at: datetime


def _format_duration(seconds: float) -> str:
    return str(timedelta(seconds=int(seconds)))


class SentinelExecutor:
    """
    Runs sentinel steps.

    Iteration conditions complete after N checks. Expression conditions ask
    the completion client and accept only a literal "true"/"false" reply;
    anything else counts as not met.
    """

    def __init__(
        self,
        client: CompletionClient,
        config: Optional[SentinelExecutorConfig] = None,
        prompts: Optional[PromptBuilder] = None,
    ):
        """
        Initialize SentinelExecutor.

        Args:
            client: Oracle for expression conditions
            config: Budgets and sleep policy
            prompts: Prompt builder for condition checks
        """
        self._client = client
        self._config = config or SentinelExecutorConfig()
        self._prompts = prompts or prompt_builder
        self._running: Dict[str, _RunningSentinel] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> SentinelExecutorConfig:
        return self._config

    # ==================== EXECUTION ====================

    async def execute_sentinel_step(
        self,
        step: SentinelStep,
        cancel_token: Optional[CancellationToken] = None,
    ) -> StepExecutionResult:
        """
        Poll until the step's condition holds or a budget runs out.

        Args:
            step: Sentinel step; its counters are reset first
            cancel_token: Caller cancellation signal

        Returns:
            StepExecutionResult with metadata["outcome"] set to a SentinelOutcome
        """
        parent = cancel_token or CancellationToken.none()
        run_token = parent.link(self._config.max_execution_time_seconds)
        log = _logger.bind(sentinel_id=step.sentinel_id, step=step.title)

        step.reset_counters()
        step.started_at = utc_now()
        start = time.monotonic()
        self._register(step, run_token)
        log.info("Sentinel started: %s (condition: %s)", step.title, step.condition)

        try:
            while not run_token.is_cancelled:
                try:
                    step.current_iteration += 1
                    step.last_check_time = utc_now()
                    log.debug("Sentinel check %d for '%s'", step.current_iteration, step.title)

                    if await self._evaluate_condition(step, run_token):
                        duration = _format_duration(time.monotonic() - start)
                        log.info(
                            "Sentinel condition met after %s and %d iterations",
                            duration, step.current_iteration,
                        )
                        return self._done(
                            step,
                            f"Condition met after {step.current_iteration} iterations in {duration}",
                            SentinelOutcome.CONDITION_MET,
                        )

                    if isinstance(step.condition, IterationCount) and step.current_iteration >= step.condition.count:
                        log.info("Sentinel reached iteration limit: %d", step.current_iteration)
                        return self._done(
                            step,
                            f"Completed {step.current_iteration} iterations",
                            SentinelOutcome.ITERATION_LIMIT_REACHED,
                        )

                    if step.current_iteration >= self._config.max_iterations:
                        log.warning("Sentinel exceeded maximum iterations: %d", self._config.max_iterations)
                        return self._failed(
                            step,
                            f"Exceeded maximum iterations ({self._config.max_iterations})",
                            SentinelOutcome.MAX_ITERATIONS_EXCEEDED,
                        )

                    await run_token.sleep(self.calculate_sleep_duration(step))

                except Exception as e:
                    # Only our own token stops the loop; a stray cancellation is a fault
                    if isinstance(e, OperationCancelledError) and run_token.is_cancelled:
                        break
                    step.error_count += 1
                    log_error(
                        log, e,
                        context=f"sentinel '{step.title}' iteration {step.current_iteration}",
                        error_count=step.error_count,
                    )

                    if step.error_count >= self._config.max_errors:
                        return self._failed(
                            step,
                            f"Exceeded maximum errors ({self._config.max_errors}). Last error: {e}",
                            SentinelOutcome.ERROR_BUDGET_EXCEEDED,
                        )

                    try:
                        await run_token.sleep(self.calculate_error_backoff(step))
                    except OperationCancelledError:
                        if run_token.is_cancelled:
                            break
                        raise

            reason = run_token.reason or CancelReason.CANCELLED
            log.info("Sentinel execution was cancelled or stopped (%s)", reason.value)
            return self._failed(
                step,
                "Sentinel execution was cancelled or stopped",
                SentinelOutcome.CANCELLED,
                kind=StepErrorKind.TIMED_OUT if reason == CancelReason.TIMEOUT else StepErrorKind.CANCELLED,
                reason=reason.value,
            )
        finally:
            self._deregister(step.sentinel_id, run_token)
            run_token.close()

    async def _evaluate_condition(self, step: SentinelStep, token: CancellationToken) -> bool:
        if isinstance(step.condition, IterationCount):
            return step.current_iteration >= step.condition.count

        condition = step.condition.text
        if not condition or not condition.strip():
            _logger.warning("Empty condition for sentinel step: %s", step.title)
            return False

        prompt = self._prompts.condition(condition, step.title, step.current_iteration)
        response = await token.run(
            self._client.complete(Conversation.of(Message.system(prompt)), token)
        )

        if not response.success or not response.content:
            _logger.warning("Condition check failed for '%s': %s", step.title, response.error)
            return False

        answer = response.content.strip().lower()
        if answer == "true":
            return True
        if answer != "false":
            _logger.warning("Unexpected condition reply for '%s': %r", step.title, response.content)
        return False

    @staticmethod
    def _done(step: SentinelStep, message: str, outcome: SentinelOutcome) -> StepExecutionResult:
        step.completed_at = utc_now()
        return StepExecutionResult.ok(
            message,
            {"outcome": outcome.value, "iterations": step.current_iteration, "error_count": step.error_count},
            attempts=step.current_iteration,
        )

    @staticmethod
    def _failed(
        step: SentinelStep,
        error: str,
        outcome: SentinelOutcome,
        kind: StepErrorKind = StepErrorKind.EXECUTION_FAILED,
        **extra,
    ) -> StepExecutionResult:
        return StepExecutionResult.fail(
            error,
            kind,
            attempts=step.current_iteration,
            metadata={
                "outcome": outcome.value,
                "iterations": step.current_iteration,
                "error_count": step.error_count,
                **extra,
            },
        )

    # ==================== SLEEP POLICY ====================

    def calculate_sleep_duration(self, step: SentinelStep) -> float:
        """
        Seconds to wait before the next check.

        The configured duration is clamped to [min_sleep, max_sleep]; with
        adaptive sleep each recorded error stretches it by 50%.
        """
        cfg = self._config
        if cfg.allow_zero_sleep and step.sleep_duration <= 0:
            base = 0.0
        else:
            base = min(max(float(step.sleep_duration), cfg.min_sleep_seconds), cfg.max_sleep_seconds)

        if cfg.use_adaptive_sleep and step.error_count > 0:
            base = min(base * (1 + step.error_count * 0.5), cfg.max_sleep_seconds)
        return base

    def calculate_error_backoff(self, step: SentinelStep) -> float:
        """Wait after a failed check: linear in error_count, capped at max_sleep."""
        if not self._config.use_adaptive_sleep:
            return self.calculate_sleep_duration(step)
        return min(step.error_count * self._config.error_backoff_seconds, self._config.max_sleep_seconds)

    # ==================== RUNNING SET ====================

    def _register(self, step: SentinelStep, token: CancellationToken) -> None:
        with self._lock:
            self._running[step.sentinel_id] = _RunningSentinel(token=token, step=step, started_at=utc_now())

    def _deregister(self, sentinel_id: str, token: CancellationToken) -> None:
        with self._lock:
            entry = self._running.get(sentinel_id)
            if entry is not None and entry.token is token:
                del self._running[sentinel_id]

    def stop_sentinel(self, sentinel_id: str) -> bool:
        """
        Stop a running sentinel.

        Returns:
            True if a run was stopped, False for unknown ids
        """
        with self._lock:
            entry = self._running.pop(sentinel_id, None)
        if entry is None:
            return False
        entry.token.cancel(CancelReason.STOPPED)
        _logger.info("Stopped sentinel %s (%s)", sentinel_id, entry.step.title)
        return True

    def stop_all_sentinels(self) -> int:
        """Stop every running sentinel. Returns how many were stopped."""
        with self._lock:
            ids = list(self._running)
        return sum(1 for sentinel_id in ids if self.stop_sentinel(sentinel_id))

    def list_running_sentinels(self) -> List[str]:
        """Snapshot of registered sentinel ids."""
        with self._lock:
            return list(self._running)

    def get_running_sentinels(self) -> List[SentinelInfo]:
        with self._lock:
            entries = list(self._running.items())
        return [
            SentinelInfo(
                sentinel_id=sentinel_id,
                step_title=entry.step.title,
                started_at=entry.started_at,
                current_iteration=entry.step.current_iteration,
                error_count=entry.step.error_count,
            )
            for sentinel_id, entry in entries
        ]

    def is_running(self, sentinel_id: str) -> bool:
        with self._lock:
            return sentinel_id in self._running
