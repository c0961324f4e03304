"""
Conductor - Step Executor

Runs steps against registered agents with per-attempt timeouts and bounded
retries, one at a time or as a bounded-concurrency batch.
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .cancellation import CancellationToken, OperationCancelledError
from .models import Step, utc_now
from ..agents.base import AgentResponse
from ..agents.registry import AgentRegistry
from ..config import StepExecutorSettings, get_logger, log_step_event, log_error

_logger = get_logger("executor.step")


class StepErrorKind(str, Enum):
    """Why a step failed."""
    AGENT_NOT_FOUND = "agent_not_found"      # Not retried
    TIMED_OUT = "timed_out"                  # Not retried
    CANCELLED = "cancelled"                  # Not retried
    EXECUTION_FAILED = "execution_failed"    # Retried up to max_retries


@dataclass
class StepExecutorConfig:
    """Retry and timeout policy for single steps."""
    step_timeout_seconds: float = 300.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    detailed_logging: bool = True

    @classmethod
    def from_settings(cls, settings: StepExecutorSettings) -> "StepExecutorConfig":
        return cls(
            step_timeout_seconds=settings.step_timeout_seconds,
            max_retries=settings.max_retries,
            retry_delay_seconds=settings.retry_delay_seconds,
            detailed_logging=settings.detailed_logging,
        )


@dataclass
class StepExecutionResult:
    """Outcome of one step (or one sentinel run)."""
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[StepErrorKind] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 0

    @classmethod
    def ok(cls, result: Optional[str], metadata: Optional[Dict[str, Any]] = None, attempts: int = 1) -> "StepExecutionResult":
        return cls(success=True, result=result, metadata=dict(metadata or {}), attempts=attempts)

    @classmethod
    def fail(
        cls,
        error: str,
        kind: StepErrorKind = StepErrorKind.EXECUTION_FAILED,
        attempts: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "StepExecutionResult":
        return cls(success=False, error=error, error_kind=kind, attempts=attempts, metadata=dict(metadata or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "result": self.result,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "metadata": self.metadata,
            "attempts": self.attempts,
        }


@dataclass
class BatchExecutionResult:
    """
    Aggregate of a batch run.

    step_results[i] always belongs to the i-th executed input step.
    """
    success: bool
    step_results: List[StepExecutionResult]
    started_at: datetime
    ended_at: datetime
    executed_steps_count: int
    total_steps_count: int

    @property
    def duration(self) -> float:
        """Wall-clock seconds."""
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def all_steps_executed(self) -> bool:
        return self.executed_steps_count == self.total_steps_count

    @property
    def successful_steps_count(self) -> int:
        return sum(1 for r in self.step_results if r.success)

    @property
    def failed_steps_count(self) -> int:
        return sum(1 for r in self.step_results if not r.success)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "step_results": [r.to_dict() for r in self.step_results],
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration": self.duration,
            "executed_steps_count": self.executed_steps_count,
            "total_steps_count": self.total_steps_count,
        }


class StepExecutor:
    """
    Executes steps against the agent registry.

    Per attempt:
    - reported failure or fault -> retry after retry_delay_seconds
    - attempt deadline elapsed  -> timed out, no retry
    - caller token fired        -> cancelled, no retry
    """

    def __init__(
        self,
        registry: AgentRegistry,
        config: Optional[StepExecutorConfig] = None,
    ):
        """
        Initialize StepExecutor.

        Args:
            registry: Agents to dispatch to
            config: Retry and timeout policy
        """
        self._registry = registry
        self._config = config or StepExecutorConfig()

    @property
    def config(self) -> StepExecutorConfig:
        return self._config

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    # ==================== SINGLE STEP ====================

    async def execute_step(
        self,
        step: Step,
        cancel_token: Optional[CancellationToken] = None,
    ) -> StepExecutionResult:
        """
        Execute one step with retries.

        Args:
            step: Step to run; its details are passed to the agent
            cancel_token: Caller cancellation signal

        Returns:
            StepExecutionResult (never raises for step-level faults)
        """
        token = cancel_token or CancellationToken.none()
        log = _logger.bind(step=step.title, agent=step.agent_name)

        agent = self._registry.get(step.agent_name)
        if agent is None:
            log.error("Agent not found: %s", step.agent_name)
            return StepExecutionResult.fail(
                f"Agent '{step.agent_name}' not found",
                StepErrorKind.AGENT_NOT_FOUND,
            )

        step.started_at = utc_now()
        if self._config.detailed_logging:
            log_step_event(log, "started", step.title, step.agent_name)

        max_attempts = max(1, self._config.max_retries)
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            if token.is_cancelled:
                return self._cancelled(log, attempt - 1)

            start = time.monotonic()
            scope = token.link(self._config.step_timeout_seconds)
            fault: Optional[BaseException] = None
            response: Optional[AgentResponse] = None

            try:
                response = await scope.run(agent.execute(step.details, scope))
            except OperationCancelledError as e:
                if token.is_cancelled:
                    return self._cancelled(log, attempt)
                if scope.timed_out:
                    log.warning(
                        "Step '%s' timed out after %.1fs (attempt %d/%d)",
                        step.title, self._config.step_timeout_seconds, attempt, max_attempts,
                    )
                    return StepExecutionResult.fail(
                        f"Step execution timed out after {self._config.step_timeout_seconds:g} seconds",
                        StepErrorKind.TIMED_OUT,
                        attempts=attempt,
                    )
                fault = e
            except Exception as e:
                fault = e
            finally:
                scope.close()

            duration_ms = int((time.monotonic() - start) * 1000)

            if fault is not None:
                last_error = f"{type(fault).__name__}: {fault}"
                log_error(log, fault, context=f"step '{step.title}' attempt {attempt}", attempt=attempt)
            elif response is not None and response.success:
                step.completed_at = utc_now()
                if self._config.detailed_logging:
                    log_step_event(
                        log, "completed", step.title, step.agent_name,
                        attempt=attempt, duration_ms=duration_ms,
                    )
                return StepExecutionResult.ok(response.content, response.metadata, attempts=attempt)
            else:
                last_error = (response.error if response else None) or "Agent reported failure"
                if attempt == max_attempts:
                    log.warning("Step '%s' failed on final attempt: %s", step.title, last_error)
                    return StepExecutionResult.fail(
                        f"Agent execution failed: {last_error}",
                        attempts=attempt,
                    )

            if attempt < max_attempts:
                log.warning(
                    "Step '%s' attempt %d/%d failed: %s. Retry in %.1fs",
                    step.title, attempt, max_attempts, last_error, self._config.retry_delay_seconds,
                )
                try:
                    await token.sleep(self._config.retry_delay_seconds)
                except OperationCancelledError:
                    return self._cancelled(log, attempt)

        log.error("Step '%s' failed after %d attempts: %s", step.title, max_attempts, last_error)
        return StepExecutionResult.fail(
            f"Step execution failed after {max_attempts} attempts. Last error: {last_error}",
            attempts=max_attempts,
        )

    @staticmethod
    def _cancelled(log, attempts: int) -> StepExecutionResult:
        log.info("Step execution cancelled")
        return StepExecutionResult.fail(
            "Step execution was cancelled",
            StepErrorKind.CANCELLED,
            attempts=attempts,
        )

    # ==================== BATCHES ====================

    async def execute_steps(
        self,
        steps: Sequence[Step],
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchExecutionResult:
        """
        Execute steps strictly in order, stopping at the first failure.

        Steps after a failure (or after cancellation) are never started.
        """
        token = cancel_token or CancellationToken.none()
        started_at = utc_now()
        results: List[StepExecutionResult] = []

        for step in steps:
            if token.is_cancelled:
                _logger.info("Sequential batch cancelled after %d steps", len(results))
                break
            result = await self.execute_step(step, token)
            results.append(result)
            if not result.success:
                _logger.warning("Sequential batch stopped at step '%s': %s", step.title, result.error)
                break

        success = len(results) == len(steps) and all(r.success for r in results)
        return BatchExecutionResult(
            success=success,
            step_results=results,
            started_at=started_at,
            ended_at=utc_now(),
            executed_steps_count=len(results),
            total_steps_count=len(steps),
        )

    async def execute_steps_parallel(
        self,
        steps: Sequence[Step],
        max_concurrency: int = 4,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchExecutionResult:
        """
        Execute steps concurrently, at most `max_concurrency` at a time.

        Every step goes through execute_step(). Results keep input order.

        Raises:
            ValueError: If max_concurrency < 1
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        token = cancel_token or CancellationToken.none()
        semaphore = asyncio.Semaphore(max_concurrency)
        started_at = utc_now()

        async def run_one(step: Step) -> StepExecutionResult:
            async with semaphore:
                return await self.execute_step(step, token)

        results = list(await asyncio.gather(*(run_one(step) for step in steps)))

        _logger.info(
            "Parallel batch finished: %d/%d succeeded",
            sum(1 for r in results if r.success), len(results),
        )
        return BatchExecutionResult(
            success=all(r.success for r in results),
            step_results=results,
            started_at=started_at,
            ended_at=utc_now(),
            executed_steps_count=len(results),
            total_steps_count=len(steps),
        )
