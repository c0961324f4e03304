"""
Conductor - Orchestrator

Top-level control loop: drives a plan step by step, revises it when a step
fails, and supports pause, resume and cancel from outside the loop.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .cancellation import CancelReason, CancellationToken, OperationCancelledError
from .models import Plan, PlanStatus, SentinelStep, utc_now
from .sentinel_executor import SentinelExecutor
from .step_executor import StepExecutor, StepExecutionResult
from ..config import OrchestratorSettings, get_logger, log_error
from ..planning.base import PlanGenerator, PlanGenerationError

_logger = get_logger("executor.orchestrator")

REVISION_FEEDBACK = "The following error occurred: {error}. Please revise the plan to address this issue."


class PlanAlreadyRunningError(RuntimeError):
    """A second control loop was requested for a plan that is executing."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan {plan_id} is already executing")


@dataclass
class OrchestratorConfig:
    """Failure handling policy for the control loop."""
    enable_auto_revision: bool = True
    max_revision_attempts: int = 3
    continue_on_failure: bool = False
    revise_when_continuing: bool = True  # False: continue_on_failure skips without revising

    @classmethod
    def from_settings(cls, settings: OrchestratorSettings) -> "OrchestratorConfig":
        return cls(
            enable_auto_revision=settings.enable_auto_revision,
            max_revision_attempts=settings.max_revision_attempts,
            continue_on_failure=settings.continue_on_failure,
            revise_when_continuing=settings.revise_when_continuing,
        )


@dataclass
class OrchestratorResult:
    """What a caller gets back from every orchestrator run."""
    success: bool
    started_at: datetime
    completed_at: datetime
    plan: Optional[Plan] = None
    plan_snapshot: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Wall-clock seconds."""
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration": self.duration,
            "plan": self.plan_snapshot,
            "metadata": self.metadata,
        }


class Orchestrator:
    """
    Drives plans to a terminal status.

    Regular steps go to the StepExecutor, sentinel steps to the
    SentinelExecutor. A failed step triggers auto-revision while the plan
    has revision attempts left.

    pause_plan() and cancel_plan() fire the plan's run token and must be
    called from the event loop thread that runs the plan.
    """

    def __init__(
        self,
        step_executor: StepExecutor,
        sentinel_executor: SentinelExecutor,
        planner: PlanGenerator,
        config: Optional[OrchestratorConfig] = None,
    ):
        """
        Initialize Orchestrator.

        Args:
            step_executor: Executes regular steps
            sentinel_executor: Executes sentinel steps
            planner: Generates and revises plans
            config: Failure handling policy
        """
        self._steps = step_executor
        self._sentinels = sentinel_executor
        self._planner = planner
        self._config = config or OrchestratorConfig()
        self._runs: Dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def step_executor(self) -> StepExecutor:
        return self._steps

    @property
    def sentinel_executor(self) -> SentinelExecutor:
        return self._sentinels

    @property
    def planner(self) -> PlanGenerator:
        return self._planner

    # ==================== ENTRY POINTS ====================

    async def execute_task(
        self,
        user_input: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OrchestratorResult:
        """
        Generate a plan for the input and execute it.

        Raises:
            PlanGenerationError: If no plan could be generated
        """
        started_at = utc_now()
        token = cancel_token or CancellationToken.none()
        _logger.info("Executing task (%d chars)", len(user_input))

        try:
            plan = await self._planner.generate_plan(user_input, token)
        except PlanGenerationError:
            raise
        except OperationCancelledError:
            _logger.info("Task cancelled during planning")
            return self._failure(started_at, "Task execution was cancelled during planning")
        except Exception as e:
            log_error(_logger, e, context="plan generation")
            return self._failure(started_at, f"Plan generation failed: {e}")

        return await self.execute_plan(plan, token)

    async def execute_plan(
        self,
        plan: Plan,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OrchestratorResult:
        """
        Execute a plan from its first step.

        Raises:
            PlanAlreadyRunningError: If the plan is already executing
        """
        self._ensure_idle(plan)
        plan.start()
        return await self._run(plan, cancel_token)

    async def resume_plan(
        self,
        plan: Plan,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OrchestratorResult:
        """
        Continue a paused plan from its current step.

        Raises:
            PlanAlreadyRunningError: If the plan is already executing
        """
        self._ensure_idle(plan)
        _logger.info("Resuming plan %s at step %d", plan.plan_id, plan.current_step_index)
        plan.resume()
        return await self._run(plan, cancel_token)

    def pause_plan(self, plan: Plan) -> bool:
        """
        Pause a plan. The in-flight step is interrupted and will be re-run
        by resume_plan().

        Returns:
            True if the plan was executing
        """
        plan.pause()
        _logger.info("Pausing plan %s", plan.plan_id)
        return self._stop(plan, CancelReason.STOPPED)

    def cancel_plan(self, plan: Plan) -> bool:
        """
        Cancel a plan.

        Returns:
            True if the plan was executing
        """
        plan.cancel()
        _logger.info("Cancelling plan %s", plan.plan_id)
        return self._stop(plan, CancelReason.CANCELLED)

    def is_running(self, plan: Plan) -> bool:
        with self._lock:
            return plan.plan_id in self._runs

    # ==================== CONTROL LOOP ====================

    async def _run(
        self,
        plan: Plan,
        cancel_token: Optional[CancellationToken],
    ) -> OrchestratorResult:
        started_at = utc_now()
        caller = cancel_token or CancellationToken.none()
        run_token = caller.link()
        log = _logger.bind(plan_id=plan.plan_id)

        with self._lock:
            if plan.plan_id in self._runs:
                run_token.close()
                raise PlanAlreadyRunningError(plan.plan_id)
            self._runs[plan.plan_id] = run_token

        log.info("Executing plan '%s' (%d steps)", plan.title, len(plan.steps))

        try:
            while not plan.is_completed and not run_token.is_cancelled:
                step = plan.current_step
                if step is None:
                    break

                log.info(
                    "Step %d/%d: %s -> %s",
                    plan.current_step_index + 1, len(plan.steps), step.title, step.agent_name,
                )
                if isinstance(step, SentinelStep):
                    result = await self._sentinels.execute_sentinel_step(step, run_token)
                else:
                    result = await self._steps.execute_step(step, run_token)

                if plan.status in (PlanStatus.PAUSED, PlanStatus.CANCELLED):
                    log.info("Plan %s while running '%s'", plan.status.value.lower(), step.title)
                    break
                if caller.is_cancelled:
                    break

                if result.success:
                    plan.complete_current_step(result.result, result.metadata)
                    continue

                if not await self._handle_failure(plan, result, run_token, log):
                    break

            if caller.is_cancelled and plan.status == PlanStatus.IN_PROGRESS:
                plan.cancel()
            elif plan.status == PlanStatus.IN_PROGRESS:
                # No step settled the plan
                if plan.is_completed and not plan.has_errors:
                    plan.mark_completed()
                elif plan.has_errors or plan.current_step is None:
                    plan.mark_failed()

        except Exception as e:
            log_error(log, e, context=f"plan {plan.plan_id}")
            plan.fail_current_step(f"Unexpected orchestrator error: {e}")
            if plan.status != PlanStatus.FAILED:
                plan.cancel()
        finally:
            with self._lock:
                if self._runs.get(plan.plan_id) is run_token:
                    del self._runs[plan.plan_id]
            run_token.close()

        return self._build_result(plan, started_at)

    async def _handle_failure(
        self,
        plan: Plan,
        result: StepExecutionResult,
        run_token: CancellationToken,
        log,
    ) -> bool:
        """
        Record a step failure and decide whether the loop goes on.

        Returns:
            True to keep looping
        """
        error = result.error or "Step failed"
        step = plan.current_step
        log.warning("Step '%s' failed: %s", step.title if step else "?", error)
        plan.fail_current_step(error)

        cfg = self._config
        if not cfg.continue_on_failure or cfg.revise_when_continuing:
            if await self._try_revise(plan, error, run_token, log):
                return True

        if cfg.continue_on_failure:
            plan.skip_current_step()
            return True
        return False

    async def _try_revise(
        self,
        plan: Plan,
        error: str,
        run_token: CancellationToken,
        log,
    ) -> bool:
        cfg = self._config
        if not cfg.enable_auto_revision or run_token.is_cancelled:
            return False
        if plan.revision_attempts >= cfg.max_revision_attempts:
            log.info("Revision budget exhausted (%d/%d)", plan.revision_attempts, cfg.max_revision_attempts)
            return False

        log.info("Attempting plan revision %d/%d", plan.revision_attempts + 1, cfg.max_revision_attempts)
        try:
            revised = await self._planner.revise_plan(plan, REVISION_FEEDBACK.format(error=error), run_token)
        except OperationCancelledError:
            return False
        except Exception as e:
            log_error(log, e, context="auto-revision")
            return False

        plan.replace_steps(revised.steps)
        log.info("Plan revised: %d steps, attempt %d", len(plan.steps), plan.revision_attempts)
        return True

    # ==================== HELPERS ====================

    def _ensure_idle(self, plan: Plan) -> None:
        if self.is_running(plan):
            raise PlanAlreadyRunningError(plan.plan_id)

    def _stop(self, plan: Plan, reason: CancelReason) -> bool:
        with self._lock:
            token = self._runs.get(plan.plan_id)
        if token is not None:
            token.cancel(reason)

        stopped = sum(
            1 for s in plan.sentinel_steps if self._sentinels.stop_sentinel(s.sentinel_id)
        )
        if stopped:
            _logger.info("Stopped %d sentinels for plan %s", stopped, plan.plan_id)
        return token is not None

    @staticmethod
    def _build_result(plan: Plan, started_at: datetime) -> OrchestratorResult:
        success = plan.status == PlanStatus.COMPLETED and not plan.has_errors
        error = None
        if not success:
            error = plan.last_error or f"Plan finished with status {plan.status.value}"

        _logger.info(
            "Plan %s finished: %s (%d/%d steps completed)",
            plan.plan_id, plan.status.value, len(plan.completed_steps), len(plan.steps),
        )
        return OrchestratorResult(
            success=success,
            started_at=started_at,
            completed_at=utc_now(),
            plan=plan,
            plan_snapshot=plan.snapshot(),
            error=error,
            metadata={
                "status": plan.status.value,
                "revision_attempts": plan.revision_attempts,
                "completed_steps": len(plan.completed_steps),
                "total_steps": len(plan.steps),
            },
        )

    @staticmethod
    def _failure(started_at: datetime, error: str) -> OrchestratorResult:
        return OrchestratorResult(
            success=False,
            started_at=started_at,
            completed_at=utc_now(),
            error=error,
        )
