"""
Conductor - Cancellation Tokens

Cooperative cancellation shared by every suspending call in the executor.

A token fires once. A child token made with link() fires when its parent fires
or when its own deadline elapses, whichever comes first. Tokens belong to the
event loop that created their timers; call cancel() from that loop.

    with caller_token.link(timeout=30) as scope:
        response = await scope.run(agent.execute(text, scope))
"""
import asyncio
from enum import Enum
from typing import Awaitable, Optional, Set, TypeVar

T = TypeVar("T")


class CancelReason(str, Enum):
    """Why a token fired."""
    CANCELLED = "cancelled"   # Caller asked for it
    TIMEOUT = "timeout"       # Deadline elapsed
    STOPPED = "stopped"       # Stopped by id from outside (sentinels, pause)


class OperationCancelledError(Exception):
    """Raised when an awaited operation is interrupted by its token."""

    def __init__(self, reason: Optional[CancelReason] = None):
        self.reason = reason or CancelReason.CANCELLED
        super().__init__(f"Operation {self.reason.value}")


class CancellationToken:
    """
    Composable cancellation signal.

    Args:
        parent: Token whose cancellation also cancels this one
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = asyncio.Event()
        self._reason: Optional[CancelReason] = None
        self._parent = parent
        self._children: Set["CancellationToken"] = set()
        self._timer: Optional[asyncio.TimerHandle] = None

        if parent is not None:
            if parent.is_cancelled:
                self._fire(parent.reason)
            else:
                parent._children.add(self)

    @classmethod
    def none(cls) -> "CancellationToken":
        """Token nobody else holds; only its own children or deadline can fire it."""
        return cls()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[CancelReason]:
        return self._reason

    @property
    def timed_out(self) -> bool:
        return self._reason == CancelReason.TIMEOUT

    def cancel(self, reason: CancelReason = CancelReason.CANCELLED) -> None:
        """Fire the token and every linked child. Idempotent."""
        self._fire(reason)

    def _fire(self, reason: Optional[CancelReason]) -> None:
        if self._reason is not None:
            return
        self._reason = reason or CancelReason.CANCELLED
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        children, self._children = self._children, set()
        for child in children:
            child._fire(self._reason)

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise OperationCancelledError(self._reason)

    # ------------------------------------------------------------------
    # Scoping
    # ------------------------------------------------------------------

    def link(self, timeout: Optional[float] = None) -> "CancellationToken":
        """
        Create a child token.

        Args:
            timeout: Seconds until the child fires with TIMEOUT (None = no deadline)

        Must be called from a running event loop when a timeout is given.
        """
        child = CancellationToken(parent=self)
        if timeout is not None and not child.is_cancelled:
            loop = asyncio.get_running_loop()
            child._timer = loop.call_later(max(timeout, 0.0), child._fire, CancelReason.TIMEOUT)
        return child

    def close(self) -> None:
        """Detach from the parent and drop the deadline timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._parent is not None:
            self._parent._children.discard(self)

    def __enter__(self) -> "CancellationToken":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Awaiting
    # ------------------------------------------------------------------

    async def wait(self) -> CancelReason:
        """Block until the token fires."""
        await self._event.wait()
        return self._reason

    async def sleep(self, seconds: float) -> None:
        """
        Sleep for `seconds`, waking early if the token fires.

        Raises:
            OperationCancelledError: If the token fired before or during the sleep
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            await asyncio.sleep(0)
            self.raise_if_cancelled()
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError(self._reason)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the token fires first.

        On cancellation the underlying task is cancelled and awaited before
        OperationCancelledError is raised.
        """
        if self.is_cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelledError(self._reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task.cancelled():
            raise OperationCancelledError(self._reason)
        return task.result()

    def __repr__(self) -> str:
        state = self._reason.value if self._reason else "active"
        return f"<CancellationToken {state}>"
