"""
Run control: hard cancellation and retrieval-scoped soft stop.

This module consolidates:
- AbortSignal: asyncio.Event based signal with a reason
- RunControl: the two independent signals a run (and every child run it
  spawns) observes
- RunControlRegistry: live runs keyed by message id, the transport layer's
  handle for "stop" and "synthesize now" requests
"""

import asyncio
from enum import Enum

from sleuth.runtime.exceptions import RunCancelledError, RunInterruptedError
from sleuth.utils.logging import get_logger

logger = get_logger(__name__)


# ============================================================================
# AbortSignal
# ============================================================================


class AbortSignal:
    """
    Abort signal for graceful cancellation of long-running operations.

    Based on asyncio.Event, supports:
    - Synchronous abort status check
    - Async wait for abort signal
    - Recording abort reason

    Examples:
        >>> signal = AbortSignal()
        >>> signal.abort("User cancelled")
        >>> signal.is_aborted()
        True
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: str | None = None

    def abort(self, reason: str = "Operation cancelled"):
        """Trigger abort signal. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def is_aborted(self) -> bool:
        """Check if abort has been triggered."""
        return self._event.is_set()

    async def wait(self):
        """Async wait for abort signal."""
        await self._event.wait()

    @property
    def reason(self) -> str | None:
        """Get abort reason."""
        return self._reason

    def reset(self):
        """Reset abort signal for reuse."""
        self._event.clear()
        self._reason = None


# ============================================================================
# RunControl
# ============================================================================


class Interruption(str, Enum):
    """How an exception escaping the execution graph should be handled."""

    CANCELLED = "cancelled"
    SOFT_STOP = "soft_stop"
    FAILURE = "failure"


class RunControl:
    """
    The two signals of one run.

    - abort_signal: hard cancellation. Everything in flight is cancelled and
      the run ends with a single cancellation notice.
    - retrieval_signal: soft stop. No new tool calls or reasoning steps are
      started; the run ends with an early synthesis over what it has.

    Child runs receive the same RunControl object, so one request stops the
    whole tree.
    """

    def __init__(
        self,
        abort_signal: AbortSignal | None = None,
        retrieval_signal: AbortSignal | None = None,
    ):
        self.abort_signal = abort_signal or AbortSignal()
        self.retrieval_signal = retrieval_signal or AbortSignal()

    def cancel(self, reason: str = "Operation cancelled") -> None:
        logger.info("run_cancel_requested", reason=reason)
        self.abort_signal.abort(reason)

    def soft_stop(self, reason: str = "Early synthesis requested") -> None:
        logger.info("run_soft_stop_requested", reason=reason)
        self.retrieval_signal.abort(reason)

    def clear_soft_stop(self) -> None:
        self.retrieval_signal.reset()

    @property
    def is_cancelled(self) -> bool:
        return self.abort_signal.is_aborted()

    @property
    def is_soft_stopped(self) -> bool:
        return self.retrieval_signal.is_aborted()

    def classify(self, exc: BaseException) -> Interruption:
        """
        Decide how an exception escaping the graph is handled.

        Hard cancellation wins over soft stop; a RunInterruptedError seen
        without a pending soft stop is an ordinary failure.
        """
        if self.is_cancelled or isinstance(exc, (asyncio.CancelledError, RunCancelledError)):
            return Interruption.CANCELLED
        if self.is_soft_stopped:
            return Interruption.SOFT_STOP
        if isinstance(exc, RunInterruptedError):
            logger.warning("run_interrupted_without_soft_stop", reason=exc.reason)
        return Interruption.FAILURE


# ============================================================================
# RunControlRegistry
# ============================================================================


class RunControlRegistry:
    """
    Live run controls keyed by message id.

    Requests for a message id that is not (or no longer) registered are
    no-ops and return False.
    """

    def __init__(self):
        self._controls: dict[str, RunControl] = {}

    def register(self, message_id: str, control: RunControl | None = None) -> RunControl:
        control = control or RunControl()
        self._controls[message_id] = control
        return control

    def get(self, message_id: str) -> RunControl | None:
        return self._controls.get(message_id)

    def cancel(self, message_id: str, reason: str = "Operation cancelled") -> bool:
        control = self._controls.get(message_id)
        if control is None:
            return False
        control.cancel(reason)
        return True

    def soft_stop(self, message_id: str, reason: str = "Early synthesis requested") -> bool:
        control = self._controls.get(message_id)
        if control is None:
            return False
        control.soft_stop(reason)
        return True

    def cleanup(self, message_id: str) -> None:
        self._controls.pop(message_id, None)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._controls

    def __len__(self) -> int:
        return len(self._controls)


__all__ = ["AbortSignal", "Interruption", "RunControl", "RunControlRegistry"]
