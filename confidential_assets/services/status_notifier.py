import asyncio
import logging

from .. import config
from ..models.status_models import TransactionPhase, TransactionStatus

logger = logging.getLogger(__name__)


class TransactionStatusNotifier:
    """
    Single-slot, user-visible transaction status.

    Every ``show()`` replaces the slot and bumps a sequence counter. ``success``
    and ``error`` schedule a clear on the running event loop; the scheduled clear
    only fires if no newer status has been shown since. ``pending`` stays until
    it is replaced.
    """

    def __init__(
        self,
        success_clear_seconds: float = config.STATUS_SUCCESS_CLEAR_SECONDS,
        error_clear_seconds: float = config.STATUS_ERROR_CLEAR_SECONDS,
    ):
        self.success_clear_seconds = success_clear_seconds
        self.error_clear_seconds = error_clear_seconds
        self._status = TransactionStatus()
        self._sequence = 0
        self._clear_handle: asyncio.TimerHandle | None = None

    def show(self, phase: TransactionPhase, message: str) -> int:
        self._sequence += 1
        self._cancel_scheduled_clear()
        self._status = TransactionStatus(visible=True, status=phase, message=message, sequence=self._sequence)
        logger.debug(f"Transaction status #{self._sequence}: {phase} - {message}")

        delay = None
        if phase == "success":
            delay = self.success_clear_seconds
        elif phase == "error":
            delay = self.error_clear_seconds
        if delay is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No loop to schedule on (synchronous caller); the next show() replaces it
                logger.debug("No running event loop; status will not auto-clear.")
            else:
                self._clear_handle = loop.call_later(delay, self._clear_if_current, self._sequence)
        return self._sequence

    def pending(self, message: str) -> int:
        return self.show("pending", message)

    def success(self, message: str) -> int:
        return self.show("success", message)

    def error(self, message: str) -> int:
        return self.show("error", message)

    def snapshot(self) -> TransactionStatus:
        return self._status.model_copy()

    def clear(self):
        self._sequence += 1
        self._cancel_scheduled_clear()
        self._status = TransactionStatus(sequence=self._sequence)

    def _clear_if_current(self, sequence: int):
        if sequence != self._sequence:
            # A newer status replaced the one this timer belonged to
            return
        self._clear_handle = None
        self._status = TransactionStatus(sequence=self._sequence)

    def _cancel_scheduled_clear(self):
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
