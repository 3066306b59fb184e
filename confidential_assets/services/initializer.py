import logging

from ..errors import PreconditionError
from .status_notifier import TransactionStatusNotifier

logger = logging.getLogger(__name__)


class InitializationSequencer:
    """Brings the FHE engine to a ready state; at most one attempt in flight."""

    def __init__(self, engine, notifier: TransactionStatusNotifier):
        self.engine = engine
        self.notifier = notifier
        self.is_ready = False
        self.is_initializing = False

    async def ensure_ready(self) -> bool:
        if self.is_ready or self.is_initializing:
            # Re-entrant calls are dropped, not queued
            return self.is_ready

        self.is_initializing = True
        try:
            logger.info("Initializing FHE engine...")
            await self.engine.initialize()
            self.is_ready = True
            logger.info("FHE engine ready.")
        except Exception as e:
            logger.error(f"FHE engine initialization failed: {e}", exc_info=True)
            self.notifier.error("FHEVM initialization failed")
        finally:
            self.is_initializing = False
        return self.is_ready

    def require_ready(self):
        if not self.is_ready:
            raise PreconditionError("FHEVM is not initialized yet")
