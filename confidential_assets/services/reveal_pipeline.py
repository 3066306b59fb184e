import logging

from ..errors import (
    AssetTrackerError,
    DecryptionError,
    EngineError,
    PreconditionError,
    SyncError,
    TransactionError,
    TransactionRevertedError,
    is_already_verified,
)
from .asset_repository import AssetRepository
from .initializer import InitializationSequencer
from .session_service import WalletSession
from .status_notifier import TransactionStatusNotifier

logger = logging.getLogger(__name__)


class RevealPipeline:
    """Reveals an asset's confidential value, verifying the decryption on-chain if needed."""

    def __init__(
        self,
        session: WalletSession,
        sequencer: InitializationSequencer,
        engine,
        ledger,
        repository: AssetRepository,
        notifier: TransactionStatusNotifier,
    ):
        self.session = session
        self.sequencer = sequencer
        self.engine = engine
        self.ledger = ledger
        self.repository = repository
        self.notifier = notifier

    async def reveal_value(self, asset_id: str) -> int:
        """
        Returns the clear value of ``asset_id``.

        An already verified record is answered from the ledger with no engine
        call and no transaction. Otherwise the handle is publicly decrypted and
        the proof is submitted through ``verifyDecryption``. Losing the race to
        another verifier counts as success.
        """
        try:
            self.session.require_identity()
            self.sequencer.require_ready()
        except PreconditionError as e:
            logger.warning(f"Reveal of {asset_id} rejected: {e}")
            self.notifier.error(str(e))
            raise

        try:
            record = await self.repository.fetch_record(asset_id)
        except SyncError as e:
            logger.error(f"Could not read asset {asset_id}: {e}")
            self.notifier.error(f"Decryption failed: {e}")
            raise

        if record.isVerified:
            logger.info(f"Asset {asset_id} already verified on-chain; returning stored value")
            self.notifier.success("Data already verified on-chain")
            return record.decryptedValue or 0

        handle = record.encryptedValueHandle

        async def submit_verification(abi_encoded_clear_values: str, decryption_proof: str):
            pending_tx = await self.ledger.verify_decryption(asset_id, abi_encoded_clear_values, decryption_proof)
            self.notifier.pending("Verifying decryption on-chain...")
            return await pending_tx.wait()

        try:
            result = await self.engine.public_decrypt([handle], self.ledger.contract_address, submit_verification)
        except Exception as e:
            if is_already_verified(e) or (isinstance(e, TransactionRevertedError) and await self._verified_on_chain(asset_id)):
                logger.info(f"Asset {asset_id} was verified concurrently; re-syncing")
                return await self._resolve_verified_race(asset_id)
            logger.error(f"Decryption of asset {asset_id} failed: {e}", exc_info=not isinstance(e, AssetTrackerError))
            self.notifier.error(f"Decryption failed: {e}")
            if isinstance(e, (EngineError, TransactionError, PreconditionError)):
                raise
            raise DecryptionError(str(e)) from e

        clear_value = int(result.clear_values[handle])
        await self.repository.refresh()
        logger.info(f"Asset {asset_id} decrypted and verified on-chain")
        self.notifier.success("Data decrypted and verified successfully!")
        return clear_value

    async def _verified_on_chain(self, asset_id: str) -> bool:
        # A revert without a reason (both transactions mined in the same block) still loses the race
        try:
            return (await self.repository.fetch_record(asset_id)).isVerified
        except SyncError:
            return False

    async def _resolve_verified_race(self, asset_id: str) -> int:
        await self.repository.refresh()
        try:
            record = await self.repository.fetch_record(asset_id)
        except SyncError as e:
            self.notifier.error(f"Decryption failed: {e}")
            raise
        self.notifier.success("Data is already verified on-chain")
        return record.decryptedValue or 0
