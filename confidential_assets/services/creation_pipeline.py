import logging
import math
import secrets
import time

from ..errors import (
    AssetTrackerError,
    EngineError,
    EncryptionError,
    PreconditionError,
    TransactionError,
    TransactionFailedError,
    UserRejectedError,
)
from ..models.asset_models import (
    MAX_ENCRYPTED_VALUE,
    CreateAssetRequest,
    CreateAssetResult,
    scale_coordinate,
)
from .asset_repository import AssetRepository
from .initializer import InitializationSequencer
from .session_service import WalletSession
from .status_notifier import TransactionStatusNotifier

logger = logging.getLogger(__name__)


def parse_value(raw: str) -> int:
    """Empty input is 0; anything else must be a non-negative integer that fits an euint32."""
    text = (raw or "").strip()
    if not text:
        return 0
    try:
        value = int(text, 10)
    except ValueError:
        raise PreconditionError(f"Value must be a whole number, got {raw!r}")
    if value < 0 or value > MAX_ENCRYPTED_VALUE:
        raise PreconditionError(f"Value must be between 0 and {MAX_ENCRYPTED_VALUE}")
    return value


def parse_coordinate(raw: str, field: str, limit: float) -> float:
    try:
        value = float(raw.strip())
    except ValueError:
        raise PreconditionError(f"{field} must be a number, got {raw!r}")
    if not math.isfinite(value) or not -limit <= value <= limit:
        raise PreconditionError(f"{field} must be between {-limit} and {limit}")
    return value


def new_asset_id() -> str:
    # Millisecond timestamp plus entropy, so same-millisecond creations stay distinct
    return f"asset-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class CreationPipeline:
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

    async def create_asset(self, request: CreateAssetRequest) -> CreateAssetResult:
        """
        Encrypts the value, submits ``createBusinessData`` and waits for it to be
        mined, then re-syncs the asset set from the ledger.

        Every failure is posted to the status notifier and re-raised; the caller's
        input is left untouched so the user can retry.
        """
        try:
            identity = self.session.require_identity()
            if not request.name.strip():
                raise PreconditionError("Asset name is required")
            if not request.latitude.strip() or not request.longitude.strip():
                raise PreconditionError("Latitude and longitude are required")
            self.sequencer.require_ready()

            value = parse_value(request.value)
            latitude = scale_coordinate(parse_coordinate(request.latitude, "Latitude", 90.0))
            longitude = scale_coordinate(parse_coordinate(request.longitude, "Longitude", 180.0))
        except PreconditionError as e:
            logger.warning(f"Asset creation rejected: {e}")
            self.notifier.error(str(e))
            raise

        asset_id = new_asset_id()
        logger.info(f"User {identity} creating asset {asset_id} ({request.name!r})")
        self.notifier.pending("Creating asset with FHE encryption...")

        try:
            encrypted = await self.engine.encrypt(self.ledger.contract_address, identity, value)
        except Exception as e:
            error = e if isinstance(e, EngineError) else EncryptionError(str(e))
            logger.error(f"Encryption failed for asset {asset_id}: {e}", exc_info=True)
            self.notifier.error(f"Encryption failed: {error}")
            raise error from e

        try:
            pending_tx = await self.ledger.create_asset(
                asset_id,
                request.name,
                encrypted.handle,
                encrypted.proof,
                latitude,
                longitude,
                request.description,
            )
            self.notifier.pending("Waiting for transaction confirmation...")
            await pending_tx.wait()
        except UserRejectedError:
            logger.warning(f"Creation of asset {asset_id} rejected by user")
            self.notifier.error("Transaction rejected by user")
            raise
        except TransactionError as e:
            logger.error(f"Creation of asset {asset_id} failed: {e}")
            self.notifier.error(f"Submission failed: {e}")
            raise
        except Exception as e:
            # Includes a session disconnected while encryption was in flight
            logger.error(f"Creation of asset {asset_id} failed: {e}", exc_info=not isinstance(e, AssetTrackerError))
            self.notifier.error(f"Submission failed: {e}")
            if isinstance(e, AssetTrackerError):
                raise
            raise TransactionFailedError(str(e)) from e

        logger.info(f"Asset {asset_id} created. Tx: {pending_tx.tx_hash}")
        self.notifier.success("Asset created successfully!")
        await self.repository.refresh()
        return CreateAssetResult(asset_id=asset_id, tx_hash=pending_tx.tx_hash)
