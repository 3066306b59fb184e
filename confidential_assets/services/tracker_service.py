import logging
from typing import List

from ..errors import SyncError
from ..models.asset_models import AssetRecord, AssetStats, CreateAssetRequest, CreateAssetResult
from ..models.status_models import TransactionStatus
from .asset_repository import AssetRepository
from .creation_pipeline import CreationPipeline
from .fhe_service import RelayerFheEngine
from .initializer import InitializationSequencer
from .ledger_service import LedgerClient
from .reveal_pipeline import RevealPipeline
from .session_service import WalletSession
from .status_notifier import TransactionStatusNotifier

logger = logging.getLogger(__name__)


class AssetTracker:
    """Owns one instance of every component and wires them together."""

    def __init__(self, session: WalletSession, ledger, engine, notifier: TransactionStatusNotifier | None = None):
        self.session = session
        self.ledger = ledger
        self.engine = engine
        self.notifier = notifier or TransactionStatusNotifier()
        self.sequencer = InitializationSequencer(engine, self.notifier)
        self.repository = AssetRepository(ledger, self.notifier)
        self.creation = CreationPipeline(session, self.sequencer, engine, ledger, self.repository, self.notifier)
        self.reveal = RevealPipeline(session, self.sequencer, engine, ledger, self.repository, self.notifier)

    @classmethod
    def from_config(cls) -> "AssetTracker":
        session = WalletSession.from_config()
        return cls(session, LedgerClient.from_config(session), RelayerFheEngine.from_config())

    @property
    def contract_address(self) -> str:
        return self.ledger.contract_address

    async def connect(self) -> str:
        """
        Connects the wallet, then initializes the engine and loads the asset set.
        Calling it again on a connected session retries a failed initialization.
        """
        address = self.session.connect()
        await self.sequencer.ensure_ready()
        await self.repository.refresh()
        return address

    def disconnect(self):
        self.session.disconnect()

    async def refresh(self):
        if not await self.repository.refresh():
            raise SyncError("Failed to load data")

    async def create_asset(self, request: CreateAssetRequest) -> CreateAssetResult:
        return await self.creation.create_asset(request)

    async def reveal_value(self, asset_id: str) -> int:
        return await self.reveal.reveal_value(asset_id)

    async def check_availability(self) -> bool:
        return await self.repository.check_availability()

    def search(self, term: str | None = None) -> List[AssetRecord]:
        return self.repository.search(term)

    def get_asset(self, asset_id: str) -> AssetRecord | None:
        return self.repository.get(asset_id)

    @property
    def stats(self) -> AssetStats:
        return self.repository.stats

    @property
    def transaction_status(self) -> TransactionStatus:
        return self.notifier.snapshot()
