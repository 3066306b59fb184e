import asyncio
import logging
from datetime import datetime, timezone
from typing import List

from ..errors import SyncError
from ..models.asset_models import AssetRecord, AssetSnapshot, AssetStats
from .status_notifier import TransactionStatusNotifier

logger = logging.getLogger(__name__)


class AssetRepository:
    """
    Local view of the assets tracked on the ledger.

    This is the only writer of the asset set. Each ``refresh()`` builds a
    complete new snapshot and publishes it in a single assignment, so readers
    see either the previous set or the new one. Overlapping refreshes are
    allowed; whichever completes last determines the published snapshot.
    """

    def __init__(self, ledger, notifier: TransactionStatusNotifier):
        self.ledger = ledger
        self.notifier = notifier
        self.snapshot = AssetSnapshot()
        self._refreshes_in_flight = 0

    @property
    def assets(self) -> List[AssetRecord]:
        return list(self.snapshot.records)

    @property
    def stats(self) -> AssetStats:
        return self.snapshot.stats

    @property
    def is_refreshing(self) -> bool:
        return self._refreshes_in_flight > 0

    def get(self, asset_id: str) -> AssetRecord | None:
        for record in self.snapshot.records:
            if record.id == asset_id:
                return record
        return None

    def search(self, term: str | None) -> List[AssetRecord]:
        """Case-insensitive match on name or description."""
        if not term:
            return self.assets
        needle = term.lower()
        return [r for r in self.snapshot.records if needle in r.name.lower() or needle in r.description.lower()]

    async def fetch_record(self, asset_id: str) -> AssetRecord:
        """Reads one record straight from the ledger, bypassing the snapshot."""
        data = await self.ledger.get_asset_data(asset_id)
        handle = await self.ledger.get_encrypted_value(asset_id)
        return AssetRecord.from_ledger(asset_id, data, handle)

    async def refresh(self) -> bool:
        """Re-reads every asset from the ledger. Returns False if the set could not be listed."""
        self._refreshes_in_flight += 1
        try:
            try:
                asset_ids = await self.ledger.list_asset_ids()
            except Exception as e:
                logger.error(f"Failed to list asset identifiers: {e}", exc_info=not isinstance(e, SyncError))
                self.notifier.error("Failed to load data")
                return False

            results = await asyncio.gather(
                *(self.fetch_record(asset_id) for asset_id in asset_ids),
                return_exceptions=True,
            )

            records = []
            for asset_id, result in zip(asset_ids, results):
                if isinstance(result, BaseException):
                    logger.warning(f"Skipping asset {asset_id}: {result}")
                    continue
                records.append(result)

            self.snapshot = AssetSnapshot(
                records=tuple(records),
                stats=AssetStats.from_records(records),
                refreshed_at=datetime.now(timezone.utc),
            )
            logger.info(f"Asset sync complete: {len(records)} of {len(asset_ids)} record(s) loaded")
            return True
        finally:
            self._refreshes_in_flight -= 1

    async def check_availability(self) -> bool:
        try:
            available = await self.ledger.is_available()
        except Exception as e:
            logger.error(f"Availability check failed: {e}", exc_info=True)
            self.notifier.error("Availability check failed")
            return False
        if available:
            self.notifier.success("Contract is available and working!")
        else:
            logger.warning("Contract reported itself unavailable.")
        return available
