from datetime import datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

# Coordinates are stored on-chain as integers scaled by this factor
COORDINATE_SCALE = 1_000_000
# The contract stores the confidential value as an euint32
MAX_ENCRYPTED_VALUE = 2**32 - 1

AssetStatus = Literal["in_transit", "delivered", "alert"]


def scale_coordinate(value: float) -> int:
    """Encodes a real-valued coordinate as the fixed-point integer stored on-chain."""
    return int(round(value * COORDINATE_SCALE))


def decode_coordinate(stored: int) -> float:
    return stored / COORDINATE_SCALE


class AssetRecord(BaseModel):
    # Field names mirror the ledger contract's naming
    id: str = Field(..., description="Unique asset identifier assigned at creation.")
    name: str = Field(..., description="Display name of the asset.")
    description: str = Field("", description="Free-text description.")
    latitude: float = Field(..., description="Decoded latitude (publicValue1 / 10^6).")
    longitude: float = Field(..., description="Decoded longitude (publicValue2 / 10^6).")
    publicValue1: int = Field(..., description="Latitude as stored on-chain (scaled by 10^6).")
    publicValue2: int = Field(..., description="Longitude as stored on-chain (scaled by 10^6).")
    creator: str = Field(..., description="Address of the account that created the record.")
    timestamp: int = Field(..., description="Unix timestamp of creation.")
    encryptedValueHandle: Optional[str] = Field(None, description="Ledger handle of the encrypted value.")
    isVerified: bool = Field(False, description="True once the decryption proof was verified on-chain.")
    decryptedValue: Optional[int] = Field(None, description="Clear value, only set when isVerified is true.")
    status: AssetStatus = Field("in_transit", description="Display classification derived from the record.")

    @classmethod
    def from_ledger(cls, asset_id: str, data: dict, handle: str | None = None) -> "AssetRecord":
        """Builds a record from the raw field mapping returned by the ledger client."""
        public_value1 = int(data.get("publicValue1") or 0)
        public_value2 = int(data.get("publicValue2") or 0)
        is_verified = bool(data.get("isVerified"))
        record = cls(
            id=asset_id,
            name=data.get("name") or "",
            description=data.get("description") or "",
            latitude=decode_coordinate(public_value1),
            longitude=decode_coordinate(public_value2),
            publicValue1=public_value1,
            publicValue2=public_value2,
            creator=data.get("creator") or "",
            timestamp=int(data.get("timestamp") or 0),
            encryptedValueHandle=handle,
            isVerified=is_verified,
            decryptedValue=int(data.get("decryptedValue") or 0) if is_verified else None,
        )
        record.status = derive_status(record)
        return record


def derive_status(record: AssetRecord) -> AssetStatus:
    """
    Classifies a record for display. Pure function of the record's ledger fields:

    - ``delivered``: the confidential value has been verified on-chain.
    - ``alert``: the stored position cannot be placed on the map, or the
      record has no creation timestamp.
    - ``in_transit``: everything else.
    """
    if record.isVerified:
        return "delivered"
    if not (-90.0 <= record.latitude <= 90.0) or not (-180.0 <= record.longitude <= 180.0):
        return "alert"
    if record.timestamp <= 0:
        return "alert"
    return "in_transit"


class AssetStats(BaseModel):
    total_assets: int = 0
    in_transit: int = 0
    delivered: int = 0
    alerts: int = 0

    @classmethod
    def from_records(cls, records) -> "AssetStats":
        return cls(
            total_assets=len(records),
            in_transit=sum(1 for r in records if r.status == "in_transit"),
            delivered=sum(1 for r in records if r.status == "delivered"),
            alerts=sum(1 for r in records if r.status == "alert"),
        )


class AssetSnapshot(BaseModel):
    """The asset set and its counters, always published together."""
    records: Tuple[AssetRecord, ...] = ()
    stats: AssetStats = AssetStats()
    refreshed_at: Optional[datetime] = None


class CreateAssetRequest(BaseModel):
    # Raw form input; parsing and validation happen in the creation pipeline
    name: str = Field("", description="Asset name (required).")
    value: str = Field("", description="Confidential value as a non-negative integer. Empty means 0.")
    description: str = Field("", description="Optional free-text description.")
    latitude: str = Field("", description="Latitude in decimal degrees (required).")
    longitude: str = Field("", description="Longitude in decimal degrees (required).")

    @field_validator("value", "latitude", "longitude", mode="before")
    @classmethod
    def _numbers_as_text(cls, v):
        # JSON clients may send numbers; bool is an int subclass and stays invalid
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class CreateAssetResult(BaseModel):
    asset_id: str
    tx_hash: str
    message: str = "Asset created successfully!"


class RevealResponse(BaseModel):
    asset_id: str
    value: int = Field(..., description="The decrypted clear value.")


class AssetListResponse(BaseModel):
    records: List[AssetRecord] = []
    stats: AssetStats = AssetStats()
    refreshed_at: Optional[datetime] = None


class AssetResponse(BaseModel):
    record: AssetRecord

