from fastapi import APIRouter, Depends, HTTPException, status
import logging

from ..errors import AssetTrackerError
from ..models.asset_models import (
    AssetListResponse,
    AssetResponse,
    CreateAssetRequest,
    CreateAssetResult,
    RevealResponse,
)
from ..models.status_models import ErrorResponse
from ..services.tracker_service import AssetTracker
from .dependencies import ERROR_RESPONSES, get_tracker, to_http_exception

router = APIRouter(
    prefix="/assets",
    tags=["Confidential Assets"],
)

logger = logging.getLogger(__name__)

_ERRORS = {code: {"model": ErrorResponse, **info} for code, info in ERROR_RESPONSES.items()}


def _list_response(tracker: AssetTracker, search: str | None = None) -> AssetListResponse:
    return AssetListResponse(
        records=tracker.search(search),
        stats=tracker.stats,
        refreshed_at=tracker.repository.snapshot.refreshed_at,
    )


@router.get("", response_model=AssetListResponse)
def list_assets(search: str | None = None, tracker: AssetTracker = Depends(get_tracker)):
    """
    Returns the last synced asset set with its aggregate counters.

    - **search**: optional case-insensitive filter on name and description.
      The counters always describe the full set.
    """
    return _list_response(tracker, search)


@router.post("/refresh", response_model=AssetListResponse, responses=_ERRORS)
async def refresh_assets(tracker: AssetTracker = Depends(get_tracker)):
    """Re-reads every asset from the ledger."""
    try:
        await tracker.refresh()
    except AssetTrackerError as e:
        raise to_http_exception(e)
    return _list_response(tracker)


@router.get(
    "/{asset_id}",
    response_model=AssetResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
def get_asset(asset_id: str, tracker: AssetTracker = Depends(get_tracker)):
    record = tracker.get_asset(asset_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Asset {asset_id} not found.")
    return AssetResponse(record=record)


@router.post(
    "",
    response_model=CreateAssetResult,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def create_asset(create_request: CreateAssetRequest, tracker: AssetTracker = Depends(get_tracker)):
    """
    Encrypts the confidential value and registers the asset on-chain.
    Returns once the transaction is mined and the asset set has been re-synced.

    - **name**, **latitude**, **longitude**: required.
    - **value**: non-negative integer, empty means 0.
    """
    logger.info(f"Received request to create asset {create_request.name!r}")
    try:
        return await tracker.create_asset(create_request)
    except AssetTrackerError as e:
        raise to_http_exception(e)


@router.post("/{asset_id}/reveal", response_model=RevealResponse, responses=_ERRORS)
async def reveal_asset_value(asset_id: str, tracker: AssetTracker = Depends(get_tracker)):
    """
    Reveals the asset's confidential value. The first reveal publicly decrypts
    the value and verifies the proof on-chain; later reveals read the stored value.
    """
    logger.info(f"Received request to reveal value of asset {asset_id}")
    try:
        value = await tracker.reveal_value(asset_id)
    except AssetTrackerError as e:
        raise to_http_exception(e)
    return RevealResponse(asset_id=asset_id, value=value)
