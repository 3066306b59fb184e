from fastapi import APIRouter, Depends
import logging

from ..errors import AssetTrackerError
from ..models.status_models import ErrorResponse, SessionResponse
from ..services.tracker_service import AssetTracker
from .dependencies import ERROR_RESPONSES, get_tracker, to_http_exception

router = APIRouter(
    prefix="/session",
    tags=["Wallet Session"],
)

logger = logging.getLogger(__name__)


def _session_response(tracker: AssetTracker) -> SessionResponse:
    return SessionResponse(
        connected=tracker.session.is_connected,
        address=tracker.session.address,
        fhe_ready=tracker.sequencer.is_ready,
        contract_address=tracker.contract_address,
    )


@router.get("", response_model=SessionResponse)
def get_session(tracker: AssetTracker = Depends(get_tracker)):
    """Current wallet connection and FHE engine readiness."""
    return _session_response(tracker)


@router.post(
    "/connect",
    response_model=SessionResponse,
    responses={code: {"model": ErrorResponse, **info} for code, info in ERROR_RESPONSES.items()},
)
async def connect_session(tracker: AssetTracker = Depends(get_tracker)):
    """
    Connects the configured wallet, initializes the FHE engine and loads the
    asset set. Safe to call again to retry a failed initialization.
    """
    try:
        address = await tracker.connect()
    except AssetTrackerError as e:
        logger.warning(f"Wallet connection failed: {e}")
        raise to_http_exception(e)
    logger.info(f"Session connected for {address} (fhe_ready={tracker.sequencer.is_ready})")
    return _session_response(tracker)


@router.post("/disconnect", response_model=SessionResponse)
def disconnect_session(tracker: AssetTracker = Depends(get_tracker)):
    tracker.disconnect()
    return _session_response(tracker)
