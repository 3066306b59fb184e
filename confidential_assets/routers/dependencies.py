import logging

from fastapi import HTTPException, Request, status

from ..errors import (
    AssetTrackerError,
    EngineError,
    PreconditionError,
    SyncError,
    TransactionError,
    UserRejectedError,
)
from ..services.tracker_service import AssetTracker

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"description": "Precondition failed (no wallet, engine not ready, invalid input)"},
    status.HTTP_409_CONFLICT: {"description": "Transaction rejected by user"},
    status.HTTP_502_BAD_GATEWAY: {"description": "Encryption engine or transaction failure"},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Ledger could not be read"},
}


def get_tracker(request: Request) -> AssetTracker:
    tracker = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Asset tracker is not configured. Check RPC_URL, CONTRACT_ADDRESS and RELAYER_URL.",
        )
    return tracker


def to_http_exception(exc: AssetTrackerError) -> HTTPException:
    """Maps the error taxonomy onto HTTP status codes."""
    if isinstance(exc, PreconditionError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, UserRejectedError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (TransactionError, EngineError)):
        code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, SyncError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
