from fastapi import APIRouter, Depends
import logging

from ..models.status_models import AvailabilityResponse, TransactionStatus
from ..services.tracker_service import AssetTracker
from .dependencies import get_tracker

router = APIRouter(
    prefix="/status",
    tags=["Status"],
)

logger = logging.getLogger(__name__)


@router.get("/transaction", response_model=TransactionStatus)
def get_transaction_status(tracker: AssetTracker = Depends(get_tracker)):
    """The single user-visible transaction status slot."""
    return tracker.transaction_status


@router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(tracker: AssetTracker = Depends(get_tracker)):
    """Probes the contract's isAvailable() view."""
    available = await tracker.check_availability()
    return AvailabilityResponse(available=available, contract_address=tracker.contract_address)
