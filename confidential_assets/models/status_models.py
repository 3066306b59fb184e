from typing import Literal, Optional

from pydantic import BaseModel, Field

TransactionPhase = Literal["pending", "success", "error"]


class TransactionStatus(BaseModel):
    visible: bool = False
    status: TransactionPhase = "pending"
    message: str = ""
    sequence: int = Field(0, description="Submission counter; increases with every show().")


class AvailabilityResponse(BaseModel):
    available: bool
    contract_address: Optional[str] = None


class SessionResponse(BaseModel):
    connected: bool
    address: Optional[str] = None
    fhe_ready: bool = Field(False, description="True once the encryption engine is initialized.")
    contract_address: Optional[str] = None


class ErrorResponse(BaseModel):
    detail: str
