from typing import Dict

from pydantic import BaseModel, Field


class EncryptedInput(BaseModel):
    handle: str = Field(..., description="External encrypted value handle (bytes32 hex).")
    proof: str = Field(..., description="Input proof attesting the ciphertext is well formed (hex).")


class DecryptionResult(BaseModel):
    clear_values: Dict[str, int] = Field(..., description="Clear values keyed by encrypted handle.")
    abi_encoded_clear_values: str = Field(..., description="ABI encoding of the clear values, as checked on-chain.")
    decryption_proof: str = Field(..., description="KMS signatures over the clear values.")


class KeyMaterial(BaseModel):
    public_key_id: str
    crs_id: str | None = None

