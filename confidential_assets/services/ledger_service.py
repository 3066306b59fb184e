import asyncio
import json
import logging
from typing import Any, Dict, List

from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from .. import config
from ..errors import (
    PreconditionError,
    SyncError,
    TransactionError,
    TransactionFailedError,
    TransactionRevertedError,
    UserRejectedError,
)
from .session_service import WalletSession

logger = logging.getLogger(__name__)

# EIP-1193 "User Rejected Request"
USER_REJECTED_CODE = 4001


def load_contract_abi(path: str) -> List[Dict[str, Any]]:
    """Loads the ABI from a Foundry/Hardhat artifact (``abi`` key) or a bare ABI list."""
    try:
        with open(path, "r") as f:
            artifact = json.load(f)
    except FileNotFoundError:
        logger.error(f"CRITICAL: Contract ABI file not found at: {path}. Contract interactions will fail.")
        raise
    except json.JSONDecodeError as e:
        logger.error(f"CRITICAL: Failed to parse ABI JSON file {path}: {e}")
        raise

    abi = artifact.get("abi") if isinstance(artifact, dict) else artifact
    if not isinstance(abi, list):
        raise ValueError(f"'abi' key not found in artifact file: {path}")
    logger.info(f"Successfully loaded contract ABI from: {path}")
    return abi


def _rpc_error_details(exc: BaseException) -> tuple[int | None, str]:
    # web3 v7 attaches the JSON-RPC response; older providers put the error dict in args
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        error = response["error"]
        return error.get("code"), str(error.get("message", exc))
    if exc.args and isinstance(exc.args[0], dict):
        error = exc.args[0]
        return error.get("code"), str(error.get("message", exc))
    message = getattr(exc, "message", None)
    return None, message if isinstance(message, str) and message else str(exc)


def classify_transaction_error(exc: BaseException, tx_hash: str | None = None) -> TransactionError:
    """Maps a web3/provider exception raised while submitting a transaction onto our taxonomy."""
    if isinstance(exc, TransactionError):
        return exc
    code, message = _rpc_error_details(exc)
    if code == USER_REJECTED_CODE or "user rejected" in message.lower() or "user denied" in message.lower():
        return UserRejectedError("Transaction rejected by user", tx_hash)
    if isinstance(exc, ContractLogicError):
        return TransactionRevertedError(message or "execution reverted", tx_hash)
    if isinstance(exc, (TimeExhausted, TransactionNotFound)):
        return TransactionFailedError(f"Transaction {tx_hash} not confirmed: {message}", tx_hash)
    return TransactionFailedError(message or type(exc).__name__, tx_hash)


class PendingTransaction:
    """A submitted transaction. ``wait()`` resolves once it is mined."""

    def __init__(self, w3: AsyncWeb3, tx_hash: str, timeout: float):
        self.w3 = w3
        self.tx_hash = tx_hash
        self.timeout = timeout

    async def wait(self):
        logger.info(f"Waiting for transaction receipt {self.tx_hash}...")
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(self.tx_hash, timeout=self.timeout)
        except Exception as e:
            raise classify_transaction_error(e, self.tx_hash) from e

        if receipt["status"] != 1:
            logger.error(f"Transaction {self.tx_hash} reverted. Receipt: {receipt}")
            raise TransactionRevertedError("Transaction reverted on-chain", self.tx_hash)
        logger.info(f"Transaction {self.tx_hash} mined in block {receipt.get('blockNumber')}")
        return receipt


class LedgerClient:
    """Async client for the confidential asset tracker contract."""

    def __init__(
        self,
        w3: AsyncWeb3,
        contract_address: str,
        abi: List[Dict[str, Any]],
        session: WalletSession,
        receipt_timeout: float = config.TX_RECEIPT_TIMEOUT_SECONDS,
        chain_id: int = config.CHAIN_ID,
    ):
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.contract = w3.eth.contract(address=self.contract_address, abi=abi)
        self.session = session
        self.receipt_timeout = receipt_timeout
        self.chain_id = chain_id
        self._send_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, session: WalletSession) -> "LedgerClient":
        if not config.RPC_URL:
            raise RuntimeError("RPC_URL not configured.")
        if not config.CONTRACT_ADDRESS:
            raise RuntimeError("CONTRACT_ADDRESS not configured.")
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.RPC_URL))
        logger.info(f"Ledger client using RPC URL: {config.RPC_URL}, contract: {config.CONTRACT_ADDRESS}")
        return cls(w3, config.CONTRACT_ADDRESS, load_contract_abi(config.CONTRACT_ABI_PATH), session)

    # --- Reads ---

    async def list_asset_ids(self) -> List[str]:
        try:
            ids = await self.contract.functions.getAllBusinessIds().call()
        except Exception as e:
            raise SyncError(f"Failed to list asset identifiers: {e}") from e
        return list(ids)

    async def get_asset_data(self, asset_id: str) -> Dict[str, Any]:
        try:
            result_tuple = await self.contract.functions.getBusinessData(asset_id).call()
        except Exception as e:
            raise SyncError(f"Failed to read asset {asset_id}: {e}") from e

        if not isinstance(result_tuple, (list, tuple)) or len(result_tuple) < 8:
            raise SyncError(f"Unexpected record structure for asset {asset_id}: {result_tuple}")

        return {
            "name": result_tuple[0],
            "publicValue1": int(result_tuple[1]),
            "publicValue2": int(result_tuple[2]),
            "description": result_tuple[3],
            "creator": result_tuple[4],
            "timestamp": int(result_tuple[5]),
            "isVerified": bool(result_tuple[6]),
            "decryptedValue": int(result_tuple[7]),
        }

    async def get_encrypted_value(self, asset_id: str) -> str:
        try:
            handle = await self.contract.functions.getEncryptedValue(asset_id).call()
        except Exception as e:
            raise SyncError(f"Failed to read encrypted value handle for {asset_id}: {e}") from e
        return Web3.to_hex(handle)

    async def is_available(self) -> bool:
        return bool(await self.contract.functions.isAvailable().call())

    # --- Writes ---

    async def create_asset(
        self,
        asset_id: str,
        name: str,
        encrypted_handle: str,
        input_proof: str,
        latitude: int,
        longitude: int,
        description: str,
    ) -> PendingTransaction:
        fn_call = self.contract.functions.createBusinessData(
            asset_id,
            name,
            HexBytes(encrypted_handle),
            HexBytes(input_proof),
            latitude,
            longitude,
            description,
        )
        return await self._send(fn_call, f"createBusinessData({asset_id})")

    async def verify_decryption(self, asset_id: str, abi_encoded_clear_values: str, decryption_proof: str) -> PendingTransaction:
        fn_call = self.contract.functions.verifyDecryption(
            asset_id,
            HexBytes(abi_encoded_clear_values),
            HexBytes(decryption_proof),
        )
        return await self._send(fn_call, f"verifyDecryption({asset_id})")

    async def _send(self, fn_call, label: str) -> PendingTransaction:
        sender = self.session.require_identity()
        account = self.session.account
        try:
            async with self._send_lock:
                if account is not None:
                    nonce = await self.w3.eth.get_transaction_count(account.address, "pending")
                    chain_id = self.chain_id or await self.w3.eth.chain_id
                    tx_data = await fn_call.build_transaction({
                        "from": account.address,
                        "nonce": nonce,
                        "chainId": chain_id,
                    })
                    signed_tx = account.sign_transaction(tx_data)
                    tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
                else:
                    # Provider-managed account: the node or wallet signs, and may refuse
                    tx_hash = await fn_call.transact({"from": sender})
        except PreconditionError:
            raise
        except Exception as e:
            error = classify_transaction_error(e)
            logger.warning(f"{label} submission failed: {error}")
            raise error from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"{label} sent! Hash: {tx_hash_hex}")
        return PendingTransaction(self.w3, tx_hash_hex, self.receipt_timeout)
