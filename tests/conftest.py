import asyncio
import hashlib
import pathlib
import sys

import pytest

# Ensure repo root is on PYTHONPATH for direct package imports.
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from confidential_assets.errors import (  # noqa: E402
    EncryptionError,
    EngineError,
    EngineNotReadyError,
    SyncError,
    TransactionRevertedError,
    UserRejectedError,
)
from confidential_assets.models.engine_models import DecryptionResult, EncryptedInput  # noqa: E402
from confidential_assets.services.session_service import WalletSession  # noqa: E402
from confidential_assets.services.status_notifier import TransactionStatusNotifier  # noqa: E402
from confidential_assets.services.tracker_service import AssetTracker  # noqa: E402

CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
USER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def handle_for(asset_id: str) -> str:
    return "0x" + hashlib.sha256(asset_id.encode()).hexdigest()


class FakePendingTransaction:
    def __init__(self, tx_hash: str, on_mined=None, revert_reason: str | None = None):
        self.tx_hash = tx_hash
        self._on_mined = on_mined
        self._revert_reason = revert_reason

    async def wait(self):
        await asyncio.sleep(0)
        if self._revert_reason:
            raise TransactionRevertedError(self._revert_reason, self.tx_hash)
        if self._on_mined:
            self._on_mined()
        return {"status": 1, "transactionHash": self.tx_hash}


class FakeKms:
    """Clear values behind encrypted handles, shared by the fake ledger and engine."""

    def __init__(self):
        self.values = {}


class FakeLedger:
    contract_address = CONTRACT_ADDRESS

    def __init__(self, kms: FakeKms):
        self.kms = kms
        self.records = {}
        self.handles = {}
        self.broken_ids = set()
        self.fail_listing = False
        self.list_delays = []
        self.available = True
        self.reject_next_submission = False
        self.revert_next_creation = False
        self.read_calls = 0
        self.submitted = []
        self.mined = []
        self._tx_counter = 0

    def seed(self, asset_id, name, value, latitude, longitude, description="", timestamp=1_700_000_000,
             verified=False, creator=USER_ADDRESS):
        handle = handle_for(asset_id)
        self.kms.values[handle] = value
        self.handles[asset_id] = handle
        self.records[asset_id] = {
            "name": name,
            "publicValue1": round(latitude * 1_000_000),
            "publicValue2": round(longitude * 1_000_000),
            "description": description,
            "creator": creator,
            "timestamp": timestamp,
            "isVerified": verified,
            "decryptedValue": value if verified else 0,
        }

    def verify(self, asset_id):
        record = self.records[asset_id]
        record["isVerified"] = True
        record["decryptedValue"] = self.kms.values[self.handles[asset_id]]

    # --- Reads ---

    async def list_asset_ids(self):
        self.read_calls += 1
        if self.fail_listing:
            raise SyncError("node unreachable")
        ids = list(self.records)
        delay = self.list_delays.pop(0) if self.list_delays else 0
        await asyncio.sleep(delay)
        return ids

    async def get_asset_data(self, asset_id):
        self.read_calls += 1
        if asset_id in self.broken_ids:
            raise SyncError(f"Failed to read asset {asset_id}: bad record")
        if asset_id not in self.records:
            raise SyncError(f"Failed to read asset {asset_id}: execution reverted: Business data not found")
        return dict(self.records[asset_id])

    async def get_encrypted_value(self, asset_id):
        if asset_id not in self.handles:
            raise SyncError(f"Failed to read encrypted value handle for {asset_id}")
        return self.handles[asset_id]

    async def is_available(self):
        return self.available

    # --- Writes ---

    def _next_hash(self):
        self._tx_counter += 1
        return "0x" + f"{self._tx_counter:064x}"

    async def create_asset(self, asset_id, name, encrypted_handle, input_proof, latitude, longitude, description):
        if self.reject_next_submission:
            self.reject_next_submission = False
            raise UserRejectedError("Transaction rejected by user")
        tx_hash = self._next_hash()
        self.submitted.append(("createBusinessData", asset_id))

        if self.revert_next_creation:
            self.revert_next_creation = False
            return FakePendingTransaction(tx_hash, revert_reason="Transaction reverted on-chain")

        def on_mined():
            self.mined.append(("createBusinessData", asset_id))
            self.handles[asset_id] = encrypted_handle
            self.records[asset_id] = {
                "name": name,
                "publicValue1": latitude,
                "publicValue2": longitude,
                "description": description,
                "creator": USER_ADDRESS,
                "timestamp": 1_700_000_500,
                "isVerified": False,
                "decryptedValue": 0,
            }

        return FakePendingTransaction(tx_hash, on_mined=on_mined)

    async def verify_decryption(self, asset_id, abi_encoded_clear_values, decryption_proof):
        if self.records[asset_id]["isVerified"]:
            # Gas estimation hits the contract's require()
            raise TransactionRevertedError("execution reverted: Data already verified")
        tx_hash = self._next_hash()
        self.submitted.append(("verifyDecryption", asset_id))

        def on_mined():
            if self.records[asset_id]["isVerified"]:
                raise TransactionRevertedError("execution reverted: Data already verified", tx_hash)
            self.mined.append(("verifyDecryption", asset_id))
            self.records[asset_id]["isVerified"] = True
            self.records[asset_id]["decryptedValue"] = int(abi_encoded_clear_values, 16)

        return FakePendingTransaction(tx_hash, on_mined=on_mined)

    def count_mined(self, kind):
        return sum(1 for k, _ in self.mined if k == kind)


class FakeEngine:
    def __init__(self, kms: FakeKms):
        self.kms = kms
        self.initialized = False
        self.init_calls = 0
        self.init_failures = 0
        self.init_gate: asyncio.Event | None = None
        self.fail_encrypt = False
        self.fail_decrypt = False
        self.encrypt_calls = []
        self.decrypt_calls = []
        self.before_verify = None
        self._handle_counter = 0

    async def initialize(self):
        self.init_calls += 1
        if self.init_gate is not None:
            await self.init_gate.wait()
        if self.init_failures:
            self.init_failures -= 1
            raise EngineError("key material unavailable")
        self.initialized = True

    async def encrypt(self, contract_address, user_address, value):
        if not self.initialized:
            raise EngineNotReadyError("FHE engine is not initialized")
        self.encrypt_calls.append((contract_address, user_address, value))
        if self.fail_encrypt:
            raise EncryptionError("Relayer error: proof generation failed")
        self._handle_counter += 1
        handle = "0x" + f"{self._handle_counter:064x}"
        self.kms.values[handle] = value
        return EncryptedInput(handle=handle, proof="0x" + "ab" * 32)

    async def public_decrypt(self, handles, contract_address, on_chain_verify):
        if not self.initialized:
            raise EngineNotReadyError("FHE engine is not initialized")
        self.decrypt_calls.append((tuple(handles), contract_address))
        # The relayer round-trip suspends, letting other callers interleave
        await asyncio.sleep(0)
        if self.fail_decrypt:
            raise EngineError("Relayer error: KMS timeout")
        clear_values = {h: self.kms.values[h] for h in handles}
        abi_encoded = "0x" + "".join(f"{v:064x}" for v in clear_values.values())
        if self.before_verify is not None:
            await self.before_verify()
        await on_chain_verify(abi_encoded, "0x" + "cd" * 65)
        return DecryptionResult(
            clear_values=clear_values,
            abi_encoded_clear_values=abi_encoded,
            decryption_proof="0x" + "cd" * 65,
        )


@pytest.fixture
def kms():
    return FakeKms()


@pytest.fixture
def ledger(kms):
    return FakeLedger(kms)


@pytest.fixture
def engine(kms):
    return FakeEngine(kms)


@pytest.fixture
def notifier():
    return TransactionStatusNotifier(success_clear_seconds=0.05, error_clear_seconds=0.05)


@pytest.fixture
def session():
    return WalletSession(address=USER_ADDRESS)


@pytest.fixture
def tracker(session, ledger, engine, notifier):
    return AssetTracker(session, ledger, engine, notifier)


@pytest.fixture
def connected_tracker(tracker):
    asyncio.run(tracker.connect())
    return tracker
