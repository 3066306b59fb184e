import asyncio

import pytest
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from confidential_assets import config
from confidential_assets.errors import (
    SyncError,
    TransactionFailedError,
    TransactionRevertedError,
    UserRejectedError,
    is_already_verified,
)
from confidential_assets.services.ledger_service import (
    LedgerClient,
    PendingTransaction,
    classify_transaction_error,
    load_contract_abi,
)
from confidential_assets.services.session_service import WalletSession

from conftest import CONTRACT_ADDRESS, USER_ADDRESS


class _Call:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    async def call(self):
        if self.error:
            raise self.error
        return self.result

    async def transact(self, params):
        if self.error:
            raise self.error
        self.params = params
        return bytes.fromhex("aa" * 32)


class _Functions:
    def __init__(self, **calls):
        self.calls = calls
        self.invocations = []

    def __getattr__(self, name):
        def build(*args):
            self.invocations.append((name, args))
            return self.calls[name]
        return build


class _Contract:
    def __init__(self, **calls):
        self.functions = _Functions(**calls)


class _Eth:
    def __init__(self, receipt=None, error=None):
        self.receipt = receipt
        self.error = error

    async def wait_for_transaction_receipt(self, tx_hash, timeout):
        if self.error:
            raise self.error
        return self.receipt


class _W3:
    def __init__(self, eth):
        self.eth = eth


def _client(**calls):
    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider("http://127.0.0.1:8545"))
    session = WalletSession(address=USER_ADDRESS)
    session.connect()
    client = LedgerClient(w3, CONTRACT_ADDRESS, load_contract_abi(config.CONTRACT_ABI_PATH), session)
    client.contract = _Contract(**calls)
    return client


def test_bundled_abi_declares_the_contract_surface():
    names = {entry["name"] for entry in load_contract_abi(config.CONTRACT_ABI_PATH) if entry["type"] == "function"}
    assert {
        "getAllBusinessIds", "getBusinessData", "getEncryptedValue",
        "isAvailable", "createBusinessData", "verifyDecryption",
    } <= names


def test_load_contract_abi_accepts_bare_list(tmp_path):
    path = tmp_path / "abi.json"
    path.write_text('[{"type": "function", "name": "isAvailable", "inputs": [], "outputs": []}]')
    assert load_contract_abi(str(path))[0]["name"] == "isAvailable"


def test_get_asset_data_maps_tuple_fields():
    raw = ("Crate-1", 12_340_000, -56_780_000, "test", USER_ADDRESS, 1_700_000_000, True, 500)
    client = _client(getBusinessData=_Call(result=raw))

    data = asyncio.run(client.get_asset_data("asset-1"))

    assert data == {
        "name": "Crate-1",
        "publicValue1": 12_340_000,
        "publicValue2": -56_780_000,
        "description": "test",
        "creator": USER_ADDRESS,
        "timestamp": 1_700_000_000,
        "isVerified": True,
        "decryptedValue": 500,
    }


def test_read_failures_become_sync_errors():
    client = _client(
        getAllBusinessIds=_Call(error=ConnectionError("rpc down")),
        getBusinessData=_Call(result=("too", "short")),
    )
    with pytest.raises(SyncError):
        asyncio.run(client.list_asset_ids())
    with pytest.raises(SyncError):
        asyncio.run(client.get_asset_data("asset-1"))


def test_get_encrypted_value_returns_hex_handle():
    client = _client(getEncryptedValue=_Call(result=bytes.fromhex("01" * 32)))
    assert asyncio.run(client.get_encrypted_value("asset-1")) == "0x" + "01" * 32


def test_provider_managed_submission_returns_pending_transaction():
    verify_call = _Call()
    client = _client(verifyDecryption=verify_call)

    pending_tx = asyncio.run(client.verify_decryption("asset-1", "0x" + "00" * 31 + "2a", "0xdead"))

    assert pending_tx.tx_hash == "0x" + "aa" * 32
    assert verify_call.params == {"from": USER_ADDRESS}


def test_wallet_rejection_is_classified():
    rejected = ValueError({"code": 4001, "message": "User rejected the request."})
    client = _client(createBusinessData=_Call(error=rejected))

    with pytest.raises(UserRejectedError):
        asyncio.run(client.create_asset("asset-1", "Crate", "0x" + "11" * 32, "0x22", 1, 2, ""))


@pytest.mark.parametrize(
    "exc, expected",
    [
        (ValueError({"code": 4001, "message": "User rejected the request."}), UserRejectedError),
        (RuntimeError("MetaMask Tx Signature: User denied transaction signature."), UserRejectedError),
        (ContractLogicError("execution reverted: Data already verified"), TransactionRevertedError),
        (TimeExhausted("not mined"), TransactionFailedError),
        (ValueError({"code": -32000, "message": "insufficient funds for gas"}), TransactionFailedError),
    ],
)
def test_classify_transaction_error(exc, expected):
    assert isinstance(classify_transaction_error(exc), expected)


def test_already_verified_revert_is_recognized():
    error = classify_transaction_error(ContractLogicError("execution reverted: Data already verified"))
    assert is_already_verified(error)
    assert not is_already_verified(classify_transaction_error(ContractLogicError("execution reverted: bad proof")))


def test_pending_transaction_wait():
    mined = PendingTransaction(_W3(_Eth(receipt={"status": 1, "blockNumber": 7})), "0x01", timeout=1)
    reverted = PendingTransaction(_W3(_Eth(receipt={"status": 0})), "0x02", timeout=1)
    lost = PendingTransaction(_W3(_Eth(error=TimeExhausted("gone"))), "0x03", timeout=1)

    assert asyncio.run(mined.wait())["blockNumber"] == 7
    with pytest.raises(TransactionRevertedError) as excinfo:
        asyncio.run(reverted.wait())
    assert excinfo.value.tx_hash == "0x02"
    with pytest.raises(TransactionFailedError):
        asyncio.run(lost.wait())
