import logging

from eth_account import Account
from web3 import Web3

from .. import config
from ..errors import PreconditionError

logger = logging.getLogger(__name__)


class WalletSession:
    """Connection state and active identity of the wallet driving the tracker."""

    def __init__(self, private_key: str | None = None, address: str | None = None):
        self._private_key = private_key
        self._configured_address = address
        self._account = None
        self.address: str | None = None

    @classmethod
    def from_config(cls) -> "WalletSession":
        return cls(private_key=config.WALLET_PRIVATE_KEY, address=config.WALLET_ADDRESS)

    @property
    def is_connected(self) -> bool:
        return self.address is not None

    @property
    def account(self):
        """Local signing account, or None when the node/wallet signs."""
        return self._account

    def connect(self) -> str:
        if self.is_connected:
            return self.address
        if self._private_key:
            try:
                self._account = Account.from_key(self._private_key)
            except Exception as e:
                # eth-keys raises its own ValidationError for malformed keys
                logger.error(f"Invalid WALLET_PRIVATE_KEY: {e}")
                raise PreconditionError("Invalid wallet private key") from e
            self.address = self._account.address
            logger.info(f"Wallet session connected with local signer. Address: {self.address}")
        elif self._configured_address:
            if not Web3.is_address(self._configured_address):
                raise PreconditionError(f"Invalid wallet address: {self._configured_address}")
            self.address = Web3.to_checksum_address(self._configured_address)
            logger.info(f"Wallet session connected with provider-managed account. Address: {self.address}")
        else:
            raise PreconditionError("No wallet configured")
        return self.address

    def disconnect(self):
        if self.address:
            logger.info(f"Wallet session disconnected: {self.address}")
        self._account = None
        self.address = None

    def require_identity(self) -> str:
        if not self.is_connected:
            raise PreconditionError("Please connect wallet first")
        return self.address
