"""Exception hierarchy shared by the pipelines, adapters and routers."""


class AssetTrackerError(Exception):
    """Base class for every error raised by this package."""


class PreconditionError(AssetTrackerError):
    """Rejected before any side effect: no session, engine not ready, bad input."""


class EngineError(AssetTrackerError):
    """The encryption/decryption engine call failed."""


class EngineNotReadyError(EngineError):
    pass


class EncryptionError(EngineError):
    pass


class DecryptionError(EngineError):
    pass


class TransactionError(AssetTrackerError):
    """A write transaction could not be submitted or did not succeed on-chain."""

    def __init__(self, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class UserRejectedError(TransactionError):
    """The signer declined the transaction."""


class TransactionRevertedError(TransactionError):
    """The transaction (or its gas estimation) was reverted by the contract."""


class TransactionFailedError(TransactionError):
    """Any other chain-level failure (node error, receipt timeout, ...)."""


class SyncError(AssetTrackerError):
    """The asset identifiers or a record could not be read from the ledger."""


class AlreadyVerifiedError(AssetTrackerError):
    """Another actor verified the value first. Handled as success by the reveal pipeline."""


ALREADY_VERIFIED_MARKER = "already verified"


def is_already_verified(exc: BaseException) -> bool:
    """True when an engine or ledger failure reports that the value is already verified."""
    if isinstance(exc, AlreadyVerifiedError):
        return True
    return ALREADY_VERIFIED_MARKER in str(exc).lower()
