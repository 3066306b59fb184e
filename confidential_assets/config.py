import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))

# --- Ledger ---
RPC_URL = os.getenv("RPC_URL")
CONTRACT_ADDRESS = os.getenv("CONTRACT_ADDRESS")
# Foundry/Hardhat artifact (or a bare ABI list); defaults to the bundled one
CONTRACT_ABI_PATH = os.getenv(
    "CONTRACT_ABI_PATH",
    os.path.join(_PACKAGE_DIR, "abi", "ConfidentialAssetTracker.json"),
)

# --- Wallet ---
# A local key signs transactions here; a bare address defers signing to the node/wallet.
WALLET_PRIVATE_KEY = os.getenv("WALLET_PRIVATE_KEY")
WALLET_ADDRESS = os.getenv("WALLET_ADDRESS")

# --- Encryption engine (relayer) ---
RELAYER_URL = os.getenv("RELAYER_URL")

# Expected frontend origins (comma separated)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]


def _int_setting(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name} in .env file. Defaulting to {default}.")
        return default


def _float_setting(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name} in .env file. Defaulting to {default}.")
        return default


# 0 means "ask the node"
CHAIN_ID = _int_setting("CHAIN_ID", 0)
TX_RECEIPT_TIMEOUT_SECONDS = _int_setting("TX_RECEIPT_TIMEOUT_SECONDS", 120)
RELAYER_TIMEOUT_SECONDS = _int_setting("RELAYER_TIMEOUT_SECONDS", 60)

# --- Transaction status auto-clear delays ---
STATUS_SUCCESS_CLEAR_SECONDS = _float_setting("STATUS_SUCCESS_CLEAR_SECONDS", 2.0)
STATUS_ERROR_CLEAR_SECONDS = _float_setting("STATUS_ERROR_CLEAR_SECONDS", 3.0)

# Basic validation
if not RPC_URL:
    logger.warning("RPC_URL not found in .env file. Ledger interactions will fail.")
if not CONTRACT_ADDRESS:
    logger.warning("CONTRACT_ADDRESS not found in .env file. Ledger interactions will fail.")
if not RELAYER_URL:
    logger.warning("RELAYER_URL not found in .env file. Encryption and decryption will fail.")
if not WALLET_PRIVATE_KEY and not WALLET_ADDRESS:
    logger.warning("Neither WALLET_PRIVATE_KEY nor WALLET_ADDRESS is set. Cannot connect a wallet session.")
