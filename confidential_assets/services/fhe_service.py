import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List

import requests

from .. import config
from ..errors import DecryptionError, EncryptionError, EngineError, EngineNotReadyError
from ..models.engine_models import DecryptionResult, EncryptedInput, KeyMaterial

logger = logging.getLogger(__name__)

# Receives (abiEncodedClearValues, decryptionProof) and submits them on-chain
VerificationCallback = Callable[[str, str], Awaitable[Any]]


class RelayerFheEngine:
    """
    Client for the FHE relayer: fetches the network key material, builds
    encrypted inputs with their proof, and runs the public decryption protocol.

    HTTP calls are blocking (``requests``) and are pushed off the event loop
    with ``asyncio.to_thread``.
    """

    def __init__(
        self,
        base_url: str,
        chain_id: int = config.CHAIN_ID,
        timeout: float = config.RELAYER_TIMEOUT_SECONDS,
        http: requests.Session | None = None,
    ):
        if not base_url:
            raise ValueError("Relayer base URL is required.")
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.timeout = timeout
        self.http = http or requests.Session()
        self.key_material: KeyMaterial | None = None

    @classmethod
    def from_config(cls) -> "RelayerFheEngine":
        if not config.RELAYER_URL:
            raise RuntimeError("RELAYER_URL not configured.")
        return cls(config.RELAYER_URL)

    @property
    def is_initialized(self) -> bool:
        return self.key_material is not None

    async def initialize(self) -> KeyMaterial:
        payload = await self._request("GET", "/v1/keyurl", error_cls=EngineError)
        try:
            response = payload.get("response", payload)
            key_info = response["fhe_key_info"][0]["fhe_public_key"]
            crs = response.get("crs", {}).get("2048", {})
            self.key_material = KeyMaterial(public_key_id=key_info["data_id"], crs_id=crs.get("data_id"))
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise EngineError(f"Unexpected key material response from relayer: {payload}") from e
        logger.info(f"FHE engine initialized. Public key id: {self.key_material.public_key_id}")
        return self.key_material

    async def encrypt(self, contract_address: str, user_address: str, value: int) -> EncryptedInput:
        self._require_initialized()
        body = {
            "contractAddress": contract_address,
            "userAddress": user_address,
            "chainId": self.chain_id,
            "publicKeyId": self.key_material.public_key_id,
            "values": [{"type": "euint32", "value": value}],
        }
        logger.info(f"Requesting encrypted input for contract {contract_address}, user {user_address}")
        payload = await self._request("POST", "/v1/encrypt", json_body=body, error_cls=EncryptionError)
        try:
            handles = payload["handles"]
            proof = payload["inputProof"]
            if not handles:
                raise KeyError("handles")
        except (KeyError, TypeError) as e:
            raise EncryptionError(f"Unexpected encryption response from relayer: {payload}") from e
        return EncryptedInput(handle=handles[0], proof=proof)

    async def public_decrypt(
        self,
        handles: List[str],
        contract_address: str,
        on_chain_verify: VerificationCallback,
    ) -> DecryptionResult:
        """
        Decrypts ``handles`` through the relayer, then hands the ABI-encoded clear
        values and the decryption proof to ``on_chain_verify``. Errors raised by the
        callback propagate unchanged.
        """
        self._require_initialized()
        body = {"handles": list(handles), "contractAddress": contract_address}
        logger.info(f"Requesting public decryption of {len(handles)} handle(s) for contract {contract_address}")
        payload = await self._request("POST", "/v1/public-decrypt", json_body=body, error_cls=DecryptionError)
        try:
            result = DecryptionResult(
                clear_values={h: int(v) for h, v in payload["clearValues"].items()},
                abi_encoded_clear_values=payload["abiEncodedClearValues"],
                decryption_proof=payload["decryptionProof"],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecryptionError(f"Unexpected decryption response from relayer: {payload}") from e

        missing = [h for h in handles if h not in result.clear_values]
        if missing:
            raise DecryptionError(f"Relayer returned no clear value for handle(s): {missing}")

        await on_chain_verify(result.abi_encoded_clear_values, result.decryption_proof)
        return result

    def _require_initialized(self):
        if not self.is_initialized:
            raise EngineNotReadyError("FHE engine is not initialized")

    async def _request(self, method: str, path: str, json_body: Dict[str, Any] | None = None, error_cls=EngineError) -> Dict[str, Any]:
        return await asyncio.to_thread(self._request_sync, method, path, json_body, error_cls)

    def _request_sync(self, method: str, path: str, json_body: Dict[str, Any] | None, error_cls) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, json=json_body, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            # Relayer error bodies carry the reason (e.g. an already-verified revert)
            detail = e.response.text if e.response is not None else str(e)
            logger.error(f"Relayer HTTP error on {method} {url}: {detail}")
            raise error_cls(f"Relayer error: {detail}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error talking to relayer {method} {url}: {type(e).__name__} - {e}")
            raise error_cls(f"Relayer unreachable: {e}") from e
        except ValueError as e:
            logger.error(f"Relayer returned a non-JSON body for {method} {url}: {e}")
            raise error_cls("Relayer returned an invalid response") from e
