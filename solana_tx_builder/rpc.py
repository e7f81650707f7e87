"""
Async RPC client used by the builder pipeline.

Standard queries (latest blockhash, signature statuses, transaction logs) go
through ``solana.rpc.async_api.AsyncClient``. Simulation and the
``getPriorityFeeEstimate`` fee oracle are sent as raw JSON-RPC over aiohttp,
since they need request options the typed client does not expose.

Every transport or protocol failure is raised as an ``RPCError`` subclass.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, TypeVar, Union

import aiohttp
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solders.errors import SerdeJSONError
from solders.hash import Hash
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .config import RPCSettings, get_settings
from .exceptions import (
    BlockhashNotFoundError,
    RPCConnectionError,
    RPCResponseError,
    RPCTimeoutError,
)
from .transaction import encode_base58, encode_base64

logger = logging.getLogger(__name__)

FEE_ESTIMATE_METHOD = "getPriorityFeeEstimate"

T = TypeVar("T")


@dataclass
class LatestBlockhash:
    blockhash: Hash
    last_valid_block_height: int


@dataclass
class SimulationResult:
    err: Optional[Any]
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.err is None


@dataclass
class SignatureStatus:
    signature: str
    confirmation_status: Optional[str] = None
    err: Optional[str] = None
    slot: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.confirmation_status is not None

    @property
    def is_finalized(self) -> bool:
        return self.confirmation_status == "finalized"


def _normalize_confirmation_status(status: Any) -> Optional[str]:
    if status is None:
        return None
    status_str = str(status).lower()
    for level in ("finalized", "confirmed", "processed"):
        if level in status_str:
            return level
    return status_str


class SolanaRPCClient:
    """
    Request/response client for one RPC endpoint.

    Example:
        async with SolanaRPCClient("https://mainnet.helius-rpc.com/?api-key=...") as rpc:
            latest = await rpc.get_latest_blockhash()
    """

    def __init__(
        self,
        endpoint: str,
        commitment: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[RPCSettings] = None,
    ):
        settings = settings or get_settings().rpc
        self.endpoint = endpoint
        self.commitment = commitment or settings.commitment
        self.timeout = timeout if timeout is not None else settings.timeout

        self._client = AsyncClient(endpoint, commitment=Commitment(self.commitment), timeout=self.timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()
        self._request_ids = itertools.count(1)

    async def __aenter__(self) -> "SolanaRPCClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    headers={
                        "Accept": "application/json",
                        "Content-Type": "application/json",
                    }
                )
            return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        await self._client.close()

    # ------------------------------------------------------------------
    # Raw JSON-RPC
    # ------------------------------------------------------------------

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._ensure_session()
        method = payload.get("method")

        try:
            async with session.post(self.endpoint, json=payload) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise RPCResponseError(
                        f"HTTP {response.status} from {method}: {text[:200]}",
                        rpc_endpoint=self.endpoint,
                        method_name=method,
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise RPCResponseError(
                        f"Invalid JSON in {method} response: {e}",
                        rpc_endpoint=self.endpoint,
                        method_name=method,
                    ) from e
        except aiohttp.ClientError as e:
            raise RPCConnectionError(
                f"Connection error calling {method}: {e}",
                rpc_endpoint=self.endpoint,
                method_name=method,
            ) from e
        except asyncio.TimeoutError as e:
            raise RPCTimeoutError(
                f"{method} timed out after {self.timeout}s",
                rpc_endpoint=self.endpoint,
                method_name=method,
                timeout_seconds=self.timeout,
            ) from e

    async def _rpc_request(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        logger.debug(f"RPC {method} -> {self.endpoint}")

        data = await self._post(payload)

        if not isinstance(data, dict):
            raise RPCResponseError(
                f"Unexpected {method} response type: {type(data).__name__}",
                rpc_endpoint=self.endpoint,
                method_name=method,
            )

        if data.get("error") is not None:
            error = data["error"]
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise RPCResponseError(
                f"{method} failed: {message}",
                rpc_endpoint=self.endpoint,
                method_name=method,
                rpc_error_code=code,
                rpc_error_message=message,
            )

        if "result" not in data:
            raise RPCResponseError(
                f"{method} response has no result",
                rpc_endpoint=self.endpoint,
                method_name=method,
            )

        return data["result"]

    async def _typed_call(self, method: str, call: Awaitable[T]) -> T:
        """Await an AsyncClient call, mapping its failures onto RPCError."""
        try:
            return await call
        except RPCException as e:
            raise RPCResponseError(
                f"{method} failed: {e}",
                rpc_endpoint=self.endpoint,
                method_name=method,
            ) from e
        except (SerdeJSONError, ValueError) as e:
            # Non-JSON body on an HTTP 200, e.g. a proxy error page
            raise RPCResponseError(
                f"Unparseable {method} response: {e}",
                rpc_endpoint=self.endpoint,
                method_name=method,
            ) from e
        except (SolanaRpcException, asyncio.TimeoutError) as e:
            raise RPCConnectionError(
                f"{method} failed: {e}",
                rpc_endpoint=self.endpoint,
                method_name=method,
            ) from e

    # ------------------------------------------------------------------
    # Pipeline methods
    # ------------------------------------------------------------------

    async def get_latest_blockhash(self, commitment: Optional[str] = None) -> LatestBlockhash:
        level = Commitment(commitment or self.commitment)
        response = await self._typed_call(
            "getLatestBlockhash",
            self._client.get_latest_blockhash(commitment=level),
        )

        if not response.value:
            raise BlockhashNotFoundError(
                "Failed to get recent blockhash",
                rpc_endpoint=self.endpoint,
                method_name="getLatestBlockhash",
            )

        latest = LatestBlockhash(
            blockhash=response.value.blockhash,
            last_valid_block_height=response.value.last_valid_block_height,
        )
        logger.debug(f"Fetched blockhash {latest.blockhash} (valid until {latest.last_valid_block_height})")
        return latest

    async def simulate_transaction(
        self,
        transaction: VersionedTransaction,
        sig_verify: bool = False,
        replace_recent_blockhash: bool = True,
    ) -> SimulationResult:
        encoded = encode_base64(transaction)
        result = await self._rpc_request(
            "simulateTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "commitment": self.commitment,
                    "sigVerify": sig_verify,
                    "replaceRecentBlockhash": replace_recent_blockhash,
                },
            ],
        )

        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise RPCResponseError(
                "Empty simulation response",
                rpc_endpoint=self.endpoint,
                method_name="simulateTransaction",
            )

        return SimulationResult(
            err=value.get("err"),
            logs=list(value.get("logs") or []),
            units_consumed=value.get("unitsConsumed"),
        )

    async def get_priority_fee_estimate(
        self,
        transaction: VersionedTransaction,
        priority_level: str,
    ) -> Dict[str, Any]:
        serialized = encode_base58(transaction)
        result = await self._rpc_request(
            FEE_ESTIMATE_METHOD,
            [
                {
                    "transaction": serialized,
                    "options": {"priorityLevel": priority_level},
                }
            ],
        )
        if not isinstance(result, dict):
            raise RPCResponseError(
                f"Unexpected {FEE_ESTIMATE_METHOD} result: {result!r}",
                rpc_endpoint=self.endpoint,
                method_name=FEE_ESTIMATE_METHOD,
            )
        return result

    async def get_signature_status(
        self,
        signature: Union[str, Signature],
        search_transaction_history: bool = True,
    ) -> SignatureStatus:
        sig = signature if isinstance(signature, Signature) else Signature.from_string(signature)
        response = await self._typed_call(
            "getSignatureStatuses",
            self._client.get_signature_statuses(
                [sig],
                search_transaction_history=search_transaction_history,
            ),
        )

        if not response.value or response.value[0] is None:
            return SignatureStatus(signature=str(sig))

        status = response.value[0]
        return SignatureStatus(
            signature=str(sig),
            confirmation_status=_normalize_confirmation_status(status.confirmation_status),
            err=str(status.err) if status.err is not None else None,
            slot=status.slot,
        )

    async def get_transaction_logs(self, signature: Union[str, Signature]) -> List[str]:
        sig = signature if isinstance(signature, Signature) else Signature.from_string(signature)
        response = await self._typed_call(
            "getTransaction",
            self._client.get_transaction(sig, max_supported_transaction_version=0),
        )

        if response.value is None or response.value.transaction.meta is None:
            return []
        return list(response.value.transaction.meta.log_messages or [])


__all__ = [
    "FEE_ESTIMATE_METHOD",
    "LatestBlockhash",
    "SimulationResult",
    "SignatureStatus",
    "SolanaRPCClient",
]
