"""
Transaction assembly pipeline.

Resolves a recent blockhash, optionally sizes the compute budget by
simulation and prices it through the fee oracle, then compiles, signs and
serializes the final v0 transaction.

Example:
    request = TxRequest(
        endpoint="https://mainnet.helius-rpc.com/?api-key=...",
        payer=wallet.pubkey(),
        instructions=[transfer_ix],
        signers=[wallet],
        serialize=True,
        encode=True,
    )
    result = await build_transaction(request)
    result.raise_for_error()
    print(result.transaction)  # base64 text
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Union

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .compute import ComputeUnitEstimator, EstimateStatus
from .compute_budget import (
    create_set_compute_unit_limit_instruction,
    create_set_compute_unit_price_instruction,
)
from .config import BuilderSettings, PriorityLevel, get_settings
from .exceptions import MissingParameterError, TransactionSimulationError
from .fees import PriorityFeeEstimator
from .rpc import SolanaRPCClient
from .transaction import compile_transaction, encode_base64, serialize_transaction, sign_transaction
from .validators import (
    parse_pubkey,
    validate_instructions,
    validate_priority_level,
    validate_rpc_url,
    validate_tolerance,
)

logger = logging.getLogger(__name__)

BUILT_MESSAGE = "Transaction built successfully"
SERIALIZED_MESSAGE = "Success"


class PayloadFormat(str, Enum):
    TRANSACTION = "transaction"
    RAW = "raw"
    BASE64 = "base64"


@dataclass
class TxRequest:
    """
    Caller-supplied build configuration.

    Optional fields left as None fall back to BuilderSettings
    (tolerance 1.1, tier "Medium", both optimizations enabled).
    """
    endpoint: Optional[str] = None
    payer: Optional[Union[str, Pubkey]] = None
    instructions: Optional[List[Instruction]] = None
    signers: Optional[Sequence[Any]] = None
    lookup_tables: List[AddressLookupTableAccount] = field(default_factory=list)
    tolerance: Optional[float] = None
    priority_level: Optional[Union[str, PriorityLevel]] = None
    optimize_compute: Optional[bool] = None
    optimize_fees: Optional[bool] = None
    serialize: bool = False
    encode: bool = False


@dataclass
class TxResult:
    success: bool
    message: str
    transaction: Union[VersionedTransaction, bytes, str, None] = None
    payload_format: Optional[PayloadFormat] = None
    logs: List[str] = field(default_factory=list)
    instructions: List[Instruction] = field(default_factory=list)
    compute_units: Optional[int] = None
    priority_fee: Optional[int] = None
    blockhash: Optional[Hash] = None
    last_valid_block_height: Optional[int] = None
    error: Optional[Any] = None

    @classmethod
    def failure(cls, message: str, logs: Optional[List[str]] = None, error: Any = None) -> "TxResult":
        return cls(success=False, message=message, logs=list(logs or []), error=error)

    def raise_for_error(self) -> "TxResult":
        if not self.success:
            raise TransactionSimulationError(
                self.message,
                context={"err": self.error} if self.error is not None else {},
                simulation_logs=list(self.logs),
            )
        return self


@dataclass
class _ResolvedRequest:
    endpoint: str
    payer: Pubkey
    instructions: List[Instruction]
    tolerance: float
    priority_level: PriorityLevel
    optimize_compute: bool
    optimize_fees: bool
    serialize: bool
    encode: bool


class TransactionAssembler:

    def __init__(
        self,
        settings: Optional[BuilderSettings] = None,
        rpc_factory: Callable[[str], SolanaRPCClient] = SolanaRPCClient
    ):
        self.settings = settings or get_settings().builder
        self.rpc_factory = rpc_factory

    def _resolve(self, request: TxRequest) -> _ResolvedRequest:
        missing = [
            name for name, value in (
                ("endpoint", request.endpoint),
                ("payer", request.payer),
                ("instructions", request.instructions),
            )
            if value is None or (isinstance(value, (str, list, tuple)) and len(value) == 0)
        ]
        if missing:
            raise MissingParameterError(
                f"Missing required parameters: {', '.join(missing)}",
                missing=missing,
            )

        def pick(value, default):
            return default if value is None else value

        serialize = request.serialize or request.encode

        return _ResolvedRequest(
            endpoint=validate_rpc_url(request.endpoint),
            payer=parse_pubkey(request.payer, "payer"),
            instructions=validate_instructions(request.instructions),
            tolerance=validate_tolerance(pick(request.tolerance, self.settings.default_tolerance)),
            priority_level=validate_priority_level(
                pick(request.priority_level, self.settings.default_priority_level)
            ),
            optimize_compute=pick(request.optimize_compute, self.settings.optimize_compute),
            optimize_fees=pick(request.optimize_fees, self.settings.optimize_fees),
            serialize=serialize,
            encode=request.encode,
        )

    async def build(self, request: TxRequest) -> TxResult:
        """
        Build the transaction described by ``request``.

        Returns a failed TxResult carrying the simulation logs when the dry
        run is rejected; the fee oracle is not consulted in that case.
        Raises ValidationError before any network call for bad input,
        RPCError for transport failures and PriorityFeeError when no fee
        estimate could be obtained.
        """
        resolved = self._resolve(request)

        async with self.rpc_factory(resolved.endpoint) as rpc:
            return await self._build(rpc, resolved, request)

    async def _build(self, rpc: SolanaRPCClient, resolved: _ResolvedRequest, request: TxRequest) -> TxResult:
        latest = await rpc.get_latest_blockhash()
        blockhash = latest.blockhash
        tables = list(request.lookup_tables or [])
        instructions = list(resolved.instructions)

        compute_units = None
        if resolved.optimize_compute:
            estimator = ComputeUnitEstimator(rpc, self.settings.max_compute_units)
            estimate = await estimator.estimate(
                resolved.payer, instructions, resolved.tolerance, blockhash, tables
            )
            if estimate.status == EstimateStatus.SIMULATION_FAILED:
                return TxResult.failure(estimate.message, estimate.logs, estimate.simulation_error)
            if estimate.status == EstimateStatus.TRANSPORT_ERROR:
                raise estimate.error

            compute_units = estimate.units
            instructions.insert(0, create_set_compute_unit_limit_instruction(compute_units))

        priority_fee = None
        if resolved.optimize_fees:
            fee_estimator = PriorityFeeEstimator(rpc, self.settings.priority_fee_floor)
            priority_fee = await fee_estimator.estimate(
                resolved.payer, resolved.priority_level, instructions, blockhash, tables
            )
            instructions.insert(0, create_set_compute_unit_price_instruction(priority_fee))

        tx = compile_transaction(resolved.payer, instructions, blockhash, tables)

        if request.signers:
            tx = sign_transaction(tx, request.signers)

        payload: Union[VersionedTransaction, bytes, str] = tx
        payload_format = PayloadFormat.TRANSACTION
        if resolved.serialize:
            payload = serialize_transaction(tx)
            payload_format = PayloadFormat.RAW
        if resolved.encode:
            payload = encode_base64(payload)
            payload_format = PayloadFormat.BASE64

        logger.info(
            f"Built transaction: {len(instructions)} instructions, "
            f"compute_units={compute_units}, priority_fee={priority_fee}, format={payload_format.value}"
        )

        return TxResult(
            success=True,
            message=SERIALIZED_MESSAGE if resolved.serialize else BUILT_MESSAGE,
            transaction=payload,
            payload_format=payload_format,
            instructions=instructions,
            compute_units=compute_units,
            priority_fee=priority_fee,
            blockhash=blockhash,
            last_valid_block_height=latest.last_valid_block_height,
        )


async def build_transaction(request: TxRequest, settings: Optional[BuilderSettings] = None) -> TxResult:
    return await TransactionAssembler(settings).build(request)


def build_transaction_sync(request: TxRequest, settings: Optional[BuilderSettings] = None) -> TxResult:
    """Blocking wrapper around build_transaction for code without an event loop."""
    return asyncio.run(build_transaction(request, settings))


__all__ = [
    "PayloadFormat",
    "TxRequest",
    "TxResult",
    "TransactionAssembler",
    "build_transaction",
    "build_transaction_sync",
    "BUILT_MESSAGE",
    "SERIALIZED_MESSAGE",
]
