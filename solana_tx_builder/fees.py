import logging
from typing import Any, Optional, Sequence, Union

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from .config import PriorityLevel
from .exceptions import PriorityFeeError, RPCError
from .rpc import FEE_ESTIMATE_METHOD, SolanaRPCClient
from .transaction import compile_transaction
from .validators import parse_pubkey, validate_priority_level

logger = logging.getLogger(__name__)

# Keeps quiet periods from producing zero-fee submissions.
PRIORITY_FEE_FLOOR = 10_000


def parse_fee_estimate(result: Any) -> int:
    """Extract the integer micro-lamport estimate from a fee oracle result."""
    if not isinstance(result, dict) or "priorityFeeEstimate" not in result:
        raise PriorityFeeError(f"{FEE_ESTIMATE_METHOD} result has no priorityFeeEstimate: {result!r}")

    raw = result["priorityFeeEstimate"]
    if isinstance(raw, bool):
        raise PriorityFeeError(f"Invalid priorityFeeEstimate: {raw!r}")
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError) as e:
        raise PriorityFeeError(f"Invalid priorityFeeEstimate: {raw!r}") from e


class PriorityFeeEstimator:

    def __init__(self, rpc: SolanaRPCClient, fee_floor: int = PRIORITY_FEE_FLOOR):
        self.rpc = rpc
        self.fee_floor = fee_floor

    async def estimate(
        self,
        payer: Union[str, Pubkey],
        priority_level: Union[str, PriorityLevel],
        instructions: Sequence[Instruction],
        blockhash: Hash,
        lookup_tables: Optional[Sequence[AddressLookupTableAccount]] = None
    ) -> int:
        """
        Ask the fee oracle for a compute unit price at ``priority_level``.

        The estimate is clamped to ``fee_floor``. Any transport or parse
        failure raises PriorityFeeError; there is no fallback price.
        """
        level = validate_priority_level(priority_level)
        tx = compile_transaction(parse_pubkey(payer, "payer"), instructions, blockhash, lookup_tables)

        try:
            result = await self.rpc.get_priority_fee_estimate(tx, level.value)
        except RPCError as e:
            logger.error(f"Error estimating fee: {e}")
            raise PriorityFeeError(
                "Failed to estimate fee",
                context={"cause": e.message},
                priority_level=level.value,
            ) from e

        try:
            estimate = parse_fee_estimate(result)
        except PriorityFeeError as e:
            e.priority_level = level.value
            logger.error(f"Error estimating fee: {e}")
            raise

        if estimate < self.fee_floor:
            logger.info(f"Fee estimate {estimate} below floor, using {self.fee_floor} micro-lamports")
            return self.fee_floor

        logger.info(f"Priority fee estimate: {estimate} micro-lamports/CU ({level.value})")
        return estimate


async def estimate_priority_fee(
    endpoint: str,
    payer: Union[str, Pubkey],
    priority_level: Union[str, PriorityLevel],
    instructions: Sequence[Instruction],
    blockhash: Hash,
    lookup_tables: Optional[Sequence[AddressLookupTableAccount]] = None
) -> int:
    async with SolanaRPCClient(endpoint) as rpc:
        return await PriorityFeeEstimator(rpc).estimate(
            payer, priority_level, instructions, blockhash, lookup_tables
        )


__all__ = [
    "PRIORITY_FEE_FLOOR",
    "PriorityFeeEstimator",
    "estimate_priority_fee",
    "parse_fee_estimate",
]
