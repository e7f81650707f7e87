"""
Compute unit estimation by dry-run simulation.

The candidate instructions are simulated behind a maximal compute unit
limit, and the consumed units reported by the node are scaled by a
tolerance multiplier and rounded up.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Union

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from .compute_budget import MAX_COMPUTE_UNITS, create_set_compute_unit_limit_instruction
from .exceptions import RPCError, RPCResponseError, TransactionSimulationError
from .rpc import SolanaRPCClient
from .transaction import compile_transaction
from .validators import parse_pubkey

logger = logging.getLogger(__name__)

SIMULATION_FAILED_MESSAGE = "Error during simulation"


class EstimateStatus(str, Enum):
    OK = "ok"
    SIMULATION_FAILED = "simulation_failed"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class ComputeEstimate:
    """Tagged outcome of a compute unit estimate."""
    status: EstimateStatus
    units: Optional[int] = None
    units_consumed: Optional[int] = None
    logs: List[str] = field(default_factory=list)
    message: str = ""
    simulation_error: Optional[Any] = None
    error: Optional[RPCError] = None

    @classmethod
    def ok(cls, units: int, units_consumed: int, logs: Optional[List[str]] = None) -> "ComputeEstimate":
        return cls(EstimateStatus.OK, units=units, units_consumed=units_consumed, logs=logs or [])

    @classmethod
    def simulation_failed(cls, simulation_error: Any, logs: List[str]) -> "ComputeEstimate":
        return cls(
            EstimateStatus.SIMULATION_FAILED,
            logs=logs,
            message=SIMULATION_FAILED_MESSAGE,
            simulation_error=simulation_error,
        )

    @classmethod
    def transport_error(cls, error: RPCError) -> "ComputeEstimate":
        return cls(EstimateStatus.TRANSPORT_ERROR, message=error.message, error=error)

    @property
    def success(self) -> bool:
        return self.status == EstimateStatus.OK

    def unwrap(self) -> int:
        if self.status == EstimateStatus.OK:
            return self.units
        if self.status == EstimateStatus.TRANSPORT_ERROR:
            raise self.error
        raise TransactionSimulationError(
            self.message,
            context={"err": self.simulation_error},
            simulation_logs=list(self.logs),
        )


class ComputeUnitEstimator:

    def __init__(self, rpc: SolanaRPCClient, max_compute_units: int = MAX_COMPUTE_UNITS):
        self.rpc = rpc
        self.max_compute_units = max_compute_units

    async def estimate(
        self,
        payer: Union[str, Pubkey],
        instructions: Sequence[Instruction],
        tolerance: float,
        blockhash: Hash,
        lookup_tables: Optional[Sequence[AddressLookupTableAccount]] = None
    ) -> ComputeEstimate:
        """
        Simulate ``instructions`` and return the tolerance-scaled unit count.

        A tolerance below 1.0 is accepted and will under-provision; keeping
        it sensible is up to the caller. Simulation errors are reported with
        the node's logs verbatim and are never retried here.
        """
        ceiling = create_set_compute_unit_limit_instruction(self.max_compute_units)
        tx = compile_transaction(
            parse_pubkey(payer, "payer"),
            [ceiling, *instructions],
            blockhash,
            lookup_tables
        )

        try:
            result = await self.rpc.simulate_transaction(
                tx,
                sig_verify=False,
                replace_recent_blockhash=True
            )
        except RPCError as e:
            logger.error(f"Simulation request failed: {e}")
            return ComputeEstimate.transport_error(e)

        if not result.success:
            logger.warning(f"Simulation failed: {result.err}")
            for line in result.logs:
                logger.debug(f"  {line}")
            return ComputeEstimate.simulation_failed(result.err, result.logs)

        if result.units_consumed is None:
            return ComputeEstimate.transport_error(RPCResponseError(
                "Simulation response has no unitsConsumed",
                rpc_endpoint=self.rpc.endpoint,
                method_name="simulateTransaction",
            ))

        units = math.ceil(result.units_consumed * tolerance)
        if units > self.max_compute_units:
            logger.warning(
                f"Estimated {units} compute units exceeds the {self.max_compute_units} ceiling"
            )

        logger.info(
            f"Simulation consumed {result.units_consumed} units, "
            f"requesting {units} (tolerance {tolerance})"
        )
        return ComputeEstimate.ok(units, result.units_consumed, result.logs)


async def estimate_compute_units(
    endpoint: str,
    payer: Union[str, Pubkey],
    instructions: Sequence[Instruction],
    tolerance: float,
    blockhash: Hash,
    lookup_tables: Optional[Sequence[AddressLookupTableAccount]] = None
) -> ComputeEstimate:
    async with SolanaRPCClient(endpoint) as rpc:
        return await ComputeUnitEstimator(rpc).estimate(
            payer, instructions, tolerance, blockhash, lookup_tables
        )


__all__ = [
    "EstimateStatus",
    "ComputeEstimate",
    "ComputeUnitEstimator",
    "estimate_compute_units",
    "SIMULATION_FAILED_MESSAGE",
]
