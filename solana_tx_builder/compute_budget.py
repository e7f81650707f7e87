import struct
from dataclasses import dataclass
from typing import Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey

COMPUTE_BUDGET_PROGRAM_ID = Pubkey.from_string("ComputeBudget111111111111111111111111111111")

# Upper bound the runtime accepts for a single transaction.
MAX_COMPUTE_UNITS = 1_400_000

SET_COMPUTE_UNIT_LIMIT = 0x02
SET_COMPUTE_UNIT_PRICE = 0x03


def create_set_compute_unit_limit_instruction(units: int) -> Instruction:
    data = bytes([SET_COMPUTE_UNIT_LIMIT]) + struct.pack("<I", units)
    return Instruction(
        program_id=COMPUTE_BUDGET_PROGRAM_ID,
        accounts=[],
        data=data
    )


def create_set_compute_unit_price_instruction(micro_lamports: int) -> Instruction:
    data = bytes([SET_COMPUTE_UNIT_PRICE]) + struct.pack("<Q", micro_lamports)
    return Instruction(
        program_id=COMPUTE_BUDGET_PROGRAM_ID,
        accounts=[],
        data=data
    )


@dataclass(frozen=True)
class ComputeBudgetDirective:
    kind: str
    value: int


def decode_compute_budget_instruction(instruction: Instruction) -> Optional[ComputeBudgetDirective]:
    """Return the limit/price carried by a compute budget instruction, or None."""
    if instruction.program_id != COMPUTE_BUDGET_PROGRAM_ID:
        return None

    data = bytes(instruction.data)
    if not data:
        return None

    if data[0] == SET_COMPUTE_UNIT_LIMIT and len(data) == 5:
        return ComputeBudgetDirective("unit_limit", struct.unpack("<I", data[1:])[0])
    if data[0] == SET_COMPUTE_UNIT_PRICE and len(data) == 9:
        return ComputeBudgetDirective("unit_price", struct.unpack("<Q", data[1:])[0])
    return None


__all__ = [
    "COMPUTE_BUDGET_PROGRAM_ID",
    "MAX_COMPUTE_UNITS",
    "ComputeBudgetDirective",
    "create_set_compute_unit_limit_instruction",
    "create_set_compute_unit_price_instruction",
    "decode_compute_budget_instruction",
]
