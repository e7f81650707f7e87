import pytest

from solana_tx_builder.compute_budget import create_set_compute_unit_limit_instruction
from solana_tx_builder.exceptions import (
    InvalidParameterError,
    PriorityFeeError,
    RPCResponseError,
    RPCTimeoutError,
)
from solana_tx_builder.fees import PRIORITY_FEE_FLOOR, PriorityFeeEstimator, parse_fee_estimate


@pytest.mark.asyncio
async def test_estimate_below_floor_is_clamped(rpc, payer, instructions, blockhash):
    rpc.get_priority_fee_estimate.return_value = {"priorityFeeEstimate": 1_234.0}

    fee = await PriorityFeeEstimator(rpc).estimate(payer.pubkey(), "Medium", instructions, blockhash)

    assert fee == PRIORITY_FEE_FLOOR


@pytest.mark.asyncio
async def test_zero_estimate_is_clamped(rpc, payer, instructions, blockhash):
    rpc.get_priority_fee_estimate.return_value = {"priorityFeeEstimate": 0}

    fee = await PriorityFeeEstimator(rpc).estimate(payer.pubkey(), "Min", instructions, blockhash)

    assert fee == PRIORITY_FEE_FLOOR


@pytest.mark.asyncio
async def test_estimate_above_floor_is_truncated(rpc, payer, instructions, blockhash):
    rpc.get_priority_fee_estimate.return_value = {"priorityFeeEstimate": 87_654.9}

    fee = await PriorityFeeEstimator(rpc).estimate(payer.pubkey(), "High", instructions, blockhash)

    assert fee == 87_654
    args, _ = rpc.get_priority_fee_estimate.call_args
    assert args[1] == "High"


@pytest.mark.asyncio
async def test_prices_the_given_instruction_sequence(rpc, payer, instructions, blockhash):
    augmented = [create_set_compute_unit_limit_instruction(1_101), *instructions]

    await PriorityFeeEstimator(rpc).estimate(payer.pubkey(), "Medium", augmented, blockhash)

    tx = rpc.get_priority_fee_estimate.call_args[0][0]
    assert tx.message.recent_blockhash == blockhash
    assert len(tx.message.instructions) == len(augmented)
    assert bytes(tx.message.instructions[0].data) == bytes(augmented[0].data)


@pytest.mark.asyncio
async def test_custom_floor(rpc, payer, instructions, blockhash):
    rpc.get_priority_fee_estimate.return_value = {"priorityFeeEstimate": 30_000}

    fee = await PriorityFeeEstimator(rpc, fee_floor=50_000).estimate(
        payer.pubkey(), "Medium", instructions, blockhash
    )

    assert fee == 50_000


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [
    RPCTimeoutError("timed out", timeout_seconds=30),
    RPCResponseError("Method not found", rpc_error_code=-32601),
])
async def test_transport_failure_raises_without_fallback(rpc, payer, instructions, blockhash, failure):
    rpc.get_priority_fee_estimate.side_effect = failure

    with pytest.raises(PriorityFeeError) as exc_info:
        await PriorityFeeEstimator(rpc).estimate(payer.pubkey(), "Medium", instructions, blockhash)

    assert exc_info.value.__cause__ is failure
    assert exc_info.value.priority_level == "Medium"


@pytest.mark.asyncio
async def test_unparseable_estimate_raises(rpc, payer, instructions, blockhash):
    rpc.get_priority_fee_estimate.return_value = {"priorityFeeEstimate": "n/a"}

    with pytest.raises(PriorityFeeError):
        await PriorityFeeEstimator(rpc).estimate(payer.pubkey(), "Medium", instructions, blockhash)


@pytest.mark.asyncio
async def test_unknown_tier_is_rejected_before_calling_oracle(rpc, payer, instructions, blockhash):
    with pytest.raises(InvalidParameterError):
        await PriorityFeeEstimator(rpc).estimate(payer.pubkey(), "Urgent", instructions, blockhash)

    rpc.get_priority_fee_estimate.assert_not_called()


@pytest.mark.parametrize("result", [{}, {"priorityFeeEstimate": None}, {"priorityFeeEstimate": True}, None])
def test_parse_fee_estimate_rejects_bad_shapes(result):
    with pytest.raises(PriorityFeeError):
        parse_fee_estimate(result)


def test_parse_fee_estimate_accepts_numeric_strings():
    assert parse_fee_estimate({"priorityFeeEstimate": "120000.5"}) == 120_000
