import asyncio
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import base58
import pytest
from solana.rpc.core import RPCException
from solders.errors import SerdeJSONError
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from solana_tx_builder.config import RPCSettings
from solana_tx_builder.exceptions import (
    BlockhashNotFoundError,
    RPCConnectionError,
    RPCResponseError,
)
from solana_tx_builder.rpc import FEE_ESTIMATE_METHOD, SolanaRPCClient
from solana_tx_builder.transaction import compile_transaction

ENDPOINT = "https://rpc.example.com"


@pytest.fixture
def client():
    client = SolanaRPCClient(ENDPOINT, settings=RPCSettings())
    client._post = AsyncMock()
    client._client = MagicMock()
    return client


@pytest.fixture
def tx(payer, instructions, blockhash):
    return compile_transaction(payer.pubkey(), instructions, blockhash)


class TestJsonRpcEnvelope:

    @pytest.mark.asyncio
    async def test_error_envelope_raises_response_error(self, client):
        client._post.return_value = {
            "jsonrpc": "2.0",
            "id": 1,
            "error": {"code": -32601, "message": "Method not found"},
        }

        with pytest.raises(RPCResponseError) as exc_info:
            await client._rpc_request(FEE_ESTIMATE_METHOD, [])

        assert exc_info.value.rpc_error_code == -32601
        assert exc_info.value.rpc_error_message == "Method not found"
        assert exc_info.value.method_name == FEE_ESTIMATE_METHOD

    @pytest.mark.asyncio
    async def test_null_error_member_is_not_a_failure(self, client):
        client._post.return_value = {"jsonrpc": "2.0", "id": 1, "error": None, "result": {"value": 3}}

        assert await client._rpc_request("getHealth", []) == {"value": 3}

    @pytest.mark.asyncio
    async def test_missing_result_raises_response_error(self, client):
        client._post.return_value = {"jsonrpc": "2.0", "id": 1}

        with pytest.raises(RPCResponseError):
            await client._rpc_request("simulateTransaction", [])

    @pytest.mark.asyncio
    async def test_request_ids_increase(self, client):
        client._post.return_value = {"jsonrpc": "2.0", "id": 1, "result": {}}

        await client._rpc_request("getHealth", [])
        await client._rpc_request("getHealth", [])

        ids = [call.args[0]["id"] for call in client._post.await_args_list]
        assert ids == [1, 2]


class TestSimulation:

    @pytest.mark.asyncio
    async def test_payload_and_parsing(self, client, tx):
        client._post.return_value = {
            "jsonrpc": "2.0",
            "id": 1,
            "result": {
                "context": {"slot": 1},
                "value": {"err": None, "logs": ["log A"], "unitsConsumed": 2_185},
            },
        }

        result = await client.simulate_transaction(tx)

        payload = client._post.call_args.args[0]
        assert payload["method"] == "simulateTransaction"
        encoded, options = payload["params"]
        assert base64.b64decode(encoded) == bytes(tx)
        assert options == {
            "encoding": "base64",
            "commitment": "confirmed",
            "sigVerify": False,
            "replaceRecentBlockhash": True,
        }
        assert result.success
        assert result.units_consumed == 2_185
        assert result.logs == ["log A"]

    @pytest.mark.asyncio
    async def test_failed_simulation_keeps_err_and_logs(self, client, tx):
        client._post.return_value = {
            "jsonrpc": "2.0",
            "id": 1,
            "result": {"value": {"err": "AccountNotFound", "logs": None, "unitsConsumed": 0}},
        }

        result = await client.simulate_transaction(tx)

        assert not result.success
        assert result.err == "AccountNotFound"
        assert result.logs == []

    @pytest.mark.asyncio
    async def test_empty_value_raises(self, client, tx):
        client._post.return_value = {"jsonrpc": "2.0", "id": 1, "result": {"value": None}}

        with pytest.raises(RPCResponseError):
            await client.simulate_transaction(tx)


class TestFeeEstimate:

    @pytest.mark.asyncio
    async def test_payload_carries_base58_transaction_and_tier(self, client, tx):
        client._post.return_value = {"jsonrpc": "2.0", "id": 1, "result": {"priorityFeeEstimate": 120_000.0}}

        result = await client.get_priority_fee_estimate(tx, "High")

        payload = client._post.call_args.args[0]
        assert payload["method"] == FEE_ESTIMATE_METHOD
        (params,) = payload["params"]
        assert base58.b58decode(params["transaction"]) == bytes(tx)
        assert params["options"] == {"priorityLevel": "High"}
        assert result == {"priorityFeeEstimate": 120_000.0}

    @pytest.mark.asyncio
    async def test_non_object_result_raises(self, client, tx):
        client._post.return_value = {"jsonrpc": "2.0", "id": 1, "result": 5_000}

        with pytest.raises(RPCResponseError):
            await client.get_priority_fee_estimate(tx, "Medium")


class TestTypedQueries:

    @pytest.mark.asyncio
    async def test_blockhash(self, client, blockhash):
        client._client.get_latest_blockhash = AsyncMock(return_value=SimpleNamespace(
            value=SimpleNamespace(blockhash=blockhash, last_valid_block_height=250)
        ))

        latest = await client.get_latest_blockhash()

        assert latest.blockhash == blockhash
        assert latest.last_valid_block_height == 250

    @pytest.mark.asyncio
    async def test_blockhash_rpc_exception_is_response_error(self, client):
        client._client.get_latest_blockhash = AsyncMock(side_effect=RPCException("node is behind"))

        with pytest.raises(RPCResponseError):
            await client.get_latest_blockhash()

    @pytest.mark.asyncio
    async def test_blockhash_transport_failure_is_connection_error(self, client):
        client._client.get_latest_blockhash = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(RPCConnectionError):
            await client.get_latest_blockhash()

    @pytest.mark.asyncio
    async def test_empty_blockhash_response(self, client):
        client._client.get_latest_blockhash = AsyncMock(return_value=SimpleNamespace(value=None))

        with pytest.raises(BlockhashNotFoundError):
            await client.get_latest_blockhash()

    @pytest.mark.asyncio
    async def test_signature_status_is_normalized(self, client):
        sig = Signature.new_unique()
        client._client.get_signature_statuses = AsyncMock(return_value=SimpleNamespace(value=[
            SimpleNamespace(
                confirmation_status=TransactionConfirmationStatus.Finalized,
                err=None,
                slot=42,
            )
        ]))

        status = await client.get_signature_status(str(sig))

        assert status.is_finalized
        assert status.signature == str(sig)
        assert status.slot == 42
        assert status.err is None
        call = client._client.get_signature_statuses.call_args
        assert call.args[0] == [sig]
        assert call.kwargs == {"search_transaction_history": True}

    @pytest.mark.asyncio
    async def test_unknown_signature_has_no_status(self, client):
        client._client.get_signature_statuses = AsyncMock(return_value=SimpleNamespace(value=[None]))

        status = await client.get_signature_status(Signature.new_unique())

        assert not status.found
        assert not status.is_finalized

    @pytest.mark.asyncio
    async def test_transaction_logs(self, client):
        meta = SimpleNamespace(log_messages=["Program log: A", "Program log: B"])
        client._client.get_transaction = AsyncMock(return_value=SimpleNamespace(
            value=SimpleNamespace(transaction=SimpleNamespace(meta=meta))
        ))

        logs = await client.get_transaction_logs(Signature.new_unique())

        assert logs == ["Program log: A", "Program log: B"]

    @pytest.mark.asyncio
    async def test_transaction_logs_for_unknown_transaction(self, client):
        client._client.get_transaction = AsyncMock(return_value=SimpleNamespace(value=None))

        assert await client.get_transaction_logs(Signature.new_unique()) == []


class TestUnparseableBodies:

    GARBLED = SerdeJSONError("expected value at line 1 column 1")

    @pytest.mark.asyncio
    async def test_blockhash(self, client):
        client._client.get_latest_blockhash = AsyncMock(side_effect=self.GARBLED)

        with pytest.raises(RPCResponseError) as exc_info:
            await client.get_latest_blockhash()

        assert exc_info.value.method_name == "getLatestBlockhash"
        assert exc_info.value.__cause__ is self.GARBLED

    @pytest.mark.asyncio
    async def test_signature_status(self, client):
        client._client.get_signature_statuses = AsyncMock(side_effect=self.GARBLED)

        with pytest.raises(RPCResponseError) as exc_info:
            await client.get_signature_status(Signature.new_unique())

        assert exc_info.value.method_name == "getSignatureStatuses"

    @pytest.mark.asyncio
    async def test_transaction_logs(self, client):
        client._client.get_transaction = AsyncMock(side_effect=ValueError("truncated body"))

        with pytest.raises(RPCResponseError) as exc_info:
            await client.get_transaction_logs(Signature.new_unique())

        assert exc_info.value.method_name == "getTransaction"
