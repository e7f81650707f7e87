"""
Shared fixtures: real solders keys/instructions and a mocked RPC client.
"""

from unittest.mock import MagicMock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from solana_tx_builder.config import BuilderSettings, PollerSettings
from solana_tx_builder.rpc import LatestBlockhash, SimulationResult, SolanaRPCClient

ENDPOINT = "https://rpc.example.com"


@pytest.fixture
def payer():
    return Keypair()


@pytest.fixture
def instructions(payer):
    return [
        transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=1_000)),
        transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=2_000)),
    ]


@pytest.fixture
def blockhash():
    return Hash.new_unique()


@pytest.fixture
def builder_settings():
    return BuilderSettings()


@pytest.fixture
def poller_settings():
    return PollerSettings()


@pytest.fixture
def rpc(blockhash):
    """RPC client double usable directly or as an async context manager."""
    client = MagicMock(spec=SolanaRPCClient)
    client.endpoint = ENDPOINT
    client.__aenter__.return_value = client
    client.__aexit__.return_value = False
    client.get_latest_blockhash.return_value = LatestBlockhash(blockhash=blockhash, last_valid_block_height=1_000)
    client.simulate_transaction.return_value = SimulationResult(
        err=None,
        logs=["Program 11111111111111111111111111111111 success"],
        units_consumed=1_000,
    )
    client.get_priority_fee_estimate.return_value = {"priorityFeeEstimate": 50_000.0}
    return client
