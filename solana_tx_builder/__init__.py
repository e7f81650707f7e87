"""
Solana Transaction Builder

Prepares v0 transactions with simulated compute budgets and oracle-priced
priority fees, and tracks their confirmation.
"""

__version__ = "1.0.0"

from .config import PriorityLevel, get_settings
from .builder import PayloadFormat, TxRequest, TxResult, TransactionAssembler, build_transaction, build_transaction_sync
from .compute import ComputeEstimate, ComputeUnitEstimator, EstimateStatus, estimate_compute_units
from .fees import PRIORITY_FEE_FLOOR, PriorityFeeEstimator, estimate_priority_fee
from .logging_config import setup_logging
from .poller import (
    ConfirmationPoller,
    ConfirmationResult,
    ConfirmationState,
    poll_many,
    poll_signature_status,
    poll_signature_status_sync,
)
from .rpc import SolanaRPCClient

__all__ = [
    "PriorityLevel",
    "get_settings",
    "PayloadFormat",
    "TxRequest",
    "TxResult",
    "TransactionAssembler",
    "build_transaction",
    "build_transaction_sync",
    "ComputeEstimate",
    "ComputeUnitEstimator",
    "EstimateStatus",
    "estimate_compute_units",
    "PRIORITY_FEE_FLOOR",
    "PriorityFeeEstimator",
    "estimate_priority_fee",
    "setup_logging",
    "ConfirmationPoller",
    "ConfirmationResult",
    "ConfirmationState",
    "poll_many",
    "poll_signature_status",
    "poll_signature_status_sync",
    "SolanaRPCClient",
]
