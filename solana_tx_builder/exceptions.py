"""
Exception Hierarchy for the Solana transaction builder.

This module defines the error conditions raised while preparing a
transaction (validation, simulation, fee estimation, signing), talking to
the RPC endpoint, and tracking confirmation.

Each exception includes:
- Unique error code for logging and debugging
- Descriptive message
- Optional context dictionary for additional debugging info
- is_recoverable flag indicating if the whole pipeline may be re-run
- retry_after for rate-limited operations
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from datetime import datetime, timezone


# =============================================================================
# BASE EXCEPTIONS
# =============================================================================

@dataclass
class SolanaTxBuilderError(Exception):
    """
    Base exception for all transaction builder errors.

    Attributes:
        message: Human-readable error description
        error_code: Unique identifier for the error type (e.g., "TX_005")
        context: Optional dictionary with debugging information
        is_recoverable: Whether re-running the pipeline may succeed
        retry_after: Seconds to wait before retry (for rate limits)
        timestamp: When the error occurred
    """
    message: str
    error_code: str = "GENERAL_001"
    context: dict[str, Any] = field(default_factory=dict)
    is_recoverable: bool = False
    retry_after: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message with code and context."""
        base = f"[{self.error_code}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" | Context: {context_str}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "is_recoverable": self.is_recoverable,
            "retry_after": self.retry_after,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return self.format_message()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"is_recoverable={self.is_recoverable})"
        )


@dataclass
class ConfigurationError(SolanaTxBuilderError):
    """Error in builder configuration or settings."""
    error_code: str = "CONFIG_001"
    is_recoverable: bool = False


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================

@dataclass
class ValidationError(SolanaTxBuilderError):
    """Base exception for request validation errors."""
    error_code: str = "VAL_000"
    is_recoverable: bool = False
    field_name: Optional[str] = None


@dataclass
class MissingParameterError(ValidationError):
    """A required request parameter is absent."""
    error_code: str = "VAL_001"
    missing: list[str] = field(default_factory=list)


@dataclass
class InvalidAddressError(ValidationError):
    """Invalid Solana address format."""
    error_code: str = "VAL_002"
    invalid_address: Optional[str] = None


@dataclass
class InvalidSignatureError(ValidationError):
    """Invalid transaction signature format."""
    error_code: str = "VAL_003"
    signature: Optional[str] = None


@dataclass
class InvalidParameterError(ValidationError):
    """A request parameter has an unusable value."""
    error_code: str = "VAL_004"
    value: Optional[Any] = None


# =============================================================================
# TRANSACTION EXCEPTIONS
# =============================================================================

@dataclass
class TransactionError(SolanaTxBuilderError):
    """Base exception for transaction-related errors."""
    error_code: str = "TX_000"
    transaction_signature: Optional[str] = None


@dataclass
class TransactionBuildError(TransactionError):
    """Failed to compile the transaction message."""
    error_code: str = "TX_001"
    is_recoverable: bool = False


@dataclass
class TransactionSignError(TransactionError):
    """Failed to sign transaction."""
    error_code: str = "TX_002"
    is_recoverable: bool = False


@dataclass
class TransactionSimulationError(TransactionError):
    """Transaction simulation was rejected by the network."""
    error_code: str = "TX_005"
    is_recoverable: bool = False
    simulation_logs: list[str] = field(default_factory=list)


@dataclass
class OnChainExecutionError(TransactionError):
    """Transaction landed but failed during program execution."""
    error_code: str = "TX_008"
    is_recoverable: bool = False
    program_error: Optional[str] = None
    logs: list[str] = field(default_factory=list)


@dataclass
class PriorityFeeError(TransactionError):
    """Failed to obtain a priority fee estimate from the fee oracle."""
    error_code: str = "TX_009"
    is_recoverable: bool = True
    priority_level: Optional[str] = None


# =============================================================================
# RPC EXCEPTIONS
# =============================================================================

@dataclass
class RPCError(SolanaTxBuilderError):
    """Base exception for RPC transport errors."""
    error_code: str = "RPC_000"
    is_recoverable: bool = True
    rpc_endpoint: Optional[str] = None
    method_name: Optional[str] = None


@dataclass
class RPCConnectionError(RPCError):
    """Failed to connect to RPC endpoint."""
    error_code: str = "RPC_001"


@dataclass
class RPCTimeoutError(RPCError):
    """RPC request timed out."""
    error_code: str = "RPC_002"
    timeout_seconds: Optional[float] = None


@dataclass
class RPCResponseError(RPCError):
    """RPC returned an error response or an unparseable body."""
    error_code: str = "RPC_004"
    rpc_error_code: Optional[int] = None
    rpc_error_message: Optional[str] = None


@dataclass
class BlockhashNotFoundError(RPCError):
    """Recent blockhash not available."""
    error_code: str = "RPC_008"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def is_retryable(error: Exception) -> bool:
    """Check if re-running the pipeline after this error may succeed."""
    if isinstance(error, SolanaTxBuilderError):
        return error.is_recoverable
    return False


def wrap_exception(
    original: Exception,
    wrapper_class: type[SolanaTxBuilderError],
    message: Optional[str] = None,
    **kwargs: Any
) -> SolanaTxBuilderError:
    """Wrap a generic exception in a SolanaTxBuilderError subclass."""
    msg = message or str(original)
    context = kwargs.pop("context", {})
    context["original_error"] = type(original).__name__
    context["original_message"] = str(original)

    return wrapper_class(
        message=msg,
        context=context,
        **kwargs
    )


# =============================================================================
# EXCEPTION MAPPING
# =============================================================================

ERROR_CODE_MAP: dict[str, type[SolanaTxBuilderError]] = {
    "GENERAL_001": SolanaTxBuilderError,
    "CONFIG_001": ConfigurationError,
    "VAL_000": ValidationError,
    "VAL_001": MissingParameterError,
    "VAL_002": InvalidAddressError,
    "VAL_003": InvalidSignatureError,
    "VAL_004": InvalidParameterError,
    "TX_000": TransactionError,
    "TX_001": TransactionBuildError,
    "TX_002": TransactionSignError,
    "TX_005": TransactionSimulationError,
    "TX_008": OnChainExecutionError,
    "TX_009": PriorityFeeError,
    "RPC_000": RPCError,
    "RPC_001": RPCConnectionError,
    "RPC_002": RPCTimeoutError,
    "RPC_004": RPCResponseError,
    "RPC_008": BlockhashNotFoundError,
}


__all__ = [
    "SolanaTxBuilderError", "ConfigurationError",
    "ValidationError", "MissingParameterError", "InvalidAddressError",
    "InvalidSignatureError", "InvalidParameterError",
    "TransactionError", "TransactionBuildError", "TransactionSignError",
    "TransactionSimulationError", "OnChainExecutionError", "PriorityFeeError",
    "RPCError", "RPCConnectionError", "RPCTimeoutError", "RPCResponseError",
    "BlockhashNotFoundError",
    "is_retryable", "wrap_exception", "ERROR_CODE_MAP",
]
