"""
Confirmation polling for submitted transactions.

A bounded loop: every ``interval_seconds`` the signature status is queried
(with history search) until the transaction is finalized, the node reports
an error, ``max_attempts`` queries have been spent, or the caller cancels.

Cancellation:
    Pass an ``asyncio.Event`` as ``cancel_event`` (or a ``deadline_seconds``)
    to stop between ticks with a CANCELLED result. Cancelling the task that
    runs ``poll`` raises ``asyncio.CancelledError`` as usual and releases the
    RPC client.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from solders.signature import Signature

from .config import PollerSettings, get_settings
from .exceptions import InvalidParameterError, OnChainExecutionError, RPCError
from .rpc import SignatureStatus, SolanaRPCClient
from .validators import validate_transaction_signature

logger = logging.getLogger(__name__)

FINALIZED_MESSAGE = "Finalized"
PROGRAM_ERROR_MESSAGE = "Program error!"

DEADLINE_SLACK_SECONDS = 0.05


class ConfirmationState(str, Enum):
    PENDING = "pending"
    FINALIZED = "finalized"
    FAILED_ON_CHAIN = "failed_on_chain"
    TIMED_OUT = "timed_out"
    POLL_ERROR = "poll_error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ConfirmationState.PENDING


@dataclass
class ConfirmationResult:
    state: ConfirmationState
    signature: str
    message: str
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: Optional[Exception] = None
    logs: List[str] = field(default_factory=list)

    @property
    def finalized(self) -> bool:
        return self.state == ConfirmationState.FINALIZED


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


class ConfirmationPoller:

    def __init__(
        self,
        rpc: SolanaRPCClient,
        max_attempts: Optional[int] = None,
        interval_seconds: Optional[float] = None,
        fetch_logs_on_failure: Optional[bool] = None,
        settings: Optional[PollerSettings] = None
    ):
        settings = settings or get_settings().poller
        self.rpc = rpc
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_attempts
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.interval_seconds
        self.fetch_logs_on_failure = (
            fetch_logs_on_failure if fetch_logs_on_failure is not None else settings.fetch_logs_on_failure
        )

        if self.max_attempts < 1:
            raise InvalidParameterError(
                f"max_attempts must be >= 1, got {self.max_attempts}",
                value=self.max_attempts, field_name="max_attempts"
            )
        if self.interval_seconds <= 0:
            raise InvalidParameterError(
                f"interval_seconds must be > 0, got {self.interval_seconds}",
                value=self.interval_seconds, field_name="interval_seconds"
            )

    @property
    def max_wait_seconds(self) -> float:
        return self.max_attempts * self.interval_seconds

    async def _wait_for_tick(self, seconds: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Sleep until the next tick. Returns True if cancel_event fired first."""
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _failure_logs(self, signature: str) -> List[str]:
        if not self.fetch_logs_on_failure:
            return []
        try:
            return await self.rpc.get_transaction_logs(signature)
        except RPCError as e:
            logger.warning(f"Could not fetch logs for failed transaction {signature}: {e}")
            return []

    async def _check_status(self, sig: str, attempts: int) -> Tuple[ConfirmationState, str, Dict[str, Any]]:
        """Query once and map the answer onto the next state."""
        try:
            status: SignatureStatus = await self.rpc.get_signature_status(sig, search_transaction_history=True)
        except RPCError as e:
            logger.error(f"Error checking transaction status: {e}")
            return ConfirmationState.POLL_ERROR, f"Error checking status: {e.message}", {"error": e}

        logger.debug(f"{attempts}: {sig} status={status.confirmation_status} err={status.err}")

        if status.is_finalized:
            if status.err is not None:
                logs = await self._failure_logs(sig)
                error = OnChainExecutionError(
                    PROGRAM_ERROR_MESSAGE,
                    transaction_signature=sig,
                    program_error=status.err,
                    logs=logs,
                )
                return ConfirmationState.FAILED_ON_CHAIN, PROGRAM_ERROR_MESSAGE, {"error": error, "logs": logs}
            return ConfirmationState.FINALIZED, FINALIZED_MESSAGE, {}

        if attempts >= self.max_attempts:
            return (
                ConfirmationState.TIMED_OUT,
                f"{_format_seconds(self.max_wait_seconds)} seconds max wait reached",
                {},
            )
        return ConfirmationState.PENDING, status.confirmation_status or "not found", {}

    async def poll(
        self,
        signature: Union[str, Signature],
        cancel_event: Optional[asyncio.Event] = None,
        deadline_seconds: Optional[float] = None
    ) -> ConfirmationResult:
        sig = validate_transaction_signature(signature)
        started = time.monotonic()
        deadline = started + deadline_seconds if deadline_seconds is not None else None
        attempts = 0

        def result(state: ConfirmationState, message: str, **kwargs) -> ConfirmationResult:
            elapsed = time.monotonic() - started
            log = logger.info if state == ConfirmationState.FINALIZED else logger.warning
            log(f"{sig}: {state.value} after {attempts} attempt(s) - {message}")
            return ConfirmationResult(
                state=state,
                signature=sig,
                message=message,
                attempts=attempts,
                elapsed_seconds=elapsed,
                **kwargs
            )

        deadline_message = (
            f"Deadline of {_format_seconds(deadline_seconds)} seconds reached"
            if deadline_seconds is not None else None
        )

        state = ConfirmationState.PENDING
        while not state.is_terminal:
            wait = self.interval_seconds
            cut_short = False
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return result(ConfirmationState.CANCELLED, deadline_message)
                # A deadline landing within the slack of the next tick is scheduling drift.
                if remaining < wait - DEADLINE_SLACK_SECONDS:
                    wait, cut_short = remaining, True

            if await self._wait_for_tick(wait, cancel_event):
                return result(ConfirmationState.CANCELLED, "Polling cancelled")
            if cut_short:
                return result(ConfirmationState.CANCELLED, deadline_message)

            attempts += 1
            state, message, extra = await self._check_status(sig, attempts)

        return result(state, message, **extra)


async def poll_signature_status(
    endpoint: str,
    signature: Union[str, Signature],
    max_attempts: Optional[int] = None,
    interval_seconds: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
    deadline_seconds: Optional[float] = None
) -> ConfirmationResult:
    async with SolanaRPCClient(endpoint) as rpc:
        poller = ConfirmationPoller(rpc, max_attempts, interval_seconds)
        return await poller.poll(signature, cancel_event, deadline_seconds)


def poll_signature_status_sync(
    endpoint: str,
    signature: Union[str, Signature],
    max_attempts: Optional[int] = None,
    interval_seconds: Optional[float] = None,
    deadline_seconds: Optional[float] = None
) -> ConfirmationResult:
    return asyncio.run(poll_signature_status(
        endpoint, signature, max_attempts, interval_seconds, deadline_seconds=deadline_seconds
    ))


async def poll_many(
    rpc: SolanaRPCClient,
    signatures: Sequence[Union[str, Signature]],
    max_attempts: Optional[int] = None,
    interval_seconds: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None
) -> Dict[str, ConfirmationResult]:
    """
    Poll several signatures concurrently over one client; each loop is independent.

    Repeated signatures are polled once. The result is keyed by signature in
    first-seen order.
    """
    poller = ConfirmationPoller(rpc, max_attempts, interval_seconds)
    unique = list(dict.fromkeys(validate_transaction_signature(sig) for sig in signatures))
    results = await asyncio.gather(*(poller.poll(sig, cancel_event) for sig in unique))
    return {r.signature: r for r in results}


__all__ = [
    "ConfirmationState",
    "ConfirmationResult",
    "ConfirmationPoller",
    "poll_signature_status",
    "poll_signature_status_sync",
    "poll_many",
    "FINALIZED_MESSAGE",
    "PROGRAM_ERROR_MESSAGE",
]
