from typing import Any, List, Optional, Sequence, Union
from urllib.parse import urlparse

import base58
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.signature import Signature

from .config import PriorityLevel
from .exceptions import (
    ValidationError,
    InvalidAddressError,
    InvalidSignatureError,
    InvalidParameterError,
)

SOLANA_ADDRESS_LENGTH = 32
SOLANA_SIGNATURE_LENGTH = 64

ALLOWED_RPC_SCHEMES = ['http', 'https']


def validate_solana_address(address: Any, field_name: str = "address") -> str:
    if not isinstance(address, str):
        raise InvalidAddressError(
            f"Address must be a string, got {type(address).__name__}",
            invalid_address=str(address)[:50],
            field_name=field_name
        )

    address = address.strip()

    if not address:
        raise InvalidAddressError("Address cannot be empty", invalid_address="", field_name=field_name)

    if len(address) < 32 or len(address) > 44:
        raise InvalidAddressError(
            f"Invalid address length: {len(address)} characters",
            invalid_address=address, field_name=field_name
        )

    try:
        decoded = base58.b58decode(address)
    except ValueError as e:
        raise InvalidAddressError(
            f"Invalid base58 encoding: {str(e)}",
            invalid_address=address, field_name=field_name
        ) from e

    if len(decoded) != SOLANA_ADDRESS_LENGTH:
        raise InvalidAddressError(
            f"Decoded address has wrong length: {len(decoded)} bytes (expected {SOLANA_ADDRESS_LENGTH})",
            invalid_address=address, field_name=field_name
        )

    return address


def parse_pubkey(value: Union[str, Pubkey], field_name: str = "address") -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    return Pubkey.from_string(validate_solana_address(value, field_name))


def validate_transaction_signature(signature: Any, field_name: str = "signature") -> str:
    if isinstance(signature, Signature):
        return str(signature)

    if not isinstance(signature, str):
        raise InvalidSignatureError(
            f"Signature must be a string, got {type(signature).__name__}",
            signature=str(signature)[:50], field_name=field_name
        )

    signature = signature.strip()

    if not signature:
        raise InvalidSignatureError("Signature cannot be empty", signature="", field_name=field_name)

    if len(signature) < 80 or len(signature) > 90:
        raise InvalidSignatureError(
            f"Invalid signature length: {len(signature)} characters",
            signature=signature, field_name=field_name
        )

    try:
        decoded = base58.b58decode(signature)
    except ValueError as e:
        raise InvalidSignatureError(
            f"Invalid base58 encoding in signature: {str(e)}",
            signature=signature, field_name=field_name
        ) from e

    if len(decoded) != SOLANA_SIGNATURE_LENGTH:
        raise InvalidSignatureError(
            f"Decoded signature has wrong length: {len(decoded)} bytes (expected {SOLANA_SIGNATURE_LENGTH})",
            signature=signature, field_name=field_name
        )

    return signature


def validate_rpc_url(url: Any, field_name: str = "endpoint") -> str:
    if not isinstance(url, str):
        raise ValidationError(f"URL must be a string, got {type(url).__name__}", field_name=field_name)

    url = url.strip()
    if not url:
        raise ValidationError("URL cannot be empty", field_name=field_name)

    parsed = urlparse(url)

    if parsed.scheme.lower() not in ALLOWED_RPC_SCHEMES:
        raise ValidationError(
            f"URL scheme must be one of: {', '.join(ALLOWED_RPC_SCHEMES)}",
            field_name=field_name
        )

    if not parsed.netloc:
        raise ValidationError("URL must include a host", field_name=field_name)

    return url.rstrip("/")


def validate_tolerance(tolerance: Any, field_name: str = "tolerance") -> float:
    # Values below 1.0 under-provision but are the caller's call.
    if isinstance(tolerance, bool) or not isinstance(tolerance, (int, float)):
        raise InvalidParameterError(
            f"Tolerance must be a number, got {type(tolerance).__name__}",
            value=tolerance, field_name=field_name
        )
    if tolerance <= 0:
        raise InvalidParameterError(
            f"Tolerance must be positive, got {tolerance}",
            value=tolerance, field_name=field_name
        )
    return float(tolerance)


def validate_priority_level(level: Any, field_name: str = "priority_level") -> PriorityLevel:
    if isinstance(level, PriorityLevel):
        return level
    try:
        return PriorityLevel(level)
    except ValueError as e:
        allowed = ", ".join(p.value for p in PriorityLevel)
        raise InvalidParameterError(
            f"Unknown priority level {level!r} (expected one of: {allowed})",
            value=level, field_name=field_name
        ) from e


def validate_instructions(
    instructions: Optional[Sequence[Any]],
    field_name: str = "instructions"
) -> List[Instruction]:
    if isinstance(instructions, (str, bytes)):
        raise InvalidParameterError(
            "Instructions must be a sequence of Instruction objects",
            value=type(instructions).__name__, field_name=field_name
        )
    result = list(instructions or [])
    for index, ix in enumerate(result):
        if not isinstance(ix, Instruction):
            raise InvalidParameterError(
                f"Instruction {index} is {type(ix).__name__}, expected Instruction",
                value=index, field_name=field_name
            )
    return result


def is_valid_solana_address(address: Any) -> bool:
    try:
        validate_solana_address(address)
        return True
    except ValidationError:
        return False
