import base64
import logging
from typing import List, Optional, Sequence, Union

import base58
from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .exceptions import TransactionBuildError, TransactionSignError

logger = logging.getLogger(__name__)


def compile_message(
    payer: Pubkey,
    instructions: Sequence[Instruction],
    blockhash: Hash,
    lookup_tables: Optional[Sequence[AddressLookupTableAccount]] = None
) -> MessageV0:
    try:
        return MessageV0.try_compile(
            payer=payer,
            instructions=list(instructions),
            address_lookup_table_accounts=list(lookup_tables or []),
            recent_blockhash=blockhash
        )
    except Exception as e:
        raise TransactionBuildError(f"Failed to compile transaction message: {e}") from e


def unsigned_transaction(message: MessageV0) -> VersionedTransaction:
    placeholders = [Signature.default()] * message.header.num_required_signatures
    return VersionedTransaction.populate(message, placeholders)


def compile_transaction(
    payer: Pubkey,
    instructions: Sequence[Instruction],
    blockhash: Hash,
    lookup_tables: Optional[Sequence[AddressLookupTableAccount]] = None
) -> VersionedTransaction:
    return unsigned_transaction(compile_message(payer, instructions, blockhash, lookup_tables))


def sign_transaction(tx: VersionedTransaction, signers: Sequence) -> VersionedTransaction:
    """
    Sign ``tx`` with each signer that is a required signer of its message.

    Slots belonging to required signers that are not supplied keep their
    existing signature, so a payload can be partially signed here and
    completed by a wallet later.
    """
    message = tx.message
    required = list(message.account_keys[:message.header.num_required_signatures])
    signatures: List[Signature] = list(tx.signatures)
    message_bytes = to_bytes_versioned(message)

    for signer in signers:
        pubkey = signer.pubkey()
        if pubkey not in required:
            raise TransactionSignError(
                f"Signer {pubkey} is not a required signer of this transaction"
            )
        try:
            signatures[required.index(pubkey)] = signer.sign_message(message_bytes)
        except Exception as e:
            raise TransactionSignError(f"Failed to sign transaction: {e}") from e

    logger.debug(f"Signed transaction with {len(signers)} signer(s)")
    return VersionedTransaction.populate(message, signatures)


def serialize_transaction(tx: VersionedTransaction) -> bytes:
    return bytes(tx)


def encode_base64(raw: Union[bytes, VersionedTransaction]) -> str:
    if isinstance(raw, VersionedTransaction):
        raw = serialize_transaction(raw)
    return base64.b64encode(raw).decode("ascii")


def encode_base58(raw: Union[bytes, VersionedTransaction]) -> str:
    if isinstance(raw, VersionedTransaction):
        raw = serialize_transaction(raw)
    return base58.b58encode(raw).decode("ascii")


def decode_transaction(data: Union[bytes, str]) -> VersionedTransaction:
    if isinstance(data, str):
        data = base64.b64decode(data)
    return VersionedTransaction.from_bytes(data)


__all__ = [
    "compile_message",
    "compile_transaction",
    "unsigned_transaction",
    "sign_transaction",
    "serialize_transaction",
    "encode_base64",
    "encode_base58",
    "decode_transaction",
]
