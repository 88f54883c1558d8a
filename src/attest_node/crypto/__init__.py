"""Cryptographic primitives — BLS aggregate signatures and content digests."""

from attest_node.crypto.bls import BLSError, BLSScheme
from attest_node.crypto.hashing import (
    non_signers_digest,
    pubkey_digest,
    response_digest,
    response_record_digest,
    task_digest,
)

__all__ = [
    "BLSError",
    "BLSScheme",
    "non_signers_digest",
    "pubkey_digest",
    "response_digest",
    "response_record_digest",
    "task_digest",
]
