"""Content digests for tasks, responses and non-signer sets.

All digests are lowercase hex SHA-256 over canonical JSON (sorted keys,
compact separators), so every party that holds the same struct derives
the same commitment.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from attest_node.models.task import Task, TaskResponse, TaskResponseMetadata


def canonical_json(obj: Any) -> bytes:
    """Deterministic JSON encoding."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def task_digest(task: Task) -> str:
    """Digest of the full Task struct, including its creation block."""
    return sha256_hex(canonical_json(task.model_dump(mode="json")))


def response_digest(response: TaskResponse) -> str:
    """Digest of the signed payload; this is the message operators sign."""
    return sha256_hex(canonical_json(response.model_dump(mode="json")))


def response_message(response: TaskResponse) -> bytes:
    """Raw message bytes signed by operators."""
    return bytes.fromhex(response_digest(response))


def response_record_digest(
    response: TaskResponse, metadata: TaskResponseMetadata
) -> str:
    """Digest committed for a response together with its metadata."""
    return sha256_hex(canonical_json({
        "response": response.model_dump(mode="json"),
        "metadata": metadata.model_dump(mode="json"),
    }))


def pubkey_digest(pubkey: bytes | str) -> str:
    """Digest of a compressed public key (bytes or hex)."""
    if isinstance(pubkey, str):
        pubkey = bytes.fromhex(pubkey)
    return sha256_hex(pubkey)


def non_signers_digest(reference_block: int, pubkey_digests: Iterable[str]) -> str:
    """Commitment to the non-signer set of a response.

    Binds the task's creation block to the sorted key digests, so the order
    in which a challenger lists non-signers does not matter.
    """
    return sha256_hex(canonical_json({
        "block": reference_block,
        "non_signers": sorted(pubkey_digests),
    }))
