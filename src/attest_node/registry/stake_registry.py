"""Stake/registry provider — the collaborator the core reads from.

The oracle never computes stake or quorum membership itself. It asks a
``StakeRegistry`` for point-in-time values at the block a task was
created, so responders and challengers agree on one snapshot even though
the chain has moved on between their calls.

``InMemoryStakeRegistry`` is a reference implementation: stake is kept as
per-(quorum, operator) checkpoint lists ``[(block, amount), ...]`` and a
lookup at block ``b`` returns the last checkpoint at or before ``b``.
"""

from __future__ import annotations

import bisect
import logging
import threading
from abc import ABC, abstractmethod

from attest_node.crypto.bls import BLSScheme
from attest_node.crypto.hashing import pubkey_digest
from attest_node.errors import RegistryError

logger = logging.getLogger(__name__)


class StakeRegistry(ABC):
    """Read-only, point-in-time view of operator stake and keys."""

    @abstractmethod
    def stake_of(self, quorum_id: int, operator: str, at_block: int) -> int:
        """Stake of ``operator`` in ``quorum_id`` as of ``at_block``."""

    @abstractmethod
    def total_stake_of(self, quorum_id: int, at_block: int) -> int:
        """Total stake of ``quorum_id`` as of ``at_block``."""

    @abstractmethod
    def operator_of(self, pubkey_digest: str) -> str | None:
        """Operator identity owning the key with this digest."""

    @abstractmethod
    def is_registered_operator(self, operator: str) -> bool:
        ...

    @abstractmethod
    def operators_in_quorum(self, quorum_id: int, at_block: int) -> list[str]:
        """Operators with non-zero stake in ``quorum_id`` at ``at_block``."""

    @abstractmethod
    def pubkey_of(self, operator: str) -> bytes:
        ...


class InMemoryStakeRegistry(StakeRegistry):
    """Historical stake registry held in memory.

    Operators register once with a BLS public key and its proof of
    possession. Stake updates are recorded as checkpoints and must arrive
    in non-decreasing block order per (quorum, operator).
    """

    def __init__(self, scheme: BLSScheme | None = None) -> None:
        self._scheme = scheme or BLSScheme()
        self._pubkeys: dict[str, bytes] = {}
        self._operator_by_digest: dict[str, str] = {}
        # (quorum_id, operator) -> sorted checkpoint blocks / amounts
        self._blocks: dict[tuple[int, str], list[int]] = {}
        self._amounts: dict[tuple[int, str], list[int]] = {}
        self._quorum_members: dict[int, set[str]] = {}
        self._lock = threading.Lock()

    # ── Registration ─────────────────────────────────────────────

    def register_operator(self, operator: str, pubkey: bytes, pop: bytes) -> str:
        """Register an operator key. Returns the key digest.

        Raises:
            RegistryError: If the operator or key is already registered, or
                the proof of possession does not verify.
        """
        if operator in self._pubkeys:
            raise RegistryError(f"Operator already registered: {operator}")
        digest = pubkey_digest(pubkey)
        if digest in self._operator_by_digest:
            raise RegistryError(f"Public key already registered ({digest[:12]})")
        if not self._scheme.verify_pop(pubkey, pop):
            raise RegistryError(f"Invalid proof of possession for {operator}")

        with self._lock:
            self._pubkeys[operator] = pubkey
            self._operator_by_digest[digest] = operator
        logger.info("Operator registered: %s (key %s)", operator, digest[:12])
        return digest

    def set_stake(self, quorum_id: int, operator: str, amount: int, at_block: int) -> None:
        """Record ``operator``'s stake in ``quorum_id`` from ``at_block`` on.

        An amount of 0 removes the operator from the quorum from that block.
        """
        if operator not in self._pubkeys:
            raise RegistryError(f"Unknown operator: {operator}")
        if amount < 0:
            raise RegistryError(f"Stake must be non-negative, got {amount}")
        if at_block < 0:
            raise RegistryError(f"Block must be non-negative, got {at_block}")

        key = (quorum_id, operator)
        with self._lock:
            blocks = self._blocks.setdefault(key, [])
            amounts = self._amounts.setdefault(key, [])
            if blocks and at_block < blocks[-1]:
                raise RegistryError(
                    f"Stake updates must be in block order: last {blocks[-1]}, got {at_block}"
                )
            if blocks and blocks[-1] == at_block:
                amounts[-1] = amount
            else:
                blocks.append(at_block)
                amounts.append(amount)
            self._quorum_members.setdefault(quorum_id, set()).add(operator)
        logger.debug(
            "Stake set: quorum=%d operator=%s amount=%d from block %d",
            quorum_id, operator, amount, at_block,
        )

    # ── Point-in-time reads ──────────────────────────────────────

    def stake_of(self, quorum_id: int, operator: str, at_block: int) -> int:
        key = (quorum_id, operator)
        blocks = self._blocks.get(key)
        if not blocks:
            return 0
        pos = bisect.bisect_right(blocks, at_block)
        if pos == 0:
            return 0
        return self._amounts[key][pos - 1]

    def total_stake_of(self, quorum_id: int, at_block: int) -> int:
        return sum(
            self.stake_of(quorum_id, op, at_block)
            for op in self._quorum_members.get(quorum_id, ())
        )

    def operators_in_quorum(self, quorum_id: int, at_block: int) -> list[str]:
        return sorted(
            op for op in self._quorum_members.get(quorum_id, ())
            if self.stake_of(quorum_id, op, at_block) > 0
        )

    def operator_of(self, pubkey_digest: str) -> str | None:
        return self._operator_by_digest.get(pubkey_digest)

    def is_registered_operator(self, operator: str) -> bool:
        return operator in self._pubkeys

    def pubkey_of(self, operator: str) -> bytes:
        try:
            return self._pubkeys[operator]
        except KeyError:
            raise RegistryError(f"Unknown operator: {operator}") from None

    @property
    def operator_count(self) -> int:
        return len(self._pubkeys)
