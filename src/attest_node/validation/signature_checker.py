"""SignatureChecker — verifies an aggregate response signature.

Given the signed message, the task's quorums and creation block, and the
aggregate proof, the checker:

1. Resolves every claimed non-signer key to a registered operator that was
   a member of at least one of the task's quorums at the reference block.
2. Computes, per quorum, the total stake and the signed stake (total minus
   the stake of the non-signers).
3. Rebuilds the signer set (all quorum members minus non-signers) and
   verifies the aggregate signature over exactly that set.
4. Commits to the non-signer set with ``non_signers_digest``.

All registry reads are made at the reference block, never at call time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from attest_node.crypto.bls import BLSScheme
from attest_node.crypto.hashing import non_signers_digest, pubkey_digest
from attest_node.errors import InvalidAggregateSignature
from attest_node.models.proof import NonSignerStakesAndSignature, QuorumStakeTotals
from attest_node.registry.stake_registry import StakeRegistry

logger = logging.getLogger(__name__)


@dataclass
class SignatureCheckResult:
    """Per-quorum stake totals and the non-signer commitment."""

    quorum_totals: dict[int, QuorumStakeTotals] = field(default_factory=dict)
    hash_of_non_signers: str = ""
    non_signer_operators: list[str] = field(default_factory=list)
    signer_operators: list[str] = field(default_factory=list)


class SignatureChecker:
    """Stateless verifier bound to a registry and a BLS scheme."""

    def __init__(self, registry: StakeRegistry, scheme: BLSScheme | None = None) -> None:
        self.registry = registry
        self.scheme = scheme or BLSScheme()

    def check_signatures(
        self,
        message: bytes,
        quorum_ids: tuple[int, ...] | list[int],
        reference_block: int,
        proof: NonSignerStakesAndSignature,
        task_index: int | None = None,
    ) -> SignatureCheckResult:
        """Verify ``proof`` for ``message`` at ``reference_block``.

        Raises:
            InvalidAggregateSignature: If a non-signer key is malformed,
                duplicated, unknown or outside the task's quorums, if the
                signer set is empty, or if the signature does not verify.
        """
        quorum_ids = list(quorum_ids)
        non_signer_keys = self._decode_keys(proof.non_signer_pubkeys, task_index)
        digests = [pubkey_digest(pk) for pk in non_signer_keys]
        if len(set(digests)) != len(digests):
            raise InvalidAggregateSignature(
                "Duplicate non-signer public key", task_index=task_index,
            )

        members: set[str] = set()
        for q in quorum_ids:
            members.update(self.registry.operators_in_quorum(q, reference_block))

        non_signers: list[str] = []
        for digest in digests:
            operator = self.registry.operator_of(digest)
            if operator is None:
                raise InvalidAggregateSignature(
                    f"Non-signer key {digest[:12]} is not registered",
                    task_index=task_index,
                    pubkey_digest=digest,
                )
            if operator not in members:
                raise InvalidAggregateSignature(
                    f"Non-signer {operator} is not in any task quorum at block {reference_block}",
                    task_index=task_index,
                    operator=operator,
                )
            non_signers.append(operator)

        totals: dict[int, QuorumStakeTotals] = {}
        for q in quorum_ids:
            total = self.registry.total_stake_of(q, reference_block)
            missing = sum(
                self.registry.stake_of(q, op, reference_block) for op in non_signers
            )
            totals[q] = QuorumStakeTotals(
                quorum_id=q, signed_stake=total - missing, total_stake=total,
            )

        signers = sorted(members.difference(non_signers))
        if not signers:
            raise InvalidAggregateSignature(
                "Empty signer set", task_index=task_index,
            )
        try:
            signature = bytes.fromhex(proof.signature)
        except ValueError:
            raise InvalidAggregateSignature(
                "Signature is not valid hex", task_index=task_index,
            ) from None

        signer_keys = [self.registry.pubkey_of(op) for op in signers]
        if not self.scheme.verify_aggregated(signer_keys, message, signature):
            logger.warning(
                "Aggregate signature failed for task %s (%d signers, %d non-signers)",
                task_index, len(signers), len(non_signers),
            )
            raise InvalidAggregateSignature(
                f"Aggregate signature does not verify for {len(signers)} signers",
                task_index=task_index,
                signers=signers,
                non_signers=non_signers,
            )

        logger.debug(
            "Aggregate signature ok for task %s: %d signers, %d non-signers",
            task_index, len(signers), len(non_signers),
        )
        return SignatureCheckResult(
            quorum_totals=totals,
            hash_of_non_signers=non_signers_digest(reference_block, digests),
            non_signer_operators=non_signers,
            signer_operators=signers,
        )

    @staticmethod
    def _decode_keys(keys: tuple[str, ...], task_index: int | None) -> list[bytes]:
        decoded = []
        for k in keys:
            try:
                decoded.append(bytes.fromhex(k))
            except ValueError:
                raise InvalidAggregateSignature(
                    f"Non-signer key is not valid hex: {k[:16]}",
                    task_index=task_index,
                ) from None
        return decoded
