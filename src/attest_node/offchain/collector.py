"""SignatureCollector — builds aggregate proofs from operator signatures.

Collection flow:
1. A task-created notification opens a collection round for the task
2. Operators send signed responses; each signature is checked on its own
   and the operator must be a quorum member at the task's creation block
3. Signatures are grouped by the response they sign (operators may
   disagree)
4. Once a response's signers meet the stake threshold in every quorum,
   the collector builds the NonSignerStakesAndSignature to submit
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from attest_node.crypto.bls import BLSScheme
from attest_node.crypto.hashing import response_digest, response_message
from attest_node.models.proof import NonSignerStakesAndSignature, QuorumStakeTotals
from attest_node.models.task import Task, TaskResponse
from attest_node.offchain.operator import SignedResponse
from attest_node.registry.stake_registry import StakeRegistry
from attest_node.validation.quorum import meets_threshold

logger = logging.getLogger(__name__)


@dataclass
class CollectionRound:
    """Signatures gathered for one task, keyed by response digest."""

    task_index: int
    task: Task
    members: list[str]
    signatures: dict[str, dict[str, bytes]] = field(default_factory=dict)
    responses: dict[str, TaskResponse] = field(default_factory=dict)

    def signers_for(self, response: TaskResponse) -> list[str]:
        return sorted(self.signatures.get(response_digest(response), {}))


class SignatureCollector:
    def __init__(self, registry: StakeRegistry, scheme: BLSScheme | None = None) -> None:
        self.registry = registry
        self.scheme = scheme or BLSScheme()
        self._rounds: dict[int, CollectionRound] = {}

    def open_round(self, task_index: int, task: Task) -> CollectionRound:
        members: set[str] = set()
        for q in task.quorum_ids:
            members.update(self.registry.operators_in_quorum(q, task.task_created_block))
        rnd = CollectionRound(task_index=task_index, task=task, members=sorted(members))
        self._rounds[task_index] = rnd
        logger.debug("Collection round opened for task %d (%d members)", task_index, len(members))
        return rnd

    def get_round(self, task_index: int) -> CollectionRound | None:
        return self._rounds.get(task_index)

    def add_signature(self, signed: SignedResponse) -> bool:
        """Accept one operator signature. Returns False if it is rejected."""
        rnd = self._rounds.get(signed.response.reference_task_index)
        if rnd is None:
            logger.debug("No open round for task %d", signed.response.reference_task_index)
            return False
        if signed.operator not in rnd.members:
            logger.warning(
                "Task %d: %s is not a quorum member", rnd.task_index, signed.operator,
            )
            return False

        pubkey = self.registry.pubkey_of(signed.operator)
        try:
            signature = bytes.fromhex(signed.signature)
        except ValueError:
            logger.warning(
                "Task %d: signature from %s is not valid hex", rnd.task_index, signed.operator,
            )
            return False
        if not self.scheme.verify(pubkey, response_message(signed.response), signature):
            logger.warning(
                "Task %d: bad signature from %s", rnd.task_index, signed.operator,
            )
            return False

        digest = response_digest(signed.response)
        rnd.responses[digest] = signed.response
        rnd.signatures.setdefault(digest, {})[signed.operator] = signature
        return True

    def stake_totals(self, task_index: int, response: TaskResponse) -> dict[int, QuorumStakeTotals]:
        rnd = self._require_round(task_index)
        signers = rnd.signers_for(response)
        block = rnd.task.task_created_block
        totals = {}
        for q in rnd.task.quorum_ids:
            totals[q] = QuorumStakeTotals(
                quorum_id=q,
                signed_stake=sum(self.registry.stake_of(q, op, block) for op in signers),
                total_stake=self.registry.total_stake_of(q, block),
            )
        return totals

    def is_ready(self, task_index: int, response: TaskResponse) -> bool:
        """True once every quorum meets the task threshold for ``response``."""
        rnd = self._require_round(task_index)
        if not rnd.signers_for(response):
            return False
        pct = rnd.task.quorum_threshold_percentage
        return all(meets_threshold(t, pct) for t in self.stake_totals(task_index, response).values())

    def ready_response(self, task_index: int) -> TaskResponse | None:
        """The first collected response whose signers meet the threshold."""
        rnd = self._require_round(task_index)
        for response in rnd.responses.values():
            if self.is_ready(task_index, response):
                return response
        return None

    def build_proof(self, task_index: int, response: TaskResponse) -> NonSignerStakesAndSignature:
        """Aggregate the signatures for ``response`` and list the non-signers."""
        rnd = self._require_round(task_index)
        sigs = rnd.signatures.get(response_digest(response), {})
        if not sigs:
            raise ValueError(f"No signatures collected for task {task_index}")
        non_signers = [op for op in rnd.members if op not in sigs]
        aggregate = self.scheme.aggregate_signatures([sigs[op] for op in sorted(sigs)])
        return NonSignerStakesAndSignature(
            non_signer_pubkeys=tuple(self.registry.pubkey_of(op).hex() for op in non_signers),
            signature=aggregate.hex(),
        )

    def close_round(self, task_index: int) -> None:
        self._rounds.pop(task_index, None)

    def _require_round(self, task_index: int) -> CollectionRound:
        rnd = self._rounds.get(task_index)
        if rnd is None:
            raise KeyError(f"No collection round for task {task_index}")
        return rnd
