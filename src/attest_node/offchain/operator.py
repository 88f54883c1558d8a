"""OperatorSigner — the operator side of the attestation flow.

An operator watches task-created notifications, works out its answer and
signs the TaskResponse digest with its BLS key. Signed responses are
handed to a SignatureCollector, which aggregates them into the proof
submitted to the oracle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from attest_node.crypto.bls import BLSScheme
from attest_node.crypto.hashing import response_message
from attest_node.models.task import Task, TaskResponse
from attest_node.oracle.ground_truth import GroundTruthOracle
from attest_node.registry.stake_registry import InMemoryStakeRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedResponse:
    operator: str
    response: TaskResponse
    signature: str  # hex
    pubkey: str  # hex


class OperatorSigner:
    def __init__(
        self,
        operator_id: str,
        private_key: bytes,
        scheme: BLSScheme | None = None,
    ) -> None:
        self.operator_id = operator_id
        self.scheme = scheme or BLSScheme()
        self._private_key = private_key
        self.pubkey = self.scheme.public_key(private_key)

    @classmethod
    def from_seed(cls, operator_id: str, seed: bytes, scheme: BLSScheme | None = None) -> OperatorSigner:
        private_key, _ = BLSScheme.keypair_from_seed(seed)
        return cls(operator_id, private_key, scheme)

    @property
    def pubkey_hex(self) -> str:
        return self.pubkey.hex()

    def proof_of_possession(self) -> bytes:
        return self.scheme.create_pop(self._private_key)

    def register(self, registry: InMemoryStakeRegistry) -> str:
        """Register this operator's key with a registry; returns the key digest."""
        return registry.register_operator(
            self.operator_id, self.pubkey, self.proof_of_possession(),
        )

    def sign_response(self, response: TaskResponse) -> SignedResponse:
        signature = self.scheme.sign(self._private_key, response_message(response))
        return SignedResponse(
            operator=self.operator_id,
            response=response,
            signature=signature.hex(),
            pubkey=self.pubkey_hex,
        )

    def answer_task(
        self, task_index: int, task: Task, source: GroundTruthOracle
    ) -> SignedResponse:
        """Compute this operator's answer for a task and sign it."""
        response = TaskResponse(
            reference_task_index=task_index,
            is_owner=source.is_owner(task),
        )
        logger.debug(
            "Operator %s answers task %d is_owner=%s",
            self.operator_id, task_index, response.is_owner,
        )
        return self.sign_response(response)
