"""ChallengeResolver — permissionless fraud-proof checks on responses.

Anyone may dispute a committed response while its challenge window is
open. The challenger resupplies the task, the response, its metadata and
the list of non-signer keys. The resolver:

1. Requires a committed response, the recorded task, the committed
   response + metadata digest, no earlier successful challenge and an open
   challenge window.
2. Recomputes the non-signer commitment from the claimed keys and requires
   it to equal the one the aggregator committed to. A challenger cannot
   frame the aggregator with a fabricated non-signer set.
3. Asks the ground-truth oracle for the canonical answer. Agreement with
   the response rejects the challenge (notification only, no state
   change). Disagreement marks the task successfully challenged and hands
   the implicated non-signers to every registered penalty hook.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from attest_node.blockchain.clock import BlockClock
from attest_node.crypto.hashing import non_signers_digest, pubkey_digest, response_record_digest
from attest_node.errors import (
    AlreadySuccessfullyChallenged,
    ChallengeWindowExpired,
    NonSignerSetMismatch,
    NoResponseToChallenge,
    ResponseMetadataMismatch,
)
from attest_node.models.notification import Notification, NotificationType
from attest_node.models.task import Task, TaskResponse, TaskResponseMetadata
from attest_node.oracle.ground_truth import GroundTruthOracle
from attest_node.oracle.notifications import NotificationBus
from attest_node.oracle.task_registry import TaskRegistry
from attest_node.registry.stake_registry import StakeRegistry
from attest_node.storage.base import StateStore

logger = logging.getLogger(__name__)

# (task_index, challenger, non_signer_operators)
PenaltyHook = Callable[[int, str, list[str]], None]


class ChallengeOutcome(str, Enum):
    REJECTED = "rejected"
    UPHELD = "upheld"


@dataclass
class ChallengeResult:
    task_index: int
    outcome: ChallengeOutcome
    challenger: str
    non_signer_operators: list[str] = field(default_factory=list)

    @property
    def upheld(self) -> bool:
        return self.outcome == ChallengeOutcome.UPHELD


class ChallengeResolver:
    def __init__(
        self,
        tasks: TaskRegistry,
        store: StateStore,
        clock: BlockClock,
        bus: NotificationBus,
        registry: StakeRegistry,
        ground_truth: GroundTruthOracle,
        challenge_window: int,
    ) -> None:
        self.tasks = tasks
        self.store = store
        self.clock = clock
        self.bus = bus
        self.registry = registry
        self.ground_truth = ground_truth
        self.challenge_window = challenge_window
        self._penalty_hooks: list[PenaltyHook] = []

    def add_penalty_hook(self, hook: PenaltyHook) -> None:
        """Register a callback run after every upheld challenge."""
        self._penalty_hooks.append(hook)

    def raise_challenge(
        self,
        task: Task,
        response: TaskResponse,
        metadata: TaskResponseMetadata,
        claimed_non_signers: Sequence[str],
        challenger: str,
    ) -> ChallengeResult:
        """Dispute a committed response.

        Raises:
            NoResponseToChallenge, TaskMismatch, ResponseMetadataMismatch,
            AlreadySuccessfullyChallenged, ChallengeWindowExpired,
            NonSignerSetMismatch, GroundTruthUnavailable.
        """
        index = response.reference_task_index
        committed = self.store.get_response_digest(index)
        if committed is None:
            logger.warning("Challenge by %s: task %d has no response", challenger, index)
            raise NoResponseToChallenge(
                f"Task {index} has no committed response", task_index=index,
            )

        self.tasks.verify_task(index, task)

        supplied = response_record_digest(response, metadata)
        if supplied != committed:
            logger.warning(
                "Challenge by %s: task %d response digest mismatch", challenger, index,
            )
            raise ResponseMetadataMismatch(
                f"Supplied response and metadata do not match the commitment for task {index}",
                task_index=index,
                expected=committed,
                supplied=supplied,
            )

        if self.store.is_challenged(index):
            logger.warning("Challenge by %s: task %d already invalidated", challenger, index)
            raise AlreadySuccessfullyChallenged(
                f"Task {index} has already been successfully challenged",
                task_index=index,
            )

        current = self.clock.current_block
        deadline = metadata.task_responsed_block + self.challenge_window
        if current > deadline:
            logger.warning(
                "Challenge by %s: task %d at block %d past deadline %d",
                challenger, index, current, deadline,
            )
            raise ChallengeWindowExpired(
                f"Challenge window for task {index} closed at block {deadline}",
                task_index=index,
                current_block=current,
                deadline=deadline,
            )

        try:
            digests = [pubkey_digest(pk) for pk in claimed_non_signers]
        except ValueError:
            raise NonSignerSetMismatch(
                "Claimed non-signer keys are not valid hex", task_index=index,
            ) from None
        expected_hash = non_signers_digest(task.task_created_block, digests)
        if expected_hash != metadata.hash_of_non_signers:
            logger.warning(
                "Challenge by %s: task %d non-signer set mismatch", challenger, index,
            )
            raise NonSignerSetMismatch(
                f"Claimed non-signers do not match the commitment for task {index}",
                task_index=index,
                expected=metadata.hash_of_non_signers,
                supplied=expected_hash,
            )

        canonical = self.ground_truth.is_owner(task)
        if canonical == response.is_owner:
            notification = Notification(
                event_type=NotificationType.CHALLENGE_REJECTED,
                task_index=index,
                block=current,
                payload={"challenger": challenger},
            )
            self.store.append_notification(notification)
            self.bus.publish(notification)
            logger.info("Challenge by %s on task %d rejected: response stands", challenger, index)
            return ChallengeResult(index, ChallengeOutcome.REJECTED, challenger)

        operators = [self.registry.operator_of(d) or d for d in digests]
        notification = Notification(
            event_type=NotificationType.CHALLENGE_UPHELD,
            task_index=index,
            block=current,
            payload={"challenger": challenger, "non_signer_operators": operators},
        )
        self.store.record_challenge(index, challenger, notification)
        self.bus.publish(notification)
        logger.info(
            "Challenge by %s on task %d upheld (%d non-signers implicated)",
            challenger, index, len(operators),
        )

        for hook in self._penalty_hooks:
            try:
                hook(index, challenger, list(operators))
            except Exception:
                logger.exception("Penalty hook failed for task %d", index)

        return ChallengeResult(index, ChallengeOutcome.UPHELD, challenger, operators)
