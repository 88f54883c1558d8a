"""ResponseAggregator — commits quorum-signed responses.

The submission flow:
1. Resupplied task must match the digest recorded at creation
2. No response may already be committed for the task
3. The response must arrive within the response window
4. The aggregate signature must verify over the exact signer set
5. Every quorum must meet the task's stake threshold
6. Commit digest(response, metadata) and emit response-recorded

Any failure rejects the whole submission; nothing is written.
"""

from __future__ import annotations

import logging

from attest_node.blockchain.clock import BlockClock
from attest_node.crypto.hashing import response_message, response_record_digest
from attest_node.errors import DuplicateResponse, ResponseWindowExpired
from attest_node.models.notification import Notification, NotificationType
from attest_node.models.proof import NonSignerStakesAndSignature
from attest_node.models.task import Task, TaskResponse, TaskResponseMetadata
from attest_node.oracle.notifications import NotificationBus
from attest_node.oracle.task_registry import TaskRegistry
from attest_node.storage.base import StateStore
from attest_node.validation.quorum import check_quorum_thresholds
from attest_node.validation.signature_checker import SignatureChecker

logger = logging.getLogger(__name__)


class ResponseAggregator:
    def __init__(
        self,
        tasks: TaskRegistry,
        store: StateStore,
        clock: BlockClock,
        bus: NotificationBus,
        checker: SignatureChecker,
        response_window: int,
    ) -> None:
        self.tasks = tasks
        self.store = store
        self.clock = clock
        self.bus = bus
        self.checker = checker
        self.response_window = response_window

    def submit_response(
        self,
        task: Task,
        response: TaskResponse,
        proof: NonSignerStakesAndSignature,
    ) -> TaskResponseMetadata:
        """Verify and commit a quorum response.

        Returns:
            The metadata committed beside the response.

        Raises:
            TaskMismatch, DuplicateResponse, ResponseWindowExpired,
            InvalidAggregateSignature, QuorumThresholdNotMet.
        """
        index = response.reference_task_index
        self.tasks.verify_task(index, task)

        existing = self.store.get_response_digest(index)
        if existing is not None:
            logger.warning("Task %d: duplicate response rejected", index)
            raise DuplicateResponse(
                f"Task {index} already has a committed response",
                task_index=index,
                committed=existing,
            )

        current = self.clock.current_block
        deadline = task.task_created_block + self.response_window
        if current > deadline:
            logger.warning(
                "Task %d: response at block %d past deadline %d", index, current, deadline,
            )
            raise ResponseWindowExpired(
                f"Response window for task {index} closed at block {deadline}",
                task_index=index,
                current_block=current,
                deadline=deadline,
            )

        result = self.checker.check_signatures(
            response_message(response),
            task.quorum_ids,
            task.task_created_block,
            proof,
            task_index=index,
        )
        check_quorum_thresholds(
            index, task.quorum_ids, result.quorum_totals, task.quorum_threshold_percentage,
        )

        metadata = TaskResponseMetadata(
            task_responsed_block=current,
            hash_of_non_signers=result.hash_of_non_signers,
        )
        digest = response_record_digest(response, metadata)
        notification = Notification(
            event_type=NotificationType.RESPONSE_RECORDED,
            task_index=index,
            block=current,
            payload={
                "response": response.model_dump(mode="json"),
                "metadata": metadata.model_dump(mode="json"),
                "response_digest": digest,
            },
        )
        self.store.record_response(index, digest, current, notification)
        self.bus.publish(notification)

        logger.info(
            "Task %d answered is_owner=%s at block %d (%d signers, %d non-signers)",
            index,
            response.is_owner,
            current,
            len(result.signer_operators),
            len(result.non_signer_operators),
        )
        return metadata
