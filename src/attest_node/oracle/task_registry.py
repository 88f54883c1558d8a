"""TaskRegistry — append-only log of task digests.

The registry stores only the digest of each Task. Every later reference
resupplies the full struct and the registry recomputes and compares the
digest. Task creation is intentionally permissive: the threshold is not
range-checked here, a threshold outside [1, 100] simply fails (or
trivially passes) downstream.
"""

from __future__ import annotations

import logging
from typing import Iterable

from attest_node.blockchain.clock import BlockClock
from attest_node.crypto.hashing import task_digest
from attest_node.errors import StoreError, TaskMismatch
from attest_node.models.notification import Notification, NotificationType
from attest_node.models.task import MAX_TASK_INDEX, Task
from attest_node.oracle.notifications import NotificationBus
from attest_node.storage.base import StateStore

logger = logging.getLogger(__name__)


class TaskRegistry:
    def __init__(self, store: StateStore, clock: BlockClock, bus: NotificationBus) -> None:
        self.store = store
        self.clock = clock
        self.bus = bus

    def create_task(
        self,
        smart_wallet_address: str,
        owner_address: str,
        quorum_ids: Iterable[int],
        threshold_percentage: int,
    ) -> tuple[int, Task]:
        """Record a new task stamped with the current block.

        Returns:
            The assigned task index and the full Task, which is also carried
            in the task-created notification.
        """
        if self.store.task_count > MAX_TASK_INDEX:
            raise StoreError("Task index space exhausted")

        task = Task(
            smart_wallet_address=smart_wallet_address,
            owner_address=owner_address,
            task_created_block=self.clock.current_block,
            quorum_ids=tuple(quorum_ids),
            quorum_threshold_percentage=threshold_percentage,
        )
        digest = task_digest(task)
        notification = Notification(
            event_type=NotificationType.TASK_CREATED,
            task_index=-1,
            block=task.task_created_block,
            payload={"task": task.model_dump(mode="json"), "task_digest": digest},
        )
        index = self.store.append_task(digest, task.task_created_block, notification)
        self.bus.publish(notification)

        logger.info(
            "Task %d created at block %d (wallet=%s, quorums=%s, threshold=%d%%)",
            index,
            task.task_created_block,
            smart_wallet_address,
            list(task.quorum_ids),
            threshold_percentage,
        )
        return index, task

    def verify_task(self, task_index: int, task: Task) -> str:
        """Require ``task`` to hash to the digest recorded for ``task_index``.

        Returns:
            The matching digest.

        Raises:
            TaskMismatch: If no task exists at the index or the digests differ.
        """
        expected = self.store.get_task_digest(task_index)
        supplied = task_digest(task)
        if expected is None or expected != supplied:
            logger.warning(
                "Task %d mismatch: expected %s, supplied %s",
                task_index, (expected or "<none>")[:12], supplied[:12],
            )
            raise TaskMismatch(
                f"Supplied task does not match the task recorded at index {task_index}",
                task_index=task_index,
                expected=expected or "",
                supplied=supplied,
            )
        return expected

    def get_task_digest(self, task_index: int) -> str | None:
        return self.store.get_task_digest(task_index)

    @property
    def task_count(self) -> int:
        return self.store.task_count
