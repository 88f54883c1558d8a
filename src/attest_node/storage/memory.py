"""In-memory state store, used by tests and nodes without a db_path.

The log holds its own copies of notifications, so callers and subscribers
that mutate a notification never alter the recorded history.
"""

from __future__ import annotations

import threading

from attest_node.errors import StoreError
from attest_node.models.notification import Notification, NotificationType
from attest_node.storage.base import StateStore, TaskRecord


class MemoryStateStore(StateStore):
    def __init__(self) -> None:
        self._records: list[TaskRecord] = []
        self._log: list[Notification] = []
        self._lock = threading.Lock()

    @property
    def task_count(self) -> int:
        return len(self._records)

    def get_record(self, task_index: int) -> TaskRecord | None:
        if 0 <= task_index < len(self._records):
            return self._records[task_index]
        return None

    def highest_block(self) -> int:
        blocks = [0]
        for record in self._records:
            blocks.append(record.created_block)
            if record.responded_block is not None:
                blocks.append(record.responded_block)
        return max(blocks)

    def append_task(
        self, task_digest: str, created_block: int, notification: Notification
    ) -> int:
        with self._lock:
            index = len(self._records)
            self._records.append(TaskRecord(
                task_index=index,
                task_digest=task_digest,
                created_block=created_block,
            ))
            notification.task_index = index
            self._append(notification)
        return index

    def record_response(
        self,
        task_index: int,
        response_digest: str,
        responded_block: int,
        notification: Notification,
    ) -> None:
        with self._lock:
            record = self.get_record(task_index)
            if record is None:
                raise StoreError(f"Unknown task {task_index}")
            if record.has_response:
                raise StoreError(f"Task {task_index} already has a response")
            record.response_digest = response_digest
            record.responded_block = responded_block
            self._append(notification)

    def record_challenge(
        self, task_index: int, challenger: str, notification: Notification
    ) -> None:
        with self._lock:
            record = self.get_record(task_index)
            if record is None or not record.has_response:
                raise StoreError(f"Task {task_index} has no response to challenge")
            if record.challenged:
                raise StoreError(f"Task {task_index} already challenged")
            record.challenged = True
            record.challenger = challenger
            self._append(notification)

    def append_notification(self, notification: Notification) -> Notification:
        with self._lock:
            return self._append(notification)

    def notifications(
        self,
        since: int = 0,
        limit: int = 100,
        event_type: NotificationType | None = None,
    ) -> list[Notification]:
        out = [
            n for n in self._log[max(0, since):]
            if event_type is None or n.event_type == event_type
        ]
        return [n.model_copy(deep=True) for n in out[:limit]]

    def _append(self, notification: Notification) -> Notification:
        notification.seq = len(self._log)
        self._log.append(notification.model_copy(deep=True))
        return notification
