"""StateStore — the append-only digest store behind the oracle.

The store holds, per task index, the task digest and (once answered) the
response digest, plus the permanent successfully-challenged flag and the
notification log. Creation and response blocks are kept beside the digests
for the derived task-state view only; protocol checks always recompute
digests from caller-supplied structs.

Every write is one all-or-nothing transition: the digest row and the
notification describing it land together or not at all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from attest_node.models.notification import Notification, NotificationType


@dataclass
class TaskRecord:
    """Everything the store knows about one task index."""

    task_index: int
    task_digest: str
    created_block: int
    response_digest: str | None = None
    responded_block: int | None = None
    challenged: bool = False
    challenger: str | None = None

    @property
    def has_response(self) -> bool:
        return self.response_digest is not None


class StateStore(ABC):
    """Append-only task / response / challenge store."""

    @property
    @abstractmethod
    def task_count(self) -> int:
        """Number of tasks created; also the next task index."""

    @abstractmethod
    def get_record(self, task_index: int) -> TaskRecord | None:
        ...

    @abstractmethod
    def highest_block(self) -> int:
        """Highest creation or response block recorded, 0 when empty.

        A restarted node never lets its clock fall below this height.
        """

    @abstractmethod
    def append_task(
        self, task_digest: str, created_block: int, notification: Notification
    ) -> int:
        """Store a new task digest at the next index and return that index.

        The notification's ``task_index`` is set to the assigned index.
        """

    @abstractmethod
    def record_response(
        self,
        task_index: int,
        response_digest: str,
        responded_block: int,
        notification: Notification,
    ) -> None:
        """Commit the response digest for a task exactly once.

        Raises:
            StoreError: If the task is unknown or already answered.
        """

    @abstractmethod
    def record_challenge(
        self, task_index: int, challenger: str, notification: Notification
    ) -> None:
        """Mark a task as successfully challenged, exactly once.

        Raises:
            StoreError: If the task has no response or is already challenged.
        """

    @abstractmethod
    def append_notification(self, notification: Notification) -> Notification:
        """Append a notification with no accompanying state change."""

    @abstractmethod
    def notifications(
        self,
        since: int = 0,
        limit: int = 100,
        event_type: NotificationType | None = None,
    ) -> list[Notification]:
        """Notifications with ``seq >= since`` in log order."""

    def get_task_digest(self, task_index: int) -> str | None:
        record = self.get_record(task_index)
        return record.task_digest if record else None

    def get_response_digest(self, task_index: int) -> str | None:
        record = self.get_record(task_index)
        return record.response_digest if record else None

    def is_challenged(self, task_index: int) -> bool:
        record = self.get_record(task_index)
        return bool(record and record.challenged)

    def close(self) -> None:
        """Release resources held by the store."""
