"""Protocol data model — tasks, responses, proofs and notifications."""

from attest_node.models.notification import Notification, NotificationType
from attest_node.models.proof import NonSignerStakesAndSignature, QuorumStakeTotals
from attest_node.models.task import Task, TaskResponse, TaskResponseMetadata, TaskState

__all__ = [
    "Notification",
    "NotificationType",
    "NonSignerStakesAndSignature",
    "QuorumStakeTotals",
    "Task",
    "TaskResponse",
    "TaskResponseMetadata",
    "TaskState",
]
