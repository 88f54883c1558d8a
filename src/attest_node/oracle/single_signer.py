"""Single-signer variant of the task/response flow.

Any one registered operator answers a task with its own BLS signature.
There is no quorum, no stake threshold, no non-signer commitment and no
challenge path. Tasks and responses still follow the digest-only,
exactly-once rules of the quorum flow.
"""

from __future__ import annotations

import logging
import threading

from attest_node.blockchain.clock import BlockClock
from attest_node.crypto.bls import BLSScheme
from attest_node.crypto.hashing import pubkey_digest, response_digest, response_message
from attest_node.errors import (
    DuplicateResponse,
    InvalidAggregateSignature,
    UnregisteredOperator,
)
from attest_node.models.notification import Notification, NotificationType
from attest_node.models.task import Task, TaskResponse
from attest_node.oracle.notifications import NotificationBus
from attest_node.oracle.task_registry import TaskRegistry
from attest_node.registry.stake_registry import StakeRegistry
from attest_node.storage.base import StateStore
from attest_node.storage.memory import MemoryStateStore

logger = logging.getLogger(__name__)


class SingleSignerTaskManager:
    def __init__(
        self,
        registry: StakeRegistry,
        store: StateStore | None = None,
        clock: BlockClock | None = None,
        scheme: BLSScheme | None = None,
    ) -> None:
        self.registry = registry
        self.store = store or MemoryStateStore()
        self.clock = clock or BlockClock()
        self.scheme = scheme or BLSScheme()
        self.bus = NotificationBus()
        self.tasks = TaskRegistry(self.store, self.clock, self.bus)
        self._lock = threading.RLock()

    def create_task(self, smart_wallet_address: str, owner_address: str) -> tuple[int, Task]:
        with self._lock:
            return self.tasks.create_task(smart_wallet_address, owner_address, (), 0)

    def respond_to_task(
        self,
        task: Task,
        response: TaskResponse,
        signature: str,
        operator_pubkey: str,
    ) -> str:
        """Commit a response signed by one registered operator.

        Returns:
            The operator identity that answered.

        Raises:
            TaskMismatch, DuplicateResponse, UnregisteredOperator,
            InvalidAggregateSignature.
        """
        index = response.reference_task_index
        with self._lock:
            self.tasks.verify_task(index, task)

            if self.store.get_response_digest(index) is not None:
                logger.warning("Task %d: duplicate response rejected", index)
                raise DuplicateResponse(
                    f"Task {index} already has a committed response", task_index=index,
                )

            try:
                pubkey = bytes.fromhex(operator_pubkey)
                sig = bytes.fromhex(signature)
            except ValueError:
                raise InvalidAggregateSignature(
                    "Key or signature is not valid hex", task_index=index,
                ) from None

            operator = self.registry.operator_of(pubkey_digest(pubkey))
            if operator is None or not self.registry.is_registered_operator(operator):
                logger.warning("Task %d: response from unregistered key", index)
                raise UnregisteredOperator(
                    "Signing key does not belong to a registered operator",
                    task_index=index,
                    pubkey_digest=pubkey_digest(pubkey),
                )

            if not self.scheme.verify(pubkey, response_message(response), sig):
                logger.warning("Task %d: bad signature from %s", index, operator)
                raise InvalidAggregateSignature(
                    f"Signature by {operator} does not verify",
                    task_index=index,
                    operator=operator,
                )

            current = self.clock.current_block
            digest = response_digest(response)
            notification = Notification(
                event_type=NotificationType.RESPONSE_RECORDED,
                task_index=index,
                block=current,
                payload={
                    "response": response.model_dump(mode="json"),
                    "operator": operator,
                    "signature": signature,
                },
            )
            self.store.record_response(index, digest, current, notification)
            self.bus.publish(notification)

        logger.info("Task %d answered by %s is_owner=%s", index, operator, response.is_owner)
        return operator
