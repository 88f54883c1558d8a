"""TaskManager — the single-writer oracle state machine.

Ties together the task registry, response aggregator and challenge
resolver over one shared state store and logical clock. Every mutating
call runs its whole check-then-commit under one lock, so two responses or
two challenges for the same task can never both observe "not yet
committed" and both succeed.

Per-task lifecycle:

    CREATED --valid timely response--> RESPONDED --upheld challenge--> INVALIDATED
       |                                   |
       response window elapses             challenge window elapses
       v                                   v
      DEAD                               FINAL

Rejected challenges leave a task in RESPONDED and do not touch its window.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Sequence

from attest_node.blockchain.clock import BlockClock
from attest_node.crypto.bls import BLSScheme
from attest_node.errors import ConfigError, UnknownTask
from attest_node.models.notification import Notification, NotificationType
from attest_node.models.proof import NonSignerStakesAndSignature
from attest_node.models.task import Task, TaskResponse, TaskResponseMetadata, TaskState
from attest_node.oracle.challenge_resolver import ChallengeResolver, ChallengeResult, PenaltyHook
from attest_node.oracle.ground_truth import GroundTruthOracle, StaticGroundTruth
from attest_node.oracle.notifications import Handler, NotificationBus
from attest_node.oracle.response_aggregator import ResponseAggregator
from attest_node.oracle.task_registry import TaskRegistry
from attest_node.registry.stake_registry import StakeRegistry
from attest_node.storage.base import StateStore
from attest_node.storage.memory import MemoryStateStore
from attest_node.validation.signature_checker import SignatureChecker

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_WINDOW = 30
DEFAULT_CHALLENGE_WINDOW = 100


class TaskManager:
    """Oracle facade: create tasks, submit responses, raise challenges."""

    def __init__(
        self,
        registry: StakeRegistry,
        store: StateStore | None = None,
        clock: BlockClock | None = None,
        ground_truth: GroundTruthOracle | None = None,
        response_window: int = DEFAULT_RESPONSE_WINDOW,
        challenge_window: int = DEFAULT_CHALLENGE_WINDOW,
        scheme: BLSScheme | None = None,
    ) -> None:
        if response_window < 0 or challenge_window < 0:
            raise ConfigError(
                f"Windows must be non-negative (response={response_window}, "
                f"challenge={challenge_window})"
            )
        self._response_window = response_window
        self._challenge_window = challenge_window
        self.registry = registry
        self.store = store or MemoryStateStore()
        self.clock = clock or BlockClock()
        self.bus = NotificationBus()
        self._lock = threading.RLock()

        self.tasks = TaskRegistry(self.store, self.clock, self.bus)
        self.aggregator = ResponseAggregator(
            self.tasks,
            self.store,
            self.clock,
            self.bus,
            SignatureChecker(registry, scheme),
            response_window,
        )
        self.resolver = ChallengeResolver(
            self.tasks,
            self.store,
            self.clock,
            self.bus,
            registry,
            ground_truth or StaticGroundTruth(),
            challenge_window,
        )

    @property
    def response_window(self) -> int:
        return self._response_window

    @property
    def challenge_window(self) -> int:
        return self._challenge_window

    # ── Mutating operations (serialized) ─────────────────────────

    def create_task(
        self,
        smart_wallet_address: str,
        owner_address: str,
        quorum_ids: Iterable[int],
        threshold_percentage: int,
    ) -> tuple[int, Task]:
        with self._lock:
            return self.tasks.create_task(
                smart_wallet_address, owner_address, quorum_ids, threshold_percentage,
            )

    def submit_response(
        self,
        task: Task,
        response: TaskResponse,
        proof: NonSignerStakesAndSignature,
    ) -> TaskResponseMetadata:
        with self._lock:
            return self.aggregator.submit_response(task, response, proof)

    def raise_challenge(
        self,
        task: Task,
        response: TaskResponse,
        metadata: TaskResponseMetadata,
        claimed_non_signers: Sequence[str],
        challenger: str,
    ) -> ChallengeResult:
        with self._lock:
            return self.resolver.raise_challenge(
                task, response, metadata, claimed_non_signers, challenger,
            )

    # ── Queries ──────────────────────────────────────────────────

    def get_task_digest(self, task_index: int) -> str | None:
        return self.store.get_task_digest(task_index)

    def get_response_digest(self, task_index: int) -> str | None:
        return self.store.get_response_digest(task_index)

    def is_successfully_challenged(self, task_index: int) -> bool:
        return self.store.is_challenged(task_index)

    def task_state(self, task_index: int) -> TaskState:
        """Derived lifecycle state of a task at the current block."""
        record = self.store.get_record(task_index)
        if record is None:
            raise UnknownTask(f"No task at index {task_index}", task_index=task_index)

        current = self.clock.current_block
        if not record.has_response:
            if current > record.created_block + self._response_window:
                return TaskState.DEAD
            return TaskState.CREATED
        if record.challenged:
            return TaskState.INVALIDATED
        assert record.responded_block is not None
        if current > record.responded_block + self._challenge_window:
            return TaskState.FINAL
        return TaskState.RESPONDED

    @property
    def task_count(self) -> int:
        return self.store.task_count

    def notifications(
        self,
        since: int = 0,
        limit: int = 100,
        event_type: NotificationType | None = None,
    ) -> list[Notification]:
        return self.store.notifications(since=since, limit=limit, event_type=event_type)

    # ── Extension points ─────────────────────────────────────────

    def subscribe(self, handler: Handler, event_type: NotificationType | None = None) -> None:
        self.bus.subscribe(handler, event_type)

    def add_penalty_hook(self, hook: PenaltyHook) -> None:
        self.resolver.add_penalty_hook(hook)
