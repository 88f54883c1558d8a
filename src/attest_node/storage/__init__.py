"""Oracle state stores — in-memory and SQLite."""

from attest_node.storage.base import StateStore, TaskRecord
from attest_node.storage.memory import MemoryStateStore
from attest_node.storage.statedb import StateDB

__all__ = ["MemoryStateStore", "StateDB", "StateStore", "TaskRecord"]
