"""Ground-truth sources for challenge resolution.

The Challenge Resolver does not decide wallet ownership itself. It asks a
``GroundTruthOracle`` for the canonical answer to a task and compares it
with the committed response. Deployments plug in whatever source they
trust; the implementations here cover configured answer tables and
arbitrary callables.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Mapping

from attest_node.errors import GroundTruthUnavailable
from attest_node.models.task import Task


class GroundTruthOracle(ABC):
    @abstractmethod
    def is_owner(self, task: Task) -> bool:
        """Canonical answer for ``task``.

        Raises:
            GroundTruthUnavailable: If no answer can be produced.
        """


def _key(wallet: str, owner: str) -> tuple[str, str]:
    return wallet.lower(), owner.lower()


class StaticGroundTruth(GroundTruthOracle):
    """Answers from a fixed (wallet, owner) -> bool table.

    Addresses compare case-insensitively. ``default`` answers pairs missing
    from the table; with no default such pairs are unavailable.
    """

    def __init__(
        self,
        answers: Mapping[tuple[str, str], bool] | None = None,
        default: bool | None = None,
    ) -> None:
        self._answers = {_key(w, o): v for (w, o), v in (answers or {}).items()}
        self.default = default

    @classmethod
    def from_entries(
        cls, entries: Iterable[Mapping[str, object]], default: bool | None = None
    ) -> StaticGroundTruth:
        """Build from ``[{"wallet": ..., "owner": ..., "is_owner": ...}]``."""
        answers = {
            (str(e["wallet"]), str(e["owner"])): bool(e["is_owner"]) for e in entries
        }
        return cls(answers, default=default)

    def set_answer(self, wallet: str, owner: str, is_owner: bool) -> None:
        self._answers[_key(wallet, owner)] = is_owner

    def is_owner(self, task: Task) -> bool:
        answer = self._answers.get(_key(task.smart_wallet_address, task.owner_address))
        if answer is not None:
            return answer
        if self.default is not None:
            return self.default
        raise GroundTruthUnavailable(
            f"No ground truth for wallet {task.smart_wallet_address} / owner {task.owner_address}",
            wallet=task.smart_wallet_address,
            owner=task.owner_address,
        )


class CallableGroundTruth(GroundTruthOracle):
    """Delegates to ``fn(task) -> bool``."""

    def __init__(self, fn: Callable[[Task], bool]) -> None:
        self._fn = fn

    def is_owner(self, task: Task) -> bool:
        return bool(self._fn(task))
