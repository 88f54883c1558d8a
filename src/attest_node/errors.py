"""Error taxonomy for the attestation oracle.

Every protocol failure is a synchronous rejection of the triggering call.
Errors carry the task index and a context dict (expected vs. supplied
digests, offending quorum, block numbers) so callers can diagnose a
rejection without inspecting node state.
"""

from __future__ import annotations

from typing import Any


class OracleError(Exception):
    """Base class for protocol rejections."""

    def __init__(
        self,
        message: str,
        task_index: int | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.task_index = task_index
        self.context = context

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.name,
            "detail": str(self),
            "task_index": self.task_index,
            "context": self.context,
        }


class TaskMismatch(OracleError):
    """Supplied task does not hash to the digest recorded at creation."""


class DuplicateResponse(OracleError):
    """A response has already been committed for this task."""


class ResponseWindowExpired(OracleError):
    """Response arrived after task_created_block + response window."""


class QuorumThresholdNotMet(OracleError):
    """Signed stake is below the threshold for at least one quorum."""


class InvalidAggregateSignature(OracleError):
    """Aggregate signature does not verify for the claimed signer set."""


class NoResponseToChallenge(OracleError):
    """No committed response exists for the challenged task."""


class ResponseMetadataMismatch(OracleError):
    """Supplied response + metadata do not hash to the committed digest."""


class AlreadySuccessfullyChallenged(OracleError):
    """The task's response has already been invalidated."""


class ChallengeWindowExpired(OracleError):
    """Challenge arrived after task_responsed_block + challenge window."""


class NonSignerSetMismatch(OracleError):
    """Claimed non-signers do not match the committed non-signer digest."""


class UnknownTask(OracleError):
    """No task has been created at this index."""


class UnregisteredOperator(OracleError):
    """Signing key does not belong to a registered operator."""


class GroundTruthUnavailable(OracleError):
    """The ground-truth source has no answer for the challenged task."""


class ConfigError(Exception):
    """Raised when node configuration is invalid."""


class ClockError(Exception):
    """Raised when the logical clock would move backwards."""


class RegistryError(Exception):
    """Raised when a stake registry update is invalid."""


class StoreError(Exception):
    """Raised when a state store write violates an append-only invariant."""
