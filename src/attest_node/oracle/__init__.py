"""Oracle core — task registry, response aggregation and challenges."""

from attest_node.oracle.challenge_resolver import ChallengeOutcome, ChallengeResult
from attest_node.oracle.ground_truth import (
    CallableGroundTruth,
    GroundTruthOracle,
    StaticGroundTruth,
)
from attest_node.oracle.single_signer import SingleSignerTaskManager
from attest_node.oracle.task_manager import TaskManager

__all__ = [
    "CallableGroundTruth",
    "ChallengeOutcome",
    "ChallengeResult",
    "GroundTruthOracle",
    "SingleSignerTaskManager",
    "StaticGroundTruth",
    "TaskManager",
]
