"""Stake quorum evaluation.

A quorum passes when ``signed_stake * 100 >= total_stake * threshold``.
Integer arithmetic, no rounding tolerance: the boundary case passes, one
unit of stake below it fails.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from attest_node.errors import QuorumThresholdNotMet
from attest_node.models.proof import QuorumStakeTotals

logger = logging.getLogger(__name__)

THRESHOLD_DENOMINATOR = 100


def meets_threshold(totals: QuorumStakeTotals, threshold_percentage: int) -> bool:
    return (
        totals.signed_stake * THRESHOLD_DENOMINATOR
        >= totals.total_stake * threshold_percentage
    )


def check_quorum_thresholds(
    task_index: int,
    quorum_ids: Iterable[int],
    totals: Mapping[int, QuorumStakeTotals],
    threshold_percentage: int,
) -> None:
    """Require every quorum of the task to meet the threshold.

    Raises:
        QuorumThresholdNotMet: Naming the first quorum that falls short.
    """
    for quorum_id in quorum_ids:
        t = totals[quorum_id]
        if not meets_threshold(t, threshold_percentage):
            logger.warning(
                "Task %d: quorum %d below threshold (signed=%d total=%d need=%d%%)",
                task_index, quorum_id, t.signed_stake, t.total_stake, threshold_percentage,
            )
            raise QuorumThresholdNotMet(
                f"Quorum {quorum_id} signed {t.signed_stake} of {t.total_stake}, "
                f"below {threshold_percentage}%",
                task_index=task_index,
                quorum_id=quorum_id,
                signed_stake=t.signed_stake,
                total_stake=t.total_stake,
                threshold_percentage=threshold_percentage,
            )
