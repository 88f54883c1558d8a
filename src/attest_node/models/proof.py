"""Aggregate-signature proof and per-quorum stake totals."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class NonSignerStakesAndSignature(BaseModel):
    """Aggregate proof submitted with a response.

    Carries the BLS aggregate signature of every signing operator and the
    public keys of the quorum members that did not sign. Together with the
    stake registry snapshot at the task's creation block this is enough to
    rebuild both the signer set and the signed stake of every quorum.
    """

    model_config = ConfigDict(frozen=True)

    non_signer_pubkeys: tuple[str, ...] = ()  # hex, compressed G1
    signature: str  # hex, compressed G2


class QuorumStakeTotals(BaseModel):
    """Signed and total stake of a single quorum at a reference block."""

    model_config = ConfigDict(frozen=True)

    quorum_id: int
    signed_stake: int = Field(ge=0)
    total_stake: int = Field(ge=0)
