"""Task and response models.

A Task is immutable once created; the registry keeps only its digest, so
callers resupply the exact struct on every later reference. The
TaskResponse is the payload operators sign. TaskResponseMetadata is filled
in at commit time and is never signed, since it depends on who did not sign.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

MAX_TASK_INDEX = 2**32 - 1


class TaskState(str, Enum):
    """Lifecycle state of a task, derived from committed state and the clock."""

    CREATED = "created"
    DEAD = "dead"
    RESPONDED = "responded"
    INVALIDATED = "invalidated"
    FINAL = "final"


class Task(BaseModel):
    """An ownership question put to the operator set."""

    model_config = ConfigDict(frozen=True)

    smart_wallet_address: str
    owner_address: str
    task_created_block: int = Field(ge=0)
    quorum_ids: tuple[int, ...] = ()
    quorum_threshold_percentage: int = 0


class TaskResponse(BaseModel):
    """The answer operators sign: does the owner own the wallet?"""

    model_config = ConfigDict(frozen=True)

    reference_task_index: int = Field(ge=0, le=MAX_TASK_INDEX)
    is_owner: bool


class TaskResponseMetadata(BaseModel):
    """Commit-time data recorded beside a response."""

    model_config = ConfigDict(frozen=True)

    task_responsed_block: int = Field(ge=0)
    hash_of_non_signers: str
