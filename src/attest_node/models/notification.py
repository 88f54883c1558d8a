"""Notifications — the only channel off-chain participants learn of work."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    TASK_CREATED = "task_created"
    RESPONSE_RECORDED = "response_recorded"
    CHALLENGE_REJECTED = "challenge_rejected"
    CHALLENGE_UPHELD = "challenge_upheld"


class Notification(BaseModel):
    """A single emitted protocol event.

    ``seq`` is assigned by the state store when the notification is
    appended to its log; it is -1 until then.
    """

    event_type: NotificationType
    task_index: int
    block: int
    payload: dict[str, Any] = Field(default_factory=dict)
    seq: int = -1
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
