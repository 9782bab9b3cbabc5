"""
Action types and data structures for enforcement actions.

This module defines the ActionType enum and ActionData dataclass used to
describe every ban, kick and redaction the warden issues, whether it came
from list reconciliation or from a protection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ActionType(Enum):
    """Enumeration of supported enforcement actions."""

    BAN = "ban"
    KICK = "kick"
    REDACT = "redact"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ActionData:
    """Data structure representing an enforcement action.

    Attributes:
        room_id: Room the action applies to
        user_id: Matrix ID of the targeted user
        action: Type of action performed
        reason: Reason attached to the action
        source: Component that decided the action (e.g. ``ApplyBan``)
        event_ids: Redacted event IDs, for redact actions
        noop: True when the action was only logged because of no-op mode
    """
    room_id: str
    user_id: str
    action: ActionType
    reason: str
    source: str
    event_ids: List[str] = field(default_factory=list)
    noop: bool = False
