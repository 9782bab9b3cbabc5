"""
Capability interfaces the moderation core depends on.

The reconciler, the enforcer and the protections never talk to the network
directly; they receive an object implementing these protocols. The Matrix
client in :mod:`modwarden.matrix.client` is the production implementation and
tests pass ``AsyncMock`` doubles.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from modwarden.datatypes.action_datatypes import ActionData, ActionType


class MembershipMode(Enum):
    """How room membership is retrieved."""

    # Joined members only; every member is reported as ``join``.
    JOINED = "joined"
    # Full room state, including ``leave`` and ``ban`` memberships.
    FULL_STATE = "full_state"


@dataclass(frozen=True, slots=True)
class RoomMember:
    user_id: str
    membership: str


class MembershipProvider(Protocol):
    async def get_membership(self, room_id: str, mode: MembershipMode) -> List[RoomMember]: ...


class SanctionClient(Protocol):
    async def sanction(self, user_id: str, room_id: str, action: ActionType, reason: str) -> None: ...


class Redactor(Protocol):
    async def redact_user_messages(self, user_id: str, room_ids: Sequence[str]) -> List[str]: ...

    async def redact_event(self, room_id: str, event_id: str, reason: Optional[str] = None) -> str: ...


class Notifier(Protocol):
    async def send_notice(self, room_id: str, text: str, html: Optional[str] = None) -> str: ...


class ManagementRoster(Protocol):
    async def is_management_member(self, user_id: str) -> bool: ...


class ModerationClient(MembershipProvider, SanctionClient, Redactor, Notifier, ManagementRoster, Protocol):
    """Everything the warden needs from the chat client."""


class ActionLog(Protocol):
    async def log_action(self, action: ActionData) -> None: ...

    async def cleanup_old_actions(self, days_to_keep: int = 30) -> int: ...
