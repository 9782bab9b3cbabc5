"""
Pytest configuration and fixtures for modwarden tests.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modwarden.datatypes.action_datatypes import ActionType  # noqa: E402
from modwarden.moderation.capabilities import MembershipMode, RoomMember  # noqa: E402


class FakeMatrixClient:
    """In-memory stand-in for the Matrix client, recording every call in order."""

    def __init__(self) -> None:
        self.memberships: Dict[str, List[RoomMember]] = {}
        self.room_states: Dict[str, List[Dict[str, Any]]] = {}
        self.membership_failures: Dict[str, Exception] = {}
        self.sanction_failures: Dict[str, Exception] = {}
        self.managers: set[str] = set()
        self.calls: List[tuple] = []

    def set_members(self, room_id: str, *members: tuple[str, str]) -> None:
        self.memberships[room_id] = [RoomMember(user_id, membership) for user_id, membership in members]

    async def get_membership(self, room_id: str, mode: MembershipMode) -> List[RoomMember]:
        self.calls.append(("get_membership", room_id, mode))
        if room_id in self.membership_failures:
            raise self.membership_failures[room_id]
        members = self.memberships.get(room_id, [])
        if mode is MembershipMode.JOINED:
            return [member for member in members if member.membership == "join"]
        return list(members)

    async def get_room_state(self, room_id: str) -> List[Dict[str, Any]]:
        self.calls.append(("get_room_state", room_id))
        return list(self.room_states.get(room_id, []))

    async def sanction(self, user_id: str, room_id: str, action: ActionType, reason: str) -> None:
        if room_id in self.sanction_failures:
            raise self.sanction_failures[room_id]
        self.calls.append(("sanction", user_id, room_id, action, reason))
        new_membership = "ban" if action is ActionType.BAN else "leave"
        self.memberships[room_id] = [
            RoomMember(member.user_id, new_membership) if member.user_id == user_id else member
            for member in self.memberships.get(room_id, [])
        ]

    async def redact_user_messages(self, user_id: str, room_ids: Sequence[str]) -> List[str]:
        self.calls.append(("redact_user_messages", user_id, tuple(room_ids)))
        return [f"$msg-of-{user_id}"]

    async def redact_event(self, room_id: str, event_id: str, reason: Optional[str] = None) -> str:
        self.calls.append(("redact_event", room_id, event_id, reason))
        return f"$redaction-{event_id}"

    async def send_notice(self, room_id: str, text: str, html: Optional[str] = None) -> str:
        self.calls.append(("send_notice", room_id, text, html))
        return "$notice"

    async def is_management_member(self, user_id: str) -> bool:
        return user_id in self.managers

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance_ms(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture()
def fake_client() -> FakeMatrixClient:
    return FakeMatrixClient()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
