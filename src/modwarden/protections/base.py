from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from modwarden.datatypes.event_datatypes import AnyRoomEvent
from modwarden.moderation.capabilities import ManagementRoster
from modwarden.moderation.enforcement import Enforcer


@dataclass(slots=True)
class ProtectionContext:
    """What a protection may use while handling an event."""

    enforcer: Enforcer
    roster: ManagementRoster

    async def is_management_member(self, user_id: str) -> bool:
        return await self.roster.is_management_member(user_id)


class Protection(ABC):
    """A stateful, independent real-time event handler.

    Each instance owns its state; nothing is shared between protections.
    Within one room events arrive in order, but rooms interleave.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def handle_event(self, context: ProtectionContext, room_id: str, event: AnyRoomEvent) -> None:
        ...
