from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Tuple

from modwarden.datatypes.event_datatypes import AnyRoomEvent, MembershipEvent, MessageEvent
from modwarden.protections.base import Protection, ProtectionContext
from modwarden.protections.media import extract_media_info
from modwarden.util.logger import get_logger

logger = get_logger("first_message_is_image")

KICK_REASON = "[automated] first message is image/video protection"
REDACT_REASON = "[automated] first message is image/media protection"

DEFAULT_MAX_PENDING = 10000


class PendingJoins:
    """Users who joined a room and have not posted anything since.

    Keyed by ``(room_id, user_id)`` in join order; once ``max_pending`` is
    exceeded the oldest joins are forgotten.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.max_pending = max_pending
        self._pending: OrderedDict[Tuple[str, str], None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._pending

    def add(self, room_id: str, user_id: str) -> None:
        key = (room_id, user_id)
        self._pending[key] = None
        self._pending.move_to_end(key)
        while len(self._pending) > self.max_pending:
            self._pending.popitem(last=False)

    def pop(self, room_id: str, user_id: str) -> bool:
        """Forget the user; return whether they were pending."""
        key = (room_id, user_id)
        if key not in self._pending:
            return False
        del self._pending[key]
        return True


class FirstMessageIsImage(Protection):
    """Kick users whose first event after joining is an image or video."""

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.just_joined = PendingJoins(max_pending)

    @property
    def name(self) -> str:
        return "FirstMessageIsImageProtection"

    async def handle_event(self, context: ProtectionContext, room_id: str, event: AnyRoomEvent) -> None:
        if isinstance(event, MembershipEvent):
            if event.is_true_join:
                self.just_joined.add(room_id, event.state_key)
                logger.info("[FIRST MESSAGE IS IMAGE] Tracking %s in %s as just joined", event.state_key, room_id)
            # Membership spam is not this protection's business.
            return

        sender = event.sender
        if not self.just_joined.pop(room_id, sender):
            return
        logger.info("[FIRST MESSAGE IS IMAGE] %s is no longer considered suspect in %s", sender, room_id)

        if not isinstance(event, MessageEvent) or not event.is_media:
            return

        media = extract_media_info(event.content)
        await context.enforcer.report(
            logging.WARNING,
            self.name,
            f"Kicking {sender} in {room_id} for posting an image/video as the first thing after joining "
            f"({media.describe()})",
        )
        await context.enforcer.kick(sender, room_id, KICK_REASON, self.name)
        await context.enforcer.redact_event(room_id, event.event_id, sender, REDACT_REASON, self.name)
