"""
Enforcement primitives shared by list reconciliation and protections.

:class:`Enforcer` wraps the chat client's ban/kick/redact calls with the
warden's no-op mode, operator reporting and the action log. In no-op mode
every mutating call is replaced by a warning so a dry run follows exactly the
same control flow as a live one.
"""

from __future__ import annotations

import html
import logging
from typing import List, Optional, Sequence

from modwarden.datatypes.action_datatypes import ActionData, ActionType
from modwarden.moderation.capabilities import ActionLog, ModerationClient
from modwarden.util.logger import get_logger

logger = get_logger("enforcement")


class Enforcer:
    """Issues sanctions and redactions on behalf of the warden.

    Parameters
    ----------
    client:
        Chat client implementing :class:`ModerationClient`.
    management_room:
        Room that receives operator-facing reports. Empty disables reports.
    noop:
        When True, mutating calls are only logged.
    action_log:
        Optional sink recording every action (performed or skipped).
    """

    def __init__(
        self,
        client: ModerationClient,
        management_room: str = "",
        *,
        noop: bool = False,
        action_log: Optional[ActionLog] = None,
    ) -> None:
        self.client = client
        self.management_room = management_room
        self.noop = noop
        self.action_log = action_log

    async def report(self, level: int, source: str, text: str) -> None:
        """Log ``text`` and, at WARNING or above, post it to the management room."""
        logger.log(level, "[%s] %s", source, text)
        if level < logging.WARNING or not self.management_room:
            return
        try:
            await self.client.send_notice(self.management_room, f"[{source}] {text}")
        except Exception as exc:
            logger.error("[ENFORCEMENT] Could not report to %s: %s", self.management_room, exc)

    async def notify(self, text: str, html_body: Optional[str] = None) -> None:
        """Send a summary notice to the management room. A failed send is logged, not raised."""
        if not self.management_room:
            logger.info("[ENFORCEMENT] %s", text)
            return
        try:
            await self.client.send_notice(self.management_room, text, html_body)
        except Exception as exc:
            logger.error("[ENFORCEMENT] Could not send notice to %s: %s (%s)", self.management_room, exc, text)

    async def _record(self, action: ActionData) -> None:
        if self.action_log is None:
            return
        try:
            await self.action_log.log_action(action)
        except Exception as exc:
            logger.error("[ENFORCEMENT] Failed to record %s of %s in %s: %s", action.action, action.user_id, action.room_id, exc)

    async def sanction(self, user_id: str, room_id: str, action: ActionType, reason: str, source: str) -> None:
        """Ban or kick ``user_id`` in ``room_id``."""
        if action not in (ActionType.BAN, ActionType.KICK):
            raise ValueError(f"{action} is not a sanction")

        if self.noop:
            await self.report(
                logging.WARNING,
                source,
                f"Tried to {action.value} {user_id} in {room_id} but the warden is running in no-op mode",
            )
        else:
            await self.client.sanction(user_id, room_id, action, reason)

        await self._record(ActionData(room_id, user_id, action, reason, source, noop=self.noop))

    async def ban(self, user_id: str, room_id: str, reason: str, source: str) -> None:
        await self.sanction(user_id, room_id, ActionType.BAN, reason, source)

    async def kick(self, user_id: str, room_id: str, reason: str, source: str) -> None:
        await self.sanction(user_id, room_id, ActionType.KICK, reason, source)

    async def redact_event(self, room_id: str, event_id: str, sender: str, reason: str, source: str) -> None:
        if self.noop:
            await self.report(
                logging.WARNING,
                source,
                f"Tried to redact {event_id} in {room_id} but the warden is running in no-op mode",
            )
        else:
            await self.client.redact_event(room_id, event_id, reason)

        await self._record(ActionData(room_id, sender, ActionType.REDACT, reason, source, [event_id], noop=self.noop))

    async def redact_user_messages(self, user_id: str, room_ids: Sequence[str], reason: str, source: str) -> List[str]:
        """Redact the recent messages of ``user_id`` in every room of ``room_ids``."""
        if self.noop:
            await self.report(
                logging.WARNING,
                source,
                f"Tried to redact messages for {user_id} in {', '.join(room_ids)} but the warden is running in no-op mode",
            )
            for room_id in room_ids:
                await self._record(ActionData(room_id, user_id, ActionType.REDACT, reason, source, noop=True))
            return []

        redacted: List[str] = []
        for room_id in room_ids:
            event_ids = await self.client.redact_user_messages(user_id, [room_id])
            redacted.extend(event_ids)
            await self._record(ActionData(room_id, user_id, ActionType.REDACT, reason, source, list(event_ids)))
        return redacted


def summary_notice(text: str) -> str:
    """Wrap a summary line in the green bold HTML used for reports."""
    return f'<font color="#00cc00"><b>{html.escape(text)}</b></font>'
