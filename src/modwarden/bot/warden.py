"""
The warden: wires policy lists, reconciliation and protections to a client.

:class:`Warden` owns the subscribed :class:`BanList` objects, refreshes them
from their policy rooms, runs reconciliation passes over the protected rooms
(at startup, periodically and when a list changes) and dispatches live room
events to the :class:`ProtectionEngine`.
"""

from __future__ import annotations

import asyncio
import html
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from modwarden.configuration.app_configuration import AppConfig
from modwarden.matrix.client import MatrixClient
from modwarden.moderation.ban_reconciler import BanReconciler, ReconcileResult
from modwarden.moderation.capabilities import ActionLog, MembershipMode
from modwarden.moderation.enforcement import Enforcer
from modwarden.moderation.errors import RoomUpdateError
from modwarden.policy.ban_list import BanList, ChangeType, find_list
from modwarden.policy.list_rule import ALL_RULE_TYPES, RULE_USER
from modwarden.protections.base import ProtectionContext
from modwarden.protections.protections import ProtectionEngine
from modwarden.util.logger import get_logger

logger = get_logger("warden")


def build_lists(ban_lists: Mapping[str, str]) -> List[BanList]:
    """Build one list per configured shortcode, skipping case-insensitive duplicates."""
    lists: List[BanList] = []
    seen: Dict[str, str] = {}
    for shortcode, room_id in ban_lists.items():
        key = shortcode.lower()
        if key in seen:
            logger.warning("[WARDEN] Ignoring list %s (%s): shortcode already used by %s", shortcode, room_id, seen[key])
            continue
        seen[key] = shortcode
        lists.append(BanList(room_id=room_id, shortcode=shortcode))
    return lists


def format_room_errors(errors: Sequence[RoomUpdateError]) -> Tuple[str, str]:
    """Render reconciliation errors as a plain-text and an HTML notice."""
    header = f"There were {len(errors)} error(s) updating protected rooms."
    text_lines = [header] + [f"{error.room_id} ({error.error_kind}): {error.error_message}" for error in errors]
    html_items = "".join(
        f"<li>{html.escape(error.room_id)} ({error.error_kind}): {html.escape(error.error_message)}</li>"
        for error in errors
    )
    return "\n".join(text_lines), f'<font color="#ff0000"><b>{html.escape(header)}</b></font><ul>{html_items}</ul>'


class Warden:
    """Runtime coordinator for one bot account."""

    def __init__(self, config: AppConfig, client: MatrixClient, action_log: Optional[ActionLog] = None) -> None:
        self.config = config
        self.client = client
        self.action_log = action_log
        self.lists: List[BanList] = build_lists(config.ban_lists)
        self.enforcer = Enforcer(client, config.management_room, noop=config.noop, action_log=action_log)
        self.reconciler = BanReconciler(
            client,
            self.enforcer,
            membership_mode=MembershipMode.JOINED if config.faster_membership_checks else MembershipMode.FULL_STATE,
            ignore_left_users=config.ignore_left_users,
            redact_reasons=config.automatically_redact_for_reasons,
        )
        self.engine = ProtectionEngine(ProtectionContext(self.enforcer, client), config.protections)
        self.engine.enable_configured()
        self._reconcile_lock = asyncio.Lock()
        self._periodic_task: asyncio.Task[None] | None = None

    @property
    def protected_rooms(self) -> List[str]:
        return self.config.protected_rooms

    def get_list(self, shortcode: str) -> Optional[BanList]:
        return find_list(self.lists, shortcode)

    def _list_for_room(self, room_id: str) -> Optional[BanList]:
        for ban_list in self.lists:
            if ban_list.room_id == room_id:
                return ban_list
        return None

    async def refresh_lists(self) -> None:
        """Re-read every list's policy room state. A failing list keeps its old rules."""
        for ban_list in self.lists:
            try:
                state = await self.client.get_room_state(ban_list.room_id)
            except Exception as exc:
                logger.error("[WARDEN] Could not refresh list %s (%s): %s", ban_list.shortcode, ban_list.room_id, exc)
                continue
            changes = ban_list.update_from_state(state)
            logger.info("[WARDEN] List %s has %d rule(s), %d change(s)", ban_list.shortcode, len(ban_list.all_rules), len(changes))

    async def apply_bans(self) -> ReconcileResult:
        """Run one reconciliation pass over every protected room."""
        async with self._reconcile_lock:
            result = await self.reconciler.reconcile(self.lists, self.protected_rooms)
        if result.errors:
            text, html_body = format_room_errors(result.errors)
            await self.enforcer.notify(text, html_body)
        return result

    async def sync_lists_and_apply(self) -> ReconcileResult:
        await self.refresh_lists()
        return await self.apply_bans()

    async def kick_once(self, glob: str, reason: str = "") -> int:
        return await self.reconciler.kick_once(glob, reason, self.protected_rooms)

    async def _apply_rule_event(self, room_id: str, event: Mapping[str, Any]) -> bool:
        """Fold a policy rule state event into its list. Returns False if it is not one."""
        ban_list = self._list_for_room(room_id)
        if ban_list is None or event.get("type") not in ALL_RULE_TYPES or "state_key" not in event:
            return False
        changes = ban_list.update_from_state([event])
        if any(change.rule.kind == RULE_USER and change.change_type is not ChangeType.REMOVED for change in changes):
            logger.info("[WARDEN] User rules changed in %s; applying bans", ban_list.shortcode)
            await self.apply_bans()
        return True

    async def handle_event(self, room_id: str, event: Mapping[str, Any]) -> None:
        """Entry point for every timeline event delivered by sync."""
        if await self._apply_rule_event(room_id, event):
            return
        if room_id in self.protected_rooms:
            await self.engine.handle_event(room_id, event)

    async def handle_state_event(self, room_id: str, event: Mapping[str, Any]) -> None:
        """State delivered outside the timeline (limited syncs). Only policy rules are used."""
        await self._apply_rule_event(room_id, event)

    async def prune_action_log(self) -> int:
        """Delete action log entries older than the configured retention."""
        days = self.config.action_retention_days
        if self.action_log is None or days <= 0:
            return 0
        try:
            return await self.action_log.cleanup_old_actions(days)
        except Exception as exc:
            logger.error("[WARDEN] Action log cleanup failed: %s", exc)
            return 0

    async def run_periodic_reconcile(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sync_lists_and_apply()
                await self.prune_action_log()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[WARDEN] Periodic reconciliation failed")

    async def start(self) -> None:
        """Apply lists once, then follow sync until stopped."""
        await self.sync_lists_and_apply()
        self._periodic_task = asyncio.create_task(
            self.run_periodic_reconcile(self.config.reconcile_interval_seconds), name="modwarden-reconcile"
        )
        logger.info("[WARDEN] Protecting %d room(s) with %d list(s)", len(self.protected_rooms), len(self.lists))
        await self.client.sync_forever(
            self.handle_event, self.config.sync_timeout_ms, on_state=self.handle_state_event
        )

    async def stop(self) -> None:
        self.client.stop()
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
            self._periodic_task = None
