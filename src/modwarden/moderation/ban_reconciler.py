"""
Apply policy list rules to the membership of protected rooms.

One reconciliation pass walks every target room in turn, fetches its current
membership and sanctions each member matched by a ban or kick rule. Rooms are
processed strictly one after another; a failure in one room is recorded as a
:class:`RoomUpdateError` and the pass moves on to the next room.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from modwarden.datatypes.action_datatypes import ActionType
from modwarden.moderation.capabilities import MembershipMode, MembershipProvider, RoomMember
from modwarden.moderation.enforcement import Enforcer, summary_notice
from modwarden.moderation.errors import RoomUpdateError, room_update_error
from modwarden.policy.ban_list import BanList
from modwarden.policy.list_rule import ListRule
from modwarden.policy.matching import MatrixGlob
from modwarden.policy.recommendation import Recommendation
from modwarden.util.logger import get_logger

logger = get_logger("ban_reconciler")

SOURCE = "ApplyBan"

_SANCTIONS = {
    Recommendation.BAN: ActionType.BAN,
    Recommendation.KICK: ActionType.KICK,
}


@dataclass
class ReconcileResult:
    errors: List[RoomUpdateError]
    bans_applied: int = 0
    kicks_applied: int = 0


def matching_user_rules(lists: Iterable[BanList], user_id: str) -> Iterator[Tuple[BanList, ListRule]]:
    """Yield every user rule matching ``user_id``, lists in order, rules in order."""
    for ban_list, rule in ((ban_list, rule) for ban_list in lists for rule in ban_list.user_rules):
        if rule.is_match(user_id):
            yield ban_list, rule


def first_sanction(lists: Iterable[BanList], user_id: str) -> Optional[ListRule]:
    """Return the first matching ban or kick rule for ``user_id``.

    Rules with an unknown recommendation are logged and skipped.
    """
    for ban_list, rule in matching_user_rules(lists, user_id):
        if rule.recommendation in _SANCTIONS:
            return rule
        logger.warning(
            "[APPLY BAN] Unknown recommended action for user rule '%s' in %s: %s",
            rule.entity,
            ban_list.shortcode or ban_list.room_id,
            rule.action,
        )
    return None


class BanReconciler:
    """Computes and issues the sanctions a set of lists require.

    Parameters
    ----------
    client:
        Source of room membership.
    enforcer:
        Issues the bans, kicks and redactions (honors no-op mode).
    membership_mode:
        Joined-only or full-state membership retrieval.
    ignore_left_users:
        Skip members whose membership is ``leave``.
    redact_reasons:
        Globs; a rule whose lower-cased reason matches one also redacts the
        member's messages before the sanction.
    """

    def __init__(
        self,
        client: MembershipProvider,
        enforcer: Enforcer,
        *,
        membership_mode: MembershipMode = MembershipMode.FULL_STATE,
        ignore_left_users: bool = False,
        redact_reasons: Sequence[str] = (),
    ) -> None:
        self.client = client
        self.enforcer = enforcer
        self.membership_mode = membership_mode
        self.ignore_left_users = ignore_left_users
        self.redact_globs = [MatrixGlob(reason.lower()) for reason in redact_reasons]

    def should_redact(self, reason: str) -> bool:
        lowered = reason.lower()
        return any(glob.test(lowered) for glob in self.redact_globs)

    def _skip(self, member: RoomMember) -> bool:
        if member.membership == "ban":
            return True
        return self.ignore_left_users and member.membership == "leave"

    async def apply_rules(self, lists: Sequence[BanList], room_ids: Sequence[str]) -> List[RoomUpdateError]:
        """Apply every user rule of ``lists`` to every room in ``room_ids``."""
        return (await self.reconcile(lists, room_ids)).errors

    async def reconcile(self, lists: Sequence[BanList], room_ids: Sequence[str]) -> ReconcileResult:
        result = ReconcileResult(errors=[])

        for room_id in room_ids:
            try:
                await self._apply_in_room(lists, room_id, result)
            except Exception as exc:
                error = room_update_error(room_id, exc)
                logger.warning("[APPLY BAN] Failed to update %s (%s): %s", room_id, error.error_kind, error.error_message)
                result.errors.append(error)

        await self._report_summary(result)
        return result

    async def _apply_in_room(self, lists: Sequence[BanList], room_id: str, result: ReconcileResult) -> None:
        logger.debug("[APPLY BAN] Updating member bans in %s", room_id)
        members = await self.client.get_membership(room_id, self.membership_mode)

        for member in members:
            if self._skip(member):
                continue

            rule = first_sanction(lists, member.user_id)
            if rule is None:
                continue

            action = _SANCTIONS[rule.recommendation]
            await self.enforcer.report(
                logging.DEBUG,
                SOURCE,
                f"{'Banning' if action is ActionType.BAN else 'Kicking'} {member.user_id} in {room_id} for: {rule.reason}",
            )

            # Redactions always go out before the sanction itself.
            if self.should_redact(rule.reason):
                await self.enforcer.redact_user_messages(member.user_id, [room_id], rule.reason, SOURCE)

            await self.enforcer.sanction(member.user_id, room_id, action, rule.reason, SOURCE)

            if action is ActionType.BAN:
                result.bans_applied += 1
            else:
                result.kicks_applied += 1

    async def _report_summary(self, result: ReconcileResult) -> None:
        parts = []
        if result.bans_applied:
            parts.append(f"Banned {result.bans_applied} people")
        if result.kicks_applied:
            parts.append(f"Kicked {result.kicks_applied} people")
        if not parts:
            return
        text = ", ".join(parts)
        await self.enforcer.notify(text, summary_notice(text))

    async def kick_once(self, glob: str, reason: str, room_ids: Sequence[str]) -> int:
        """Kick every joined member matching ``glob`` without writing a rule.

        Returns the number of kicks issued across all rooms.
        """
        pattern = MatrixGlob(glob)
        logger.info("[KICK ONCE] Kicking users that match glob: %s", glob)
        total = 0

        for room_id in room_ids:
            members = await self.client.get_membership(room_id, MembershipMode.JOINED)
            logger.debug("[KICK ONCE] Found %d joined user(s) in %s", len(members), room_id)

            kicks_applied = 0
            for member in members:
                if not pattern.test(member.user_id):
                    continue
                await self.enforcer.kick(member.user_id, room_id, reason, "KickOnce")
                kicks_applied += 1

            if kicks_applied:
                text = f"Kicked {kicks_applied} user(s) in {room_id}"
                await self.enforcer.notify(text, summary_notice(text))
            total += kicks_applied

        return total
