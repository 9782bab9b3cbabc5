"""In-memory view of a policy list room.

A :class:`BanList` mirrors the rule state events of one policy room. Each rule
lives in a state event of a rule type with state key ``rule:<entity>`` and
content ``{"entity", "recommendation", "reason"}``; an empty content means the
rule was removed. The warden only ever reads the resulting rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from modwarden.policy.list_rule import (
    ALL_RULE_TYPES,
    RULE_ROOM,
    RULE_SERVER,
    RULE_USER,
    ListRule,
    rule_type_to_stable,
)
from modwarden.policy.recommendation import RECOMMENDATION_KICK, recommendation_to_stable
from modwarden.util.logger import get_logger

logger = get_logger("ban_list")

SHORTCODE_EVENT_TYPE = "org.matrix.mjolnir.shortcode"


class ChangeType(Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class ListRuleChange:
    change_type: ChangeType
    state_key: str
    rule: ListRule
    previous: Optional[ListRule] = None


class StateWriter(Protocol):
    async def send_state_event(self, room_id: str, event_type: str, state_key: str, content: Dict[str, Any]) -> str: ...


def rule_state_key(entity: str) -> str:
    return f"rule:{entity}"


def build_rule_content(entity: str, recommendation: Optional[str], reason: str = "") -> Dict[str, str]:
    """Build the state content for a rule; no recommendation yields ``{}`` (delete)."""
    if not recommendation:
        return {}
    return {"entity": entity, "recommendation": recommendation, "reason": reason}


class BanList:
    """Rules of a single policy room, grouped by rule kind."""

    def __init__(self, room_id: str, shortcode: str = "") -> None:
        self.room_id = room_id
        self.shortcode = shortcode
        self._rules: Dict[Tuple[str, str], ListRule] = {}

    def __repr__(self) -> str:
        return f"BanList(room_id={self.room_id!r}, shortcode={self.shortcode!r}, rules={len(self._rules)})"

    def rules_of_kind(self, kind: str) -> List[ListRule]:
        return [rule for (rule_kind, _), rule in self._rules.items() if rule_kind == kind]

    @property
    def user_rules(self) -> List[ListRule]:
        return self.rules_of_kind(RULE_USER)

    @property
    def room_rules(self) -> List[ListRule]:
        return self.rules_of_kind(RULE_ROOM)

    @property
    def server_rules(self) -> List[ListRule]:
        return self.rules_of_kind(RULE_SERVER)

    @property
    def all_rules(self) -> List[ListRule]:
        return list(self._rules.values())

    def set_rules(self, rules: Iterable[ListRule]) -> None:
        """Replace every rule at once, keyed by kind and entity."""
        self._rules = {(rule.kind, rule_state_key(rule.entity)): rule for rule in rules}

    def update_from_state(self, state_events: Sequence[Mapping[str, Any]]) -> List[ListRuleChange]:
        """Apply policy-room state events and return what changed.

        Non-rule events are ignored, except the shortcode event which renames
        the list. A rule event whose content lacks an entity or a
        recommendation removes whatever rule lived at that state key.
        """
        changes: List[ListRuleChange] = []
        for event in state_events:
            event_type = event.get("type")
            content = event.get("content") or {}

            if event_type == SHORTCODE_EVENT_TYPE and event.get("state_key") == "":
                shortcode = content.get("shortcode")
                if isinstance(shortcode, str) and shortcode:
                    self.shortcode = shortcode
                continue

            if event_type not in ALL_RULE_TYPES:
                continue

            state_key = event.get("state_key")
            kind = rule_type_to_stable(event_type)
            if not isinstance(state_key, str) or kind is None:
                continue

            key = (kind, state_key)
            previous = self._rules.get(key)
            entity = content.get("entity")
            recommendation = content.get("recommendation")

            if not entity or not recommendation:
                if previous is not None:
                    del self._rules[key]
                    changes.append(ListRuleChange(ChangeType.REMOVED, state_key, previous))
                continue

            rule = ListRule(
                entity=str(entity),
                action=str(recommendation),
                reason=str(content.get("reason") or ""),
                kind=kind,
            )
            if previous == rule:
                continue

            self._rules[key] = rule
            change_type = ChangeType.ADDED if previous is None else ChangeType.MODIFIED
            changes.append(ListRuleChange(change_type, state_key, rule, previous))

        if changes:
            logger.debug("[BAN LIST] %s (%s) changed: %d rule update(s)", self.shortcode, self.room_id, len(changes))
        return changes


def find_list(lists: Iterable[BanList], shortcode: str) -> Optional[BanList]:
    """Look a list up by shortcode, ignoring case."""
    wanted = shortcode.lower()
    for ban_list in lists:
        if ban_list.shortcode.lower() == wanted:
            return ban_list
    return None


async def add_kick_rule(client: StateWriter, ban_list: BanList, entity: str, reason: str = "") -> str:
    """Publish a kick rule for ``entity`` into the list's policy room."""
    content = build_rule_content(entity, recommendation_to_stable(RECOMMENDATION_KICK, unstable=True), reason)
    logger.info("[BAN LIST] Adding kick rule for %s to %s", entity, ban_list.shortcode)
    return await client.send_state_event(ban_list.room_id, RULE_USER, rule_state_key(entity), content)


async def remove_kick_rule(client: StateWriter, ban_list: BanList, entity: str) -> str:
    """Clear the user rule for ``entity`` in the list's policy room."""
    logger.info("[BAN LIST] Removing kick rule for %s from %s", entity, ban_list.shortcode)
    return await client.send_state_event(ban_list.room_id, RULE_USER, rule_state_key(entity), build_rule_content(entity, None))
