from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from modwarden.policy.matching import MatrixGlob
from modwarden.policy.recommendation import Recommendation, resolve_recommendation

RULE_USER = "m.policy.rule.user"
RULE_ROOM = "m.policy.rule.room"
RULE_SERVER = "m.policy.rule.server"
USER_RULE_TYPES = [RULE_USER, "m.room.rule.user", "org.matrix.mjolnir.rule.user"]
ROOM_RULE_TYPES = [RULE_ROOM, "m.room.rule.room", "org.matrix.mjolnir.rule.room"]
SERVER_RULE_TYPES = [RULE_SERVER, "m.room.rule.server", "org.matrix.mjolnir.rule.server"]
ALL_RULE_TYPES = [*USER_RULE_TYPES, *ROOM_RULE_TYPES, *SERVER_RULE_TYPES]


def rule_type_to_stable(rule_type: Optional[str]) -> Optional[str]:
    if rule_type in USER_RULE_TYPES:
        return RULE_USER
    if rule_type in ROOM_RULE_TYPES:
        return RULE_ROOM
    if rule_type in SERVER_RULE_TYPES:
        return RULE_SERVER
    return None


@dataclass(frozen=True, slots=True)
class ListRule:
    """A single policy rule: who it targets, what to do, and why.

    Attributes:
        entity: Glob over user, room or server identifiers.
        action: Raw recommendation identifier as found in the list.
        reason: Free-text reason; empty when the rule gave none.
        kind: Stable rule type (``m.policy.rule.user`` etc.).
    """

    entity: str
    action: str
    reason: str = ""
    kind: str = RULE_USER
    _glob: MatrixGlob = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_glob", MatrixGlob(self.entity))

    @property
    def recommendation(self) -> Recommendation:
        return resolve_recommendation(self.action) or Recommendation.UNKNOWN

    def is_match(self, entity: str) -> bool:
        return self._glob.test(entity)
