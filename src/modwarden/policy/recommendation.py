"""Recommendation identifiers carried by policy rules.

Rules written by older tooling use unstable ``org.matrix.mjolnir.*`` names for
the same verdicts as the stable ``m.ban`` / ``m.kick`` identifiers. Everything
downstream works with the :class:`Recommendation` enum instead.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

RECOMMENDATION_BAN = "m.ban"
RECOMMENDATION_KICK = "m.kick"
RECOMMENDATION_BAN_TYPES = [RECOMMENDATION_BAN, "org.matrix.mjolnir.ban"]
RECOMMENDATION_KICK_TYPES = [RECOMMENDATION_KICK, "org.matrix.mjolnir.kick"]


class Recommendation(Enum):
    """Verdict attached to a rule. ``UNKNOWN`` is valid but never enforced."""

    BAN = "ban"
    KICK = "kick"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


def resolve_recommendation(raw: Optional[str]) -> Optional[Recommendation]:
    """Map a stable or legacy identifier to BAN/KICK, or None if unrecognized."""
    if raw in RECOMMENDATION_BAN_TYPES:
        return Recommendation.BAN
    if raw in RECOMMENDATION_KICK_TYPES:
        return Recommendation.KICK
    return None


def recommendation_to_stable(raw: Optional[str], unstable: bool = False) -> Optional[str]:
    """Normalize ``raw`` to a single identifier of its equivalence class.

    With ``unstable=True`` the legacy name is returned instead, which is what
    older list consumers still expect when rules are written.
    """
    if raw in RECOMMENDATION_BAN_TYPES:
        return RECOMMENDATION_BAN_TYPES[-1] if unstable else RECOMMENDATION_BAN
    if raw in RECOMMENDATION_KICK_TYPES:
        return RECOMMENDATION_KICK_TYPES[-1] if unstable else RECOMMENDATION_KICK
    return None
