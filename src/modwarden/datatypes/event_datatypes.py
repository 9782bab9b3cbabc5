"""
Typed views over raw Matrix room events.

Room events arrive as arbitrary JSON dictionaries. :func:`parse_event` turns
one into a :class:`MembershipEvent`, a :class:`MessageEvent` or a plain
:class:`RoomEvent`, pulling out only the fields the protections rely on and
filling documented defaults when they are absent:

- a membership event without ``membership`` is treated as ``join``;
- a message without ``msgtype`` is treated as ``m.text``;
- a missing previous membership is treated as ``leave``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

ROOM_MEMBER = "m.room.member"
ROOM_MESSAGE = "m.room.message"
ROOM_MESSAGE_TYPES = [ROOM_MESSAGE, "org.matrix.room.message"]

MSGTYPE_TEXT = "m.text"
MSGTYPE_IMAGE = "m.image"
MSGTYPE_VIDEO = "m.video"


@dataclass(slots=True)
class RoomEvent:
    """Fields common to every room event."""

    event_type: str
    event_id: str
    sender: str
    origin_server_ts: int
    content: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(slots=True)
class MembershipEvent(RoomEvent):
    state_key: str = ""
    membership: str = "join"
    prev_membership: str = "leave"

    @property
    def is_true_join(self) -> bool:
        """A join that is not a profile update of an already joined member."""
        return self.membership == "join" and self.prev_membership != "join"


@dataclass(slots=True)
class MessageEvent(RoomEvent):
    msgtype: str = MSGTYPE_TEXT
    body: str = ""
    formatted_body: str = ""
    url: Optional[str] = None

    @property
    def is_media(self) -> bool:
        """An image or video upload, or HTML that embeds an image."""
        return (
            self.msgtype in (MSGTYPE_IMAGE, MSGTYPE_VIDEO)
            or "<img" in self.formatted_body.lower()
        )


AnyRoomEvent = Union[MembershipEvent, MessageEvent, RoomEvent]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _as_timestamp(value: Any) -> int:
    # json.loads accepts Infinity and NaN, which int() rejects.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value) if math.isfinite(value) else 0


def parse_event(raw: Mapping[str, Any]) -> AnyRoomEvent:
    """Build the typed view of a raw event dictionary."""
    raw_dict = dict(raw)
    event_type = _as_str(raw_dict.get("type"))
    content = _as_dict(raw_dict.get("content"))
    ts = raw_dict.get("origin_server_ts")
    common = dict(
        event_type=event_type,
        event_id=_as_str(raw_dict.get("event_id")),
        sender=_as_str(raw_dict.get("sender")),
        origin_server_ts=_as_timestamp(ts),
        content=content,
        raw=raw_dict,
    )

    if event_type == ROOM_MEMBER:
        prev_content = _as_dict(_as_dict(raw_dict.get("unsigned")).get("prev_content"))
        return MembershipEvent(
            **common,
            state_key=_as_str(raw_dict.get("state_key")),
            membership=_as_str(content.get("membership")) or "join",
            prev_membership=_as_str(prev_content.get("membership")) or "leave",
        )

    if event_type in ROOM_MESSAGE_TYPES:
        return MessageEvent(
            **common,
            msgtype=_as_str(content.get("msgtype")) or MSGTYPE_TEXT,
            body=_as_str(content.get("body")),
            formatted_body=_as_str(content.get("formatted_body")),
            url=content.get("url") if isinstance(content.get("url"), str) else None,
        )

    return RoomEvent(**common)


def is_true_join_event(raw: Mapping[str, Any]) -> bool:
    """Return True if ``raw`` is a genuine join rather than a profile change."""
    event = parse_event(raw)
    return isinstance(event, MembershipEvent) and event.is_true_join
