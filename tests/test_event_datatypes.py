"""Tests for typed room event views."""

from modwarden.datatypes.event_datatypes import (
    MembershipEvent,
    MessageEvent,
    RoomEvent,
    is_true_join_event,
    parse_event,
)


class TestParseEvent:
    """Tests for parse_event."""

    def test_membership_defaults(self):
        event = parse_event({"type": "m.room.member", "event_id": "$j", "sender": "@u:x", "state_key": "@u:x"})
        assert isinstance(event, MembershipEvent)
        assert event.membership == "join"
        assert event.prev_membership == "leave"
        assert event.is_true_join

    def test_message_defaults(self):
        event = parse_event({"type": "m.room.message", "event_id": "$m", "sender": "@u:x", "content": {}})
        assert isinstance(event, MessageEvent)
        assert event.msgtype == "m.text"
        assert event.origin_server_ts == 0
        assert not event.is_media

    def test_legacy_message_type(self):
        event = parse_event({"type": "org.matrix.room.message", "content": {"msgtype": "m.video"}})
        assert isinstance(event, MessageEvent)
        assert event.is_media

    def test_other_events(self):
        event = parse_event({"type": "m.reaction", "event_id": "$r", "sender": "@u:x", "origin_server_ts": 5})
        assert type(event) is RoomEvent
        assert event.origin_server_ts == 5

    def test_malformed_fields_are_tolerated(self):
        event = parse_event({"type": "m.room.message", "content": "not a dict", "sender": 42})
        assert isinstance(event, MessageEvent)
        assert event.content == {}
        assert event.sender == ""

    def test_non_finite_timestamps(self):
        for ts in (float("inf"), float("-inf"), float("nan")):
            assert parse_event({"type": "m.room.message", "origin_server_ts": ts}).origin_server_ts == 0
        assert parse_event({"type": "m.room.message", "origin_server_ts": 12.9}).origin_server_ts == 12

    def test_raw_is_kept(self):
        raw = {"type": "m.room.message", "content": {"body": "x"}, "extra": 1}
        assert parse_event(raw).raw["extra"] == 1


class TestIsTrueJoinEvent:
    """Tests for is_true_join_event."""

    def test_first_join(self):
        assert is_true_join_event({"type": "m.room.member", "content": {"membership": "join"}})

    def test_profile_change(self):
        assert not is_true_join_event({
            "type": "m.room.member",
            "content": {"membership": "join", "displayname": "new"},
            "unsigned": {"prev_content": {"membership": "join"}},
        })

    def test_leave(self):
        assert not is_true_join_event({"type": "m.room.member", "content": {"membership": "leave"}})

    def test_not_membership(self):
        assert not is_true_join_event({"type": "m.room.message", "content": {}})
