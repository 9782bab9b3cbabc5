"""Tests for the Matrix client."""

import json

import pytest
from unittest.mock import AsyncMock, patch

from modwarden.datatypes.action_datatypes import ActionType
from modwarden.matrix.client import MatrixClient, MatrixRequestError, members_from_state
from modwarden.moderation.capabilities import MembershipMode, RoomMember


@pytest.fixture()
def client():
    return MatrixClient("https://matrix.example.org/", "token", "!management:x.org")


class TestMatrixRequestError:
    """Tests for MatrixRequestError."""

    def test_str_is_server_error_text(self):
        exc = MatrixRequestError(403, "M_FORBIDDEN", "You don't have permission to ban/kick")
        assert str(exc) == "You don't have permission to ban/kick"
        assert exc.errcode == "M_FORBIDDEN"

    def test_falls_back_to_errcode_then_status(self):
        assert str(MatrixRequestError(404, "M_NOT_FOUND")) == "M_NOT_FOUND"
        assert str(MatrixRequestError(502)) == "HTTP 502"


class TestMembership:
    """Tests for membership lookups."""

    def test_members_from_state(self):
        state = [
            {"type": "m.room.member", "state_key": "@a:x", "content": {"membership": "join"}},
            {"type": "m.room.member", "state_key": "@b:x", "content": {"membership": "ban"}},
            {"type": "m.room.name", "state_key": "", "content": {"name": "Room"}},
        ]
        assert members_from_state(state) == [RoomMember("@a:x", "join"), RoomMember("@b:x", "ban")]

    @pytest.mark.asyncio
    async def test_joined_mode(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.return_value = {"joined": {"@a:x": {}, "@b:x": {}}}
            members = await client.get_membership("!r:x", MembershipMode.JOINED)

        assert members == [RoomMember("@a:x", "join"), RoomMember("@b:x", "join")]
        request.assert_awaited_once_with("GET", "rooms/%21r%3Ax/joined_members")

    @pytest.mark.asyncio
    async def test_full_state_mode(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.return_value = [{"type": "m.room.member", "state_key": "@a:x", "content": {"membership": "leave"}}]
            members = await client.get_membership("!r:x", MembershipMode.FULL_STATE)

        assert members == [RoomMember("@a:x", "leave")]
        request.assert_awaited_once_with("GET", "rooms/%21r%3Ax/state")

    @pytest.mark.asyncio
    async def test_management_roster_is_cached(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.return_value = {"joined": {"@mod:x": {}}}
            assert await client.is_management_member("@mod:x") is True
            assert await client.is_management_member("@rando:x") is False

        assert request.await_count == 1

    @pytest.mark.asyncio
    async def test_no_management_room(self):
        client = MatrixClient("https://matrix.example.org", "token")
        assert await client.is_management_member("@mod:x") is False


class TestWrites:
    """Tests for sanctions, notices and redactions."""

    @pytest.mark.asyncio
    async def test_sanction_dispatch(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.return_value = {}
            await client.sanction("@a:x", "!r:x", ActionType.BAN, "spam")
            await client.sanction("@a:x", "!r:x", ActionType.KICK, "flood")

        assert request.await_args_list[0].args == ("POST", "rooms/%21r%3Ax/ban")
        assert request.await_args_list[0].kwargs == {"body": {"user_id": "@a:x", "reason": "spam"}}
        assert request.await_args_list[1].args == ("POST", "rooms/%21r%3Ax/kick")

    @pytest.mark.asyncio
    async def test_redact_is_not_a_sanction(self, client):
        with pytest.raises(ValueError):
            await client.sanction("@a:x", "!r:x", ActionType.REDACT, "spam")

    @pytest.mark.asyncio
    async def test_send_notice_with_html(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.return_value = {"event_id": "$notice"}
            event_id = await client.send_notice("!r:x", "Banned 1 people", "<b>Banned 1 people</b>")

        assert event_id == "$notice"
        method, path = request.await_args.args
        assert method == "PUT"
        assert path.startswith("rooms/%21r%3Ax/send/m.room.message/")
        assert request.await_args.kwargs["body"] == {
            "msgtype": "m.notice",
            "body": "Banned 1 people",
            "format": "org.matrix.custom.html",
            "formatted_body": "<b>Banned 1 people</b>",
        }

    @pytest.mark.asyncio
    async def test_send_state_event(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.return_value = {"event_id": "$state"}
            await client.send_state_event("!l:x", "m.policy.rule.user", "rule:@*:evil.com", {})

        assert request.await_args.args == ("PUT", "rooms/%21l%3Ax/state/m.policy.rule.user/rule%3A%40%2A%3Aevil.com")

    @pytest.mark.asyncio
    async def test_messages_by_user_pages_backwards(self, client):
        pages = [
            {
                "chunk": [
                    {"event_id": "$1", "sender": "@a:x", "type": "m.room.message"},
                    {"event_id": "$s", "sender": "@a:x", "type": "m.room.member", "state_key": "@a:x"},
                    {"event_id": "$o", "sender": "@other:x", "type": "m.room.message"},
                ],
                "end": "t1",
            },
            {"chunk": [{"event_id": "$2", "sender": "@a:x", "type": "m.room.message"}], "end": "t2"},
            {"chunk": [], "end": "t3"},
        ]
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.side_effect = pages
            events = await client.get_messages_by_user("!r:x", "@a:x")

        assert [event["event_id"] for event in events] == ["$1", "$2"]
        assert request.await_count == 3
        params = request.await_args_list[0].kwargs["params"]
        assert params["dir"] == "b"
        assert json.loads(params["filter"]) == {"senders": ["@a:x"]}

    @pytest.mark.asyncio
    async def test_messages_by_user_respects_limit(self, client):
        page = {"chunk": [{"event_id": f"${i}", "sender": "@a:x"} for i in range(5)], "end": "t1"}
        with patch.object(client, "_request", new_callable=AsyncMock) as request:
            request.return_value = page
            events = await client.get_messages_by_user("!r:x", "@a:x", limit=3)

        assert len(events) == 3
        assert request.await_count == 1

    @pytest.mark.asyncio
    async def test_redact_user_messages(self, client):
        with patch.object(client, "get_messages_by_user", new_callable=AsyncMock) as messages, \
                patch.object(client, "redact_event", new_callable=AsyncMock) as redact:
            messages.return_value = [{"event_id": "$1"}, {"event_id": "$2"}]
            redacted = await client.redact_user_messages("@a:x", ["!r:x"])

        assert redacted == ["$1", "$2"]
        assert redact.await_count == 2


class TestSync:
    """Tests for the sync loop."""

    @pytest.mark.asyncio
    async def test_initial_backlog_is_skipped(self, client):
        backlog = {"rooms": {"join": {"!r:x": {"timeline": {"events": [{"event_id": "$old"}]}}}}, "next_batch": "s1"}
        live = {"rooms": {"join": {"!r:x": {"timeline": {"events": [{"event_id": "$new"}]}}}}, "next_batch": "s2"}
        seen = []

        async def on_event(room_id, event):
            seen.append((room_id, event["event_id"]))
            client.stop()

        with patch.object(client, "sync_once", new_callable=AsyncMock) as sync_once:
            sync_once.side_effect = [backlog, live]
            await client.sync_forever(on_event, timeout_ms=1000)

        assert seen == [("!r:x", "$new")]
        assert sync_once.await_args_list[0].args == (None, 0)
        assert sync_once.await_args_list[1].args == ("s1", 1000)

    @pytest.mark.asyncio
    async def test_handler_failure_does_not_stop_sync(self, client):
        live = {"rooms": {"join": {"!r:x": {"timeline": {"events": [{"event_id": "$a"}, {"event_id": "$b"}]}}}}}
        seen = []

        async def on_event(room_id, event):
            seen.append(event["event_id"])
            if event["event_id"] == "$a":
                raise RuntimeError("handler bug")
            client.stop()

        with patch.object(client, "sync_once", new_callable=AsyncMock) as sync_once:
            sync_once.side_effect = [{"next_batch": "s1"}, live]
            await client.sync_forever(on_event)

        assert seen == ["$a", "$b"]

    @pytest.mark.asyncio
    async def test_state_block_goes_to_state_handler_first(self, client):
        live = {
            "rooms": {"join": {"!list:x": {
                "state": {"events": [{"event_id": "$rule", "type": "m.policy.rule.user", "state_key": "rule:@a:x"}]},
                "timeline": {"limited": True, "events": [{"event_id": "$msg"}]},
            }}},
            "next_batch": "s2",
        }
        seen = []

        async def on_state(room_id, event):
            seen.append(("state", room_id, event["event_id"]))

        async def on_event(room_id, event):
            seen.append(("timeline", room_id, event["event_id"]))
            client.stop()

        with patch.object(client, "sync_once", new_callable=AsyncMock) as sync_once:
            sync_once.side_effect = [{"next_batch": "s1"}, live]
            await client.sync_forever(on_event, on_state=on_state)

        assert seen == [("state", "!list:x", "$rule"), ("timeline", "!list:x", "$msg")]

    @pytest.mark.asyncio
    async def test_sync_errors_are_retried(self, client):
        with patch.object(client, "sync_once", new_callable=AsyncMock) as sync_once, \
                patch("modwarden.matrix.client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            def stop_after_retry(*args):
                client.stop()
                return {"next_batch": "s1"}

            sync_once.side_effect = [MatrixRequestError(502), stop_after_retry]
            await client.sync_forever(AsyncMock())

        sleep.assert_awaited_once()
        assert sync_once.await_count == 2
