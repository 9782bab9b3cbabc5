"""Tests for the Enforcer."""

import logging

import pytest
from unittest.mock import AsyncMock

from modwarden.datatypes.action_datatypes import ActionType
from modwarden.moderation.enforcement import Enforcer, summary_notice

MANAGEMENT = "!management:x.org"


class TestReport:
    """Tests for Enforcer.report and notify."""

    @pytest.mark.asyncio
    async def test_debug_reports_are_not_posted(self, fake_client):
        enforcer = Enforcer(fake_client, MANAGEMENT)
        await enforcer.report(logging.DEBUG, "ApplyBan", "Banning @bob:x in !r:x")
        assert fake_client.calls_named("send_notice") == []

    @pytest.mark.asyncio
    async def test_warnings_are_posted(self, fake_client):
        enforcer = Enforcer(fake_client, MANAGEMENT)
        await enforcer.report(logging.WARNING, "ShortFloodingProtection", "Kicking @bob:x")
        assert fake_client.calls_named("send_notice") == [
            ("send_notice", MANAGEMENT, "[ShortFloodingProtection] Kicking @bob:x", None)
        ]

    @pytest.mark.asyncio
    async def test_report_failure_is_swallowed(self):
        client = AsyncMock()
        client.send_notice.side_effect = RuntimeError("offline")
        enforcer = Enforcer(client, MANAGEMENT)
        await enforcer.report(logging.ERROR, "ApplyBan", "something")
        client.send_notice.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_notify_failure_is_swallowed(self):
        client = AsyncMock()
        client.send_notice.side_effect = RuntimeError("offline")
        enforcer = Enforcer(client, MANAGEMENT)
        await enforcer.notify("Banned 1 people", "<b>Banned 1 people</b>")
        client.send_notice.assert_awaited_once_with(MANAGEMENT, "Banned 1 people", "<b>Banned 1 people</b>")

    @pytest.mark.asyncio
    async def test_notify_without_management_room(self, fake_client):
        enforcer = Enforcer(fake_client)
        await enforcer.notify("Banned 1 people")
        assert fake_client.calls == []

    def test_summary_notice_escapes(self):
        assert summary_notice("a <b>") == '<font color="#00cc00"><b>a &lt;b&gt;</b></font>'


class TestSanction:
    """Tests for bans, kicks and redactions."""

    @pytest.mark.asyncio
    async def test_ban_and_kick(self, fake_client):
        enforcer = Enforcer(fake_client, MANAGEMENT)
        await enforcer.ban("@a:x", "!r:x", "spam", "ApplyBan")
        await enforcer.kick("@b:x", "!r:x", "rude", "ApplyBan")
        assert fake_client.calls_named("sanction") == [
            ("sanction", "@a:x", "!r:x", ActionType.BAN, "spam"),
            ("sanction", "@b:x", "!r:x", ActionType.KICK, "rude"),
        ]

    @pytest.mark.asyncio
    async def test_redact_is_not_a_sanction(self, fake_client):
        enforcer = Enforcer(fake_client)
        with pytest.raises(ValueError):
            await enforcer.sanction("@a:x", "!r:x", ActionType.REDACT, "spam", "ApplyBan")

    @pytest.mark.asyncio
    async def test_noop_only_reports(self, fake_client):
        enforcer = Enforcer(fake_client, MANAGEMENT, noop=True)

        await enforcer.ban("@a:x", "!r:x", "spam", "ApplyBan")
        await enforcer.redact_event("!r:x", "$e", "@a:x", "spam", "ApplyBan")
        redacted = await enforcer.redact_user_messages("@a:x", ["!r:x"], "spam", "ApplyBan")

        assert redacted == []
        assert fake_client.calls_named("sanction") == []
        assert fake_client.calls_named("redact_event") == []
        assert fake_client.calls_named("redact_user_messages") == []
        notices = [call[2] for call in fake_client.calls_named("send_notice")]
        assert len(notices) == 3
        assert all("no-op mode" in notice for notice in notices)

    @pytest.mark.asyncio
    async def test_redact_user_messages_per_room(self, fake_client):
        enforcer = Enforcer(fake_client)
        redacted = await enforcer.redact_user_messages("@a:x", ["!r1:x", "!r2:x"], "spam", "ApplyBan")
        assert redacted == ["$msg-of-@a:x", "$msg-of-@a:x"]
        assert fake_client.calls_named("redact_user_messages") == [
            ("redact_user_messages", "@a:x", ("!r1:x",)),
            ("redact_user_messages", "@a:x", ("!r2:x",)),
        ]


class TestActionLog:
    """Tests for action log recording."""

    @pytest.mark.asyncio
    async def test_actions_recorded(self, fake_client):
        action_log = AsyncMock()
        enforcer = Enforcer(fake_client, action_log=action_log)

        await enforcer.kick("@a:x", "!r:x", "flood", "ShortFloodingProtection")
        await enforcer.redact_event("!r:x", "$e1", "@a:x", "flood", "ShortFloodingProtection")

        recorded = [call.args[0] for call in action_log.log_action.await_args_list]
        assert [action.action for action in recorded] == [ActionType.KICK, ActionType.REDACT]
        assert recorded[0].source == "ShortFloodingProtection"
        assert recorded[1].event_ids == ["$e1"]
        assert recorded[1].user_id == "@a:x"
        assert all(not action.noop for action in recorded)

    @pytest.mark.asyncio
    async def test_noop_actions_marked(self, fake_client):
        action_log = AsyncMock()
        enforcer = Enforcer(fake_client, noop=True, action_log=action_log)
        await enforcer.ban("@a:x", "!r:x", "spam", "ApplyBan")
        assert action_log.log_action.await_args.args[0].noop is True

    @pytest.mark.asyncio
    async def test_action_log_failure_does_not_break_enforcement(self, fake_client):
        action_log = AsyncMock()
        action_log.log_action.side_effect = RuntimeError("disk full")
        enforcer = Enforcer(fake_client, action_log=action_log)

        await enforcer.ban("@a:x", "!r:x", "spam", "ApplyBan")

        assert len(fake_client.calls_named("sanction")) == 1
