"""
Minimal Matrix client-server API client.

Implements the capability protocols of :mod:`modwarden.moderation.capabilities`
on top of an ``aiohttp`` session: membership lookups, bans, kicks,
redactions, notices, state writes and the long-poll ``/sync`` loop that feeds
room events to the warden.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import quote

import aiohttp

from modwarden.datatypes.action_datatypes import ActionType
from modwarden.moderation.capabilities import MembershipMode, RoomMember
from modwarden.util.logger import get_logger

logger = get_logger("matrix_client")

CLIENT_API = "/_matrix/client/v3"
REQUEST_TIMEOUT_SECONDS = 60
MANAGEMENT_CACHE_SECONDS = 60.0
DEFAULT_REDACTION_LIMIT = 1000
SYNC_RETRY_SECONDS = 5.0

EventHandler = Callable[[str, Dict[str, Any]], Awaitable[None]]


class MatrixRequestError(Exception):
    """A non-2xx response from the homeserver.

    ``str()`` of the exception is the server's ``error`` text, so callers can
    match on the wording Synapse uses.
    """

    def __init__(self, status: int, errcode: str = "", error: str = "") -> None:
        super().__init__(error or errcode or f"HTTP {status}")
        self.status = status
        self.errcode = errcode
        self.error = error


def _path(*segments: str) -> str:
    return "/".join(quote(segment, safe="") for segment in segments)


def members_from_state(state: Sequence[Dict[str, Any]]) -> List[RoomMember]:
    """Extract ``m.room.member`` entries from full room state."""
    members = []
    for event in state:
        if event.get("type") != "m.room.member" or not event.get("state_key"):
            continue
        content = event.get("content") or {}
        members.append(RoomMember(user_id=event["state_key"], membership=content.get("membership") or "join"))
    return members


class MatrixClient:
    """Matrix client used by the warden.

    Parameters
    ----------
    homeserver_url:
        Base URL of the homeserver, e.g. ``https://matrix.example.org``.
    access_token:
        Access token of the warden's account.
    management_room:
        Room whose joined members are exempt from protections.
    session:
        Optional externally managed ``aiohttp.ClientSession``.
    """

    def __init__(
        self,
        homeserver_url: str,
        access_token: str,
        management_room: str = "",
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.homeserver_url = homeserver_url.rstrip("/")
        self.access_token = access_token
        self.management_room = management_room
        self._session = session
        self._owns_session = session is None
        self._managers: set[str] = set()
        self._managers_fetched_at: float | None = None
        self._stopping = False

    # --------------------------
    # Transport
    # --------------------------
    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS))
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        self._stopping = True
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.homeserver_url}{CLIENT_API}/{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        async with self._get_session().request(method, url, params=params, json=body, headers=headers) as response:
            try:
                payload = await response.json(content_type=None)
            except (json.JSONDecodeError, aiohttp.ContentTypeError):
                payload = {}
            if response.status >= 400:
                payload = payload if isinstance(payload, dict) else {}
                raise MatrixRequestError(response.status, payload.get("errcode", ""), payload.get("error", ""))
            return payload

    @staticmethod
    def _txn_id() -> str:
        return uuid.uuid4().hex

    # --------------------------
    # Reads
    # --------------------------
    async def whoami(self) -> str:
        response = await self._request("GET", "account/whoami")
        return response["user_id"]

    async def get_joined_room_members(self, room_id: str) -> List[str]:
        response = await self._request("GET", _path("rooms", room_id, "joined_members"))
        return list((response.get("joined") or {}).keys())

    async def get_room_state(self, room_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", _path("rooms", room_id, "state"))

    async def get_membership(self, room_id: str, mode: MembershipMode) -> List[RoomMember]:
        if mode is MembershipMode.JOINED:
            return [RoomMember(user_id, "join") for user_id in await self.get_joined_room_members(room_id)]
        return members_from_state(await self.get_room_state(room_id))

    async def is_management_member(self, user_id: str) -> bool:
        if not self.management_room:
            return False
        now = time.monotonic()
        if self._managers_fetched_at is None or now - self._managers_fetched_at > MANAGEMENT_CACHE_SECONDS:
            self._managers = set(await self.get_joined_room_members(self.management_room))
            self._managers_fetched_at = now
        return user_id in self._managers

    # --------------------------
    # Writes
    # --------------------------
    async def ban_user(self, user_id: str, room_id: str, reason: str = "") -> None:
        await self._request("POST", _path("rooms", room_id, "ban"), body={"user_id": user_id, "reason": reason})

    async def kick_user(self, user_id: str, room_id: str, reason: str = "") -> None:
        await self._request("POST", _path("rooms", room_id, "kick"), body={"user_id": user_id, "reason": reason})

    async def sanction(self, user_id: str, room_id: str, action: ActionType, reason: str) -> None:
        if action is ActionType.BAN:
            await self.ban_user(user_id, room_id, reason)
        elif action is ActionType.KICK:
            await self.kick_user(user_id, room_id, reason)
        else:
            raise ValueError(f"{action} is not a sanction")

    async def redact_event(self, room_id: str, event_id: str, reason: Optional[str] = None) -> str:
        body = {"reason": reason} if reason else {}
        response = await self._request("PUT", _path("rooms", room_id, "redact", event_id, self._txn_id()), body=body)
        return response.get("event_id", "")

    async def send_message(self, room_id: str, content: Dict[str, Any]) -> str:
        response = await self._request(
            "PUT", _path("rooms", room_id, "send", "m.room.message", self._txn_id()), body=content
        )
        return response.get("event_id", "")

    async def send_notice(self, room_id: str, text: str, html: Optional[str] = None) -> str:
        content: Dict[str, Any] = {"msgtype": "m.notice", "body": text}
        if html:
            content["format"] = "org.matrix.custom.html"
            content["formatted_body"] = html
        return await self.send_message(room_id, content)

    async def send_state_event(self, room_id: str, event_type: str, state_key: str, content: Dict[str, Any]) -> str:
        response = await self._request("PUT", _path("rooms", room_id, "state", event_type, state_key), body=content)
        return response.get("event_id", "")

    async def get_messages_by_user(
        self, room_id: str, user_id: str, limit: int = DEFAULT_REDACTION_LIMIT
    ) -> List[Dict[str, Any]]:
        """Page backwards through ``room_id`` collecting up to ``limit`` non-state events by ``user_id``."""
        found: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {
            "dir": "b",
            "limit": 100,
            "filter": json.dumps({"senders": [user_id]}),
        }
        while len(found) < limit:
            response = await self._request("GET", _path("rooms", room_id, "messages"), params=params)
            chunk = response.get("chunk") or []
            for event in chunk:
                if event.get("sender") != user_id or "state_key" in event:
                    continue
                found.append(event)
                if len(found) >= limit:
                    break
            end = response.get("end")
            if not chunk or not end or end == params.get("from"):
                break
            params["from"] = end
        return found

    async def redact_user_messages(
        self, user_id: str, room_ids: Sequence[str], limit: int = DEFAULT_REDACTION_LIMIT
    ) -> List[str]:
        redacted = []
        for room_id in room_ids:
            events = await self.get_messages_by_user(room_id, user_id, limit)
            logger.debug("[MATRIX CLIENT] Redacting %d event(s) by %s in %s", len(events), user_id, room_id)
            for event in events:
                await self.redact_event(room_id, event["event_id"])
                redacted.append(event["event_id"])
        return redacted

    # --------------------------
    # Sync
    # --------------------------
    async def sync_once(self, since: Optional[str], timeout_ms: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {"timeout": timeout_ms}
        if since:
            params["since"] = since
        return await self._request("GET", "sync", params=params)

    async def _dispatch(self, handler: EventHandler, room_id: str, events: Sequence[Dict[str, Any]]) -> None:
        for event in events:
            try:
                await handler(room_id, event)
            except Exception:
                logger.exception("[MATRIX CLIENT] Handler failed for %s in %s", event.get("event_id"), room_id)

    async def sync_forever(
        self, on_event: EventHandler, timeout_ms: int = 30000, *, on_state: Optional[EventHandler] = None
    ) -> None:
        """Long-poll ``/sync`` and hand each joined-room timeline event to ``on_event``.

        State events a limited sync delivers outside the timeline go to
        ``on_state`` first, when given. The initial sync only establishes a
        position; its backlog is not replayed.
        """
        since: Optional[str] = None
        self._stopping = False
        while not self._stopping:
            try:
                response = await self.sync_once(since, timeout_ms if since else 0)
            except (aiohttp.ClientError, asyncio.TimeoutError, MatrixRequestError) as exc:
                logger.warning("[MATRIX CLIENT] Sync failed, retrying in %ss: %s", SYNC_RETRY_SECONDS, exc)
                await asyncio.sleep(SYNC_RETRY_SECONDS)
                continue

            if since is not None:
                joined = (response.get("rooms") or {}).get("join") or {}
                for room_id, room in joined.items():
                    if on_state is not None:
                        await self._dispatch(on_state, room_id, (room.get("state") or {}).get("events") or [])
                    await self._dispatch(on_event, room_id, (room.get("timeline") or {}).get("events") or [])
            since = response.get("next_batch", since)

    def stop(self) -> None:
        self._stopping = True
