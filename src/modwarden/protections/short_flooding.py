"""
Burst-flood protection.

Keeps, per room and per user, the timestamps of that user's recent messages.
When ``max_per_interval`` of them fall inside the sliding ``interval_ms``
window the user is kicked, every queued message is redacted and the queue is
cleared, so one burst is punished once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from modwarden.configuration.protection_settings import (
    DEFAULT_FLOOD_INTERVAL_MS,
    DEFAULT_FLOOD_MAX_PER_INTERVAL,
    DEFAULT_FLOOD_TIMESTAMP_THRESHOLD_MS,
)
from modwarden.datatypes.event_datatypes import AnyRoomEvent, MessageEvent
from modwarden.protections.base import Protection, ProtectionContext
from modwarden.util.logger import get_logger

logger = get_logger("short_flooding")

FLOOD_REASON = "[automated] spam"

# Number of handled messages between sweeps of idle (room, user) entries.
SWEEP_EVERY = 256


def current_time_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class RecentMessage:
    origin_server_ts: int
    event_id: str


class FloodWindow:
    """Recent messages keyed by ``(room_id, user_id)``.

    Entries for a key are kept oldest first. Keys whose newest message has
    left the window are dropped by :meth:`evict_idle`, so memory follows the
    set of currently active senders rather than everyone ever seen.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], List[RecentMessage]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._entries

    def get(self, room_id: str, user_id: str) -> List[RecentMessage]:
        return list(self._entries.get((room_id, user_id), []))

    def record(self, room_id: str, user_id: str, message: RecentMessage) -> List[RecentMessage]:
        queue = self._entries.setdefault((room_id, user_id), [])
        queue.append(message)
        return queue

    def discard(self, room_id: str, user_id: str, event_ids: List[str]) -> None:
        """Drop the given messages, keeping any queued since."""
        queue = self._entries.get((room_id, user_id))
        if queue is None:
            return
        handled = set(event_ids)
        queue[:] = [message for message in queue if message.event_id not in handled]
        if not queue:
            del self._entries[(room_id, user_id)]

    def trim(self, room_id: str, user_id: str, max_length: int) -> None:
        queue = self._entries.get((room_id, user_id))
        if queue is not None and len(queue) > max_length:
            del queue[: len(queue) - max_length]

    def evict_idle(self, now_ms: int, interval_ms: int) -> int:
        idle = [
            key for key, queue in self._entries.items()
            if not queue or now_ms - queue[-1].origin_server_ts >= interval_ms
        ]
        for key in idle:
            del self._entries[key]
        return len(idle)


class ShortFlooding(Protection):
    """Kick users posting ``max_per_interval`` messages within ``interval_ms``."""

    def __init__(
        self,
        max_per_interval: int = DEFAULT_FLOOD_MAX_PER_INTERVAL,
        interval_ms: int = DEFAULT_FLOOD_INTERVAL_MS,
        timestamp_threshold_ms: int = DEFAULT_FLOOD_TIMESTAMP_THRESHOLD_MS,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.max_per_interval = max_per_interval
        self.interval_ms = interval_ms
        self.timestamp_threshold_ms = timestamp_threshold_ms
        self._clock = clock or current_time_ms
        self.window = FloodWindow()
        self._handled = 0

    @property
    def name(self) -> str:
        return "ShortFloodingProtection"

    def count_recent(self, queue: List[RecentMessage], now_ms: int) -> int:
        """Messages strictly younger than the window."""
        return sum(1 for message in queue if now_ms - message.origin_server_ts < self.interval_ms)

    async def handle_event(self, context: ProtectionContext, room_id: str, event: AnyRoomEvent) -> None:
        if not isinstance(event, MessageEvent):
            return

        sender = event.sender
        if await context.is_management_member(sender):
            return

        now = self._clock()
        timestamp = event.origin_server_ts
        if now - timestamp > self.timestamp_threshold_ms:
            logger.warning(
                "[SHORT FLOODING] %s is more than %dms out of phase - rewriting event time to be 'now'",
                event.event_id,
                self.timestamp_threshold_ms,
            )
            timestamp = now

        queue = self.window.record(room_id, sender, RecentMessage(timestamp, event.event_id))
        message_count = self.count_recent(queue, now)

        if message_count >= self.max_per_interval:
            await context.enforcer.report(
                logging.WARNING,
                self.name,
                f"Kicking {sender} in {room_id} for flooding (at least {message_count} messages "
                f"in the last {self.interval_ms / 1000:g}s)",
            )
            # Cleared only after the kick and redactions; a failed kick keeps the burst queued.
            event_ids = [message.event_id for message in queue]
            await context.enforcer.kick(sender, room_id, FLOOD_REASON, self.name)
            for event_id in event_ids:
                await context.enforcer.redact_event(room_id, event_id, sender, FLOOD_REASON, self.name)
            self.window.discard(room_id, sender, event_ids)

        self.window.trim(room_id, sender, self.max_per_interval * 2)

        self._handled += 1
        if self._handled % SWEEP_EVERY == 0:
            evicted = self.window.evict_idle(now, self.interval_ms)
            if evicted:
                logger.debug("[SHORT FLOODING] Dropped %d idle sender window(s)", evicted)
