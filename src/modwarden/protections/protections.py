"""
Protection registry and dispatch.

:data:`PROTECTIONS` lists every protection the warden knows, with an operator
facing description and a factory. :class:`ProtectionEngine` holds the enabled
instances and hands each incoming room event to all of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from modwarden.configuration.protection_settings import ProtectionSettings
from modwarden.datatypes.event_datatypes import parse_event
from modwarden.protections.base import Protection, ProtectionContext
from modwarden.protections.first_message_is_image import FirstMessageIsImage
from modwarden.protections.short_flooding import ShortFlooding
from modwarden.util.logger import get_logger

logger = get_logger("protections")


@dataclass(frozen=True, slots=True)
class ProtectionDefinition:
    description: str
    factory: Callable[[ProtectionSettings], Protection]


def _short_flooding(settings: ProtectionSettings) -> Protection:
    return ShortFlooding(
        max_per_interval=settings.flood_max_per_interval,
        interval_ms=settings.flood_interval_ms,
        timestamp_threshold_ms=settings.flood_timestamp_threshold_ms,
    )


PROTECTIONS: Dict[str, ProtectionDefinition] = {
    "FirstMessageIsImageProtection": ProtectionDefinition(
        description="If the first thing a user does after joining is to post an image or video, "
        "they'll be kicked and the message redacted. This does not publish the kick to any of your ban lists.",
        factory=lambda settings: FirstMessageIsImage(),
    ),
    "ShortFloodingProtection": ProtectionDefinition(
        description="If a user posts too many messages in a short window they'll be kicked for spam "
        "and the burst redacted. This does not publish the kick to any of your ban lists.",
        factory=_short_flooding,
    ),
}


class ProtectionEngine:
    """Runs every enabled protection against each room event.

    Protections are independent: one raising does not stop the others from
    seeing the event. The failure is logged with its traceback.
    """

    def __init__(self, context: ProtectionContext, settings: Optional[ProtectionSettings] = None) -> None:
        self.context = context
        self.settings = settings or ProtectionSettings()
        self._enabled: Dict[str, Protection] = {}

    @property
    def enabled_names(self) -> List[str]:
        return list(self._enabled)

    @property
    def protections(self) -> List[Protection]:
        return list(self._enabled.values())

    def register(self, protection: Protection) -> None:
        """Enable an already constructed protection, replacing one with the same name."""
        self._enabled[protection.name] = protection
        logger.info("[PROTECTIONS] Enabled %s", protection.name)

    def enable(self, name: str) -> Protection:
        """Instantiate and enable a protection from :data:`PROTECTIONS`."""
        if name in self._enabled:
            return self._enabled[name]
        definition = PROTECTIONS.get(name)
        if definition is None:
            raise KeyError(f"Unknown protection: {name}")
        protection = definition.factory(self.settings)
        self.register(protection)
        return protection

    def disable(self, name: str) -> bool:
        """Disable a protection, dropping its state. Returns False if it was not enabled."""
        if self._enabled.pop(name, None) is None:
            return False
        logger.info("[PROTECTIONS] Disabled %s", name)
        return True

    def enable_configured(self) -> None:
        for name in self.settings.enabled:
            try:
                self.enable(name)
            except KeyError:
                logger.warning("[PROTECTIONS] Ignoring unknown protection '%s' in config", name)

    async def handle_event(self, room_id: str, raw_event: Mapping[str, Any]) -> None:
        event = parse_event(raw_event)
        for protection in list(self._enabled.values()):
            try:
                await protection.handle_event(self.context, room_id, event)
            except Exception:
                logger.exception(
                    "[PROTECTIONS] %s failed handling %s in %s", protection.name, event.event_id, room_id
                )
