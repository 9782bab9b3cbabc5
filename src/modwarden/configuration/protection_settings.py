from typing import Any, Dict, List

DEFAULT_FLOOD_MAX_PER_INTERVAL = 7
DEFAULT_FLOOD_INTERVAL_MS = 10000
DEFAULT_FLOOD_TIMESTAMP_THRESHOLD_MS = 5000


class ProtectionSettings:
    """Helper exposing typed accessors for the ``protections`` config section.

    Like the other settings helpers this only offers ``get``/``as_dict`` and a
    handful of properties rather than the full mapping protocol.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the underlying mapping."""
        return self.data

    @property
    def enabled(self) -> List[str]:
        names = self.data.get("enabled", [])
        if not isinstance(names, list):
            return []
        return [str(name) for name in names]

    @property
    def short_flooding(self) -> Dict[str, Any]:
        section = self.data.get("short_flooding", {})
        return section if isinstance(section, dict) else {}

    @property
    def flood_max_per_interval(self) -> int:
        return int(self.short_flooding.get("max_per_interval", DEFAULT_FLOOD_MAX_PER_INTERVAL))

    @property
    def flood_interval_ms(self) -> int:
        return int(self.short_flooding.get("interval_ms", DEFAULT_FLOOD_INTERVAL_MS))

    @property
    def flood_timestamp_threshold_ms(self) -> int:
        return int(self.short_flooding.get("timestamp_threshold_ms", DEFAULT_FLOOD_TIMESTAMP_THRESHOLD_MS))
