from __future__ import annotations
import os
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from modwarden.configuration.protection_settings import ProtectionSettings
from modwarden.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path(os.getenv("MODWARDEN_CONFIG", "./config/app_config.yml")).resolve()

DEFAULT_REDACT_REASONS = ["spam", "advertising"]


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` (or the file
    named by ``MODWARDEN_CONFIG``), exposes dictionary-like access helpers and
    typed shortcuts for every setting the warden reads. A missing or broken
    file is logged and behaves like an empty mapping.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
            return {}
        return data

    def _section(self, key: str) -> Dict[str, Any]:
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file, replace the in-memory cache and return it."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        This is the internal cache; callers should not mutate it.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def homeserver_url(self) -> str:
        return str(self._data.get("homeserver_url") or "").rstrip("/")

    @property
    def management_room(self) -> str:
        return str(self._data.get("management_room") or "")

    @property
    def protected_rooms(self) -> List[str]:
        rooms = self._data.get("protected_rooms") or []
        if not isinstance(rooms, list):
            logger.warning("[APP CONFIGURATION] 'protected_rooms' must be a list; ignoring it.")
            return []
        return [str(room) for room in rooms]

    @property
    def ban_lists(self) -> Dict[str, str]:
        """Return the configured policy lists as ``{shortcode: room_id}``."""
        lists = self._section("ban_lists")
        return {str(shortcode): str(room_id) for shortcode, room_id in lists.items()}

    @property
    def noop(self) -> bool:
        return bool(self._data.get("noop", False))

    @property
    def faster_membership_checks(self) -> bool:
        return bool(self._data.get("faster_membership_checks", False))

    @property
    def ignore_left_users(self) -> bool:
        return bool(self._data.get("ignore_left_users", False))

    @property
    def automatically_redact_for_reasons(self) -> List[str]:
        """Return the reason globs that trigger a redaction before a sanction."""
        reasons = self._data.get("automatically_redact_for_reasons")
        if reasons is None:
            return list(DEFAULT_REDACT_REASONS)
        if not isinstance(reasons, list):
            return []
        return [str(reason) for reason in reasons]

    @property
    def protections(self) -> ProtectionSettings:
        return ProtectionSettings(self._section("protections"))

    @property
    def reconcile_interval_seconds(self) -> float:
        return float(self._data.get("reconcile_interval_seconds", 300.0))

    @property
    def sync_timeout_ms(self) -> int:
        return int(self._section("sync").get("timeout_ms", 30000))

    @property
    def action_retention_days(self) -> int:
        """Days of action log kept; 0 or less keeps everything."""
        return int(self._section("database").get("retention_days", 30))

    @property
    def database_path(self) -> Path:
        return Path(self._section("database").get("path", "./data/modwarden.db")).resolve()


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
