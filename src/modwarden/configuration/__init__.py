"""
Configuration management for modwarden.

- **app_configuration.py**: File-locked YAML loader for global settings such as
  the homeserver, management room, protected rooms, subscribed policy lists,
  no-op mode and membership retrieval mode. Falls back gracefully on missing
  or malformed config files.

- **protection_settings.py**: Typed accessors for the ``protections`` section
  (enabled protections and flood thresholds).
"""
