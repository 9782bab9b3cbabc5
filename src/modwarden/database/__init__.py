"""
Database package for modwarden.

Stores the action log of every enforcement the warden issues.

Public API:
    - Database: Coordinator owning the connection and schema
    - ModerationActions: Action log writes and queries
"""

from modwarden.database.database import Database
from modwarden.database.moderation import ModerationActions

__all__ = ["Database", "ModerationActions"]
