"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from retort.db.repositories.base import BaseRepository
from retort.db.repositories.message import MessageRepository
from retort.db.repositories.profile import ProfileRepository
from retort.db.repositories.stage import ContextStageRepository
from retort.db.repositories.tag import TagRepository

__all__ = [
    "BaseRepository",
    "ContextStageRepository",
    "MessageRepository",
    "ProfileRepository",
    "TagRepository",
]
