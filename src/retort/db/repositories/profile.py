"""
Profile repository.
"""

from pathlib import Path
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from retort.db.repositories.base import BaseRepository
from retort.models.db import Profile


class ProfileRepository(BaseRepository[Profile]):
    """Repository for Profile model."""

    def __init__(self, session: Session):
        super().__init__(Profile, session)

    def get_by_name(self, name: str) -> Optional[Profile]:
        return self.session.scalar(select(Profile).where(Profile.name == name))

    def get_or_create(self, name: str = "default") -> Profile:
        """Get a profile by name, creating it with no settings if missing."""
        profile = self.get_by_name(name)
        if profile is None:
            profile = self.create(name=name)
        return profile

    def set_active_chat_tag(self, tag: Optional[str], name: str = "default") -> Profile:
        profile = self.get_or_create(name)
        profile.active_chat_tag = tag
        self.session.flush()
        return profile

    def set_project_root(self, path: Path | str, name: str = "default") -> Profile:
        """
        Store the canonical form of ``path`` as the project root.

        Raises:
            FileNotFoundError: If the directory does not exist
            NotADirectoryError: If the path is not a directory
        """
        canonical = Path(path).expanduser().resolve(strict=True)
        if not canonical.is_dir():
            raise NotADirectoryError(f"Not a directory: {canonical}")
        profile = self.get_or_create(name)
        profile.project_root = str(canonical)
        self.session.flush()
        return profile
