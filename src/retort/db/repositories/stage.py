"""
Context stage repository.
"""

from sqlalchemy.orm import Session

from retort.db.repositories.base import BaseRepository
from retort.models.db import ContextStage


def _without(paths: list, path: str) -> list:
    return [p for p in paths if p != path]


def _with(paths: list, path: str) -> list:
    return paths if path in paths else [*paths, path]


class ContextStageRepository(BaseRepository[ContextStage]):
    """Repository for ContextStage model.

    JSON list columns are always reassigned, never mutated in place, so the
    ORM sees every change.
    """

    def __init__(self, session: Session):
        super().__init__(ContextStage, session)

    def get_or_create(self, name: str) -> ContextStage:
        """Get a stage by name, creating an empty one on first access."""
        stage = self.get(name)
        if stage is None:
            stage = self.create(
                name=name, read_write_files=[], read_only_files=[], dropped_files=[]
            )
        return stage

    def add_file(self, name: str, path: str, read_only: bool) -> ContextStage:
        """
        Stage a file for the next turn.

        Adding a path un-drops it and moves it out of the other role's list.
        """
        stage = self.get_or_create(name)
        stage.dropped_files = _without(stage.dropped_files, path)
        if read_only:
            stage.read_write_files = _without(stage.read_write_files, path)
            stage.read_only_files = _with(stage.read_only_files, path)
        else:
            stage.read_only_files = _without(stage.read_only_files, path)
            stage.read_write_files = _with(stage.read_write_files, path)
        self.session.flush()
        return stage

    def remove_file(self, name: str, path: str) -> ContextStage:
        """Remove a file from the stage and drop it from inherited context."""
        stage = self.get_or_create(name)
        stage.read_write_files = _without(stage.read_write_files, path)
        stage.read_only_files = _without(stage.read_only_files, path)
        stage.dropped_files = _with(stage.dropped_files, path)
        self.session.flush()
        return stage

    def clear(self, name: str) -> ContextStage:
        """Reset a stage to empty."""
        stage = self.get_or_create(name)
        stage.read_write_files = []
        stage.read_only_files = []
        stage.dropped_files = []
        self.session.flush()
        return stage
