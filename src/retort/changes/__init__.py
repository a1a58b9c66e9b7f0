"""Turning assistant responses into committed file edits."""

from retort.changes.applier import DEFAULT_COMMIT_MESSAGE, ChangeApplier
from retort.changes.parser import ChangeParser

__all__ = ["DEFAULT_COMMIT_MESSAGE", "ChangeApplier", "ChangeParser"]
