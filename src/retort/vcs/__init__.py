"""Version-control bindings."""

from retort.vcs.git import GitRepository

__all__ = ["GitRepository"]
