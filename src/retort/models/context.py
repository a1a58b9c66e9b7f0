"""
File-context data models.

Plain dataclasses describing which files accompany a turn. These are not
database rows: a ``ContextSnapshot`` lives inside a user message's metadata,
and a ``ResolvedContext`` only exists while a turn is being prepared.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

READ_WRITE_KEY = "read_write_files"
READ_ONLY_KEY = "read_only_files"


@dataclass(frozen=True)
class ResolvedContext:
    """Repository-relative paths that accompany the next turn."""

    read_write: frozenset[str] = frozenset()
    read_only: frozenset[str] = frozenset()

    @property
    def paths(self) -> list[str]:
        """All paths, sorted for a stable prompt order."""
        return sorted(self.read_write | self.read_only)

    def is_read_only(self, path: str) -> bool:
        return path in self.read_only

    def __bool__(self) -> bool:
        return bool(self.read_write or self.read_only)


@dataclass(frozen=True)
class FileSnapshot:
    """A file as it was sent to the model."""

    path: str
    content_hash: str
    # Text that was hashed; kept in memory for the prompt, never persisted
    content: Optional[str] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict:
        return {"path": self.path, "content_hash": self.content_hash}

    @classmethod
    def from_dict(cls, data: dict) -> Optional["FileSnapshot"]:
        path = data.get("path") if isinstance(data, dict) else None
        if not path:
            return None
        return cls(path=path, content_hash=data.get("content_hash", ""))


@dataclass
class ContextSnapshot:
    """Content hashes of every file included in a user turn."""

    read_write_files: list[FileSnapshot] = field(default_factory=list)
    read_only_files: list[FileSnapshot] = field(default_factory=list)

    def to_resolved(self) -> ResolvedContext:
        return ResolvedContext(
            read_write=frozenset(f.path for f in self.read_write_files),
            read_only=frozenset(f.path for f in self.read_only_files),
        )

    def to_metadata(self) -> dict[str, Any]:
        """Serialize for storage in a message's metadata document."""
        return {
            READ_WRITE_KEY: [f.to_dict() for f in self.read_write_files],
            READ_ONLY_KEY: [f.to_dict() for f in self.read_only_files],
        }

    @classmethod
    def from_metadata(cls, metadata: Optional[dict]) -> "ContextSnapshot":
        """
        Read a snapshot out of a metadata document.

        Missing keys, unknown keys and malformed entries are ignored so that
        messages written by older or newer versions stay readable.
        """
        if not isinstance(metadata, dict):
            return cls()

        def _entries(key: str) -> list[FileSnapshot]:
            raw = metadata.get(key)
            if not isinstance(raw, list):
                return []
            entries = (FileSnapshot.from_dict(item) for item in raw)
            return [entry for entry in entries if entry is not None]

        return cls(
            read_write_files=_entries(READ_WRITE_KEY),
            read_only_files=_entries(READ_ONLY_KEY),
        )

    def __bool__(self) -> bool:
        return bool(self.read_write_files or self.read_only_files)
