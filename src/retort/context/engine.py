"""
Context engine.

Decides which files accompany a turn. The inherited context comes from the
snapshot recorded on the parent turn's user message; the prepared stage is an
overlay of explicit adds and drops made since then.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.orm import Session

from retort.db.repositories import ContextStageRepository, MessageRepository
from retort.exceptions import FileUnreadableError
from retort.models.context import (
    ContextSnapshot,
    FileSnapshot,
    ResolvedContext,
)
from retort.models.db import ContextStage, Message, MessageRole
from retort.utils.hashing import calculate_content_hash

logger = logging.getLogger(__name__)

FileReader = Callable[[str], bytes]

DEFAULT_STAGE = "default"


def make_file_reader(base_dir: Optional[Path] = None) -> FileReader:
    """Build a reader that resolves relative paths against ``base_dir``."""

    def read(path: str) -> bytes:
        target = Path(path)
        if not target.is_absolute() and base_dir is not None:
            target = base_dir / target
        return target.read_bytes()

    return read


def merge_context(
    inherited: ResolvedContext, stage: ContextStage
) -> ResolvedContext:
    """
    Overlay a prepared stage on inherited context.

    Staged roles override inherited roles for the same path, and dropped paths
    are removed last so a drop always wins over inheritance.
    """
    roles: dict[str, bool] = {}  # path -> is_read_only
    for path in inherited.read_write:
        roles[path] = False
    for path in inherited.read_only:
        roles[path] = True
    for path in stage.read_write_files:
        roles[path] = False
    for path in stage.read_only_files:
        roles[path] = True
    for path in stage.dropped_files:
        roles.pop(path, None)

    return ResolvedContext(
        read_write=frozenset(p for p, ro in roles.items() if not ro),
        read_only=frozenset(p for p, ro in roles.items() if ro),
    )


class ContextEngine:
    """Resolves and snapshots the file context for a turn."""

    def __init__(self, session: Session):
        self.session = session
        self.stages = ContextStageRepository(session)
        self.messages = MessageRepository(session)

    def get_stage(self, name: str = DEFAULT_STAGE) -> ContextStage:
        return self.stages.get_or_create(name)

    def stage_add(
        self, name: str, path: str, read_only: bool = False
    ) -> ContextStage:
        logger.debug(f"Staging {path} ({'read-only' if read_only else 'read-write'})")
        return self.stages.add_file(name, path, read_only)

    def stage_remove(self, name: str, path: str) -> ContextStage:
        logger.debug(f"Dropping {path} from stage {name}")
        return self.stages.remove_file(name, path)

    def clear_stage(self, name: str = DEFAULT_STAGE) -> ContextStage:
        return self.stages.clear(name)

    def inherited_snapshot(self, parent: Optional[Message]) -> ContextSnapshot:
        """
        Snapshot recorded for the turn that ``parent`` belongs to.

        A conversation usually continues from an assistant message; the
        snapshot lives on the nearest user message at or above it.
        """
        if parent is None:
            return ContextSnapshot()
        if parent.role == MessageRole.USER:
            source = parent
        else:
            source = self.messages.nearest_with_role(parent.id, MessageRole.USER)
        if source is None:
            return ContextSnapshot()
        return ContextSnapshot.from_metadata(source.extra_data)

    def resolve_context(
        self,
        parent_message: Optional[Message],
        stage: ContextStage,
        ignore_inherited: bool = False,
    ) -> ResolvedContext:
        """
        Compute the read-write and read-only file sets for the next turn.

        Args:
            parent_message: Message the turn continues from (None for a root)
            stage: Prepared stage to overlay
            ignore_inherited: Start from an empty context instead of the
                parent's snapshot

        Returns:
            ResolvedContext with the merged file sets
        """
        if ignore_inherited or parent_message is None:
            inherited = ResolvedContext()
        else:
            # Only paths are inherited; content is re-read for the new turn
            inherited = self.inherited_snapshot(parent_message).to_resolved()
        return merge_context(inherited, stage)

    def snapshot(
        self,
        resolved: ResolvedContext,
        file_reader: Optional[FileReader] = None,
    ) -> ContextSnapshot:
        """
        Read every resolved file and record its content hash.

        Args:
            resolved: Context to snapshot
            file_reader: Callable returning a file's bytes (defaults to
                reading relative to the current directory)

        Returns:
            ContextSnapshot with entries sorted by path

        Raises:
            FileUnreadableError: If any file is missing or unreadable; no
                partial snapshot is returned
        """
        reader = file_reader or make_file_reader()
        read_write: list[FileSnapshot] = []
        read_only: list[FileSnapshot] = []

        for path in resolved.paths:
            try:
                data = reader(path)
            except OSError as e:
                raise FileUnreadableError(path, e.strerror or str(e)) from e

            entry = FileSnapshot(
                path=path,
                content_hash=calculate_content_hash(data),
                content=data.decode("utf-8", errors="replace"),
            )
            if resolved.is_read_only(path):
                read_only.append(entry)
            else:
                read_write.append(entry)

        logger.debug(
            f"Snapshot: {len(read_write)} read-write, {len(read_only)} read-only files"
        )
        return ContextSnapshot(read_write_files=read_write, read_only_files=read_only)
