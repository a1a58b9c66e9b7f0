"""
Message repository.

Messages form a tree addressed by integer id. Each row holds only its parent
id; children and leaves are computed by query.
"""

import logging
from datetime import UTC, datetime
from typing import List, Optional, Set

from sqlalchemy import exists, select
from sqlalchemy.orm import Session, aliased

from retort.db.repositories.base import BaseRepository
from retort.exceptions import (
    CycleDetectedError,
    DanglingParentError,
    MessageNotFoundError,
)
from retort.models.db import Message, MessageRole

logger = logging.getLogger(__name__)


def _to_naive_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp
    return timestamp.astimezone(UTC).replace(tzinfo=None)


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model."""

    def __init__(self, session: Session):
        super().__init__(Message, session)

    def append(
        self,
        parent_id: Optional[int],
        role: MessageRole | str,
        content: str,
        metadata: Optional[dict] = None,
    ) -> Message:
        """
        Append a new message under ``parent_id`` (or as a new root).

        Args:
            parent_id: Id of the parent message, or None for a root
            role: Author role
            content: Message body
            metadata: Open-ended metadata document

        Returns:
            The flushed message, with its id assigned

        Raises:
            DanglingParentError: If parent_id is given but does not exist
        """
        if parent_id is not None and not self.exists(parent_id):
            raise DanglingParentError(parent_id)

        message = self.create(
            parent_id=parent_id,
            role=MessageRole(role),
            content=content,
            extra_data=dict(metadata or {}),
        )
        logger.debug(
            f"Appended {message.role.value} message {message.id} under {parent_id}"
        )
        return message

    def exists(self, id: int) -> bool:
        """Check whether a message with this id exists."""
        return bool(self.session.scalar(select(exists().where(Message.id == id))))

    def get_or_raise(self, id: int) -> Message:
        """
        Get a message by id.

        Raises:
            MessageNotFoundError: If no message has this id
        """
        message = self.get(id)
        if message is None:
            raise MessageNotFoundError(id)
        return message

    def history(self, leaf_id: int) -> List[Message]:
        """
        Reconstruct the root-first path ending at ``leaf_id``.

        Follows parent links upward and reverses. The walk is bounded by the
        total number of messages so that a corrupted (cyclic) tree is reported
        instead of looping forever.

        Raises:
            MessageNotFoundError: If leaf_id (or a referenced parent) is missing
            CycleDetectedError: If the walk exceeds the number of messages
        """
        limit = self.count()
        path: List[Message] = []
        current: Optional[int] = leaf_id

        while current is not None:
            message = self.get_or_raise(current)
            path.append(message)
            if len(path) > limit:
                raise CycleDetectedError(leaf_id, len(path))
            current = message.parent_id

        path.reverse()
        return path

    def children(self, id: int) -> Set[int]:
        """Ids of the direct children of a message."""
        rows = self.session.scalars(select(Message.id).where(Message.parent_id == id))
        return set(rows)

    def leaves_since(self, since: Optional[datetime] = None) -> List[Message]:
        """
        Messages without children, newest first.

        Args:
            since: Only include leaves created at or after this time

        Returns:
            Leaves ordered by created_at descending (ties by id descending)
        """
        child = aliased(Message)
        query = select(Message).where(~exists().where(child.parent_id == Message.id))
        if since is not None:
            query = query.where(Message.created_at >= _to_naive_utc(since))
        query = query.order_by(Message.created_at.desc(), Message.id.desc())
        return list(self.session.scalars(query))

    def nearest_with_role(
        self, id: int, role: MessageRole
    ) -> Optional[Message]:
        """
        Walk from ``id`` towards the root and return the first message with
        ``role`` (including the starting message itself).
        """
        for message in reversed(self.history(id)):
            if message.role == role:
                return message
        return None
