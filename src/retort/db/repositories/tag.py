"""
Chat tag repository.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from retort.db.repositories.base import BaseRepository
from retort.exceptions import MessageNotFoundError
from retort.models.db import ChatTag, Message

logger = logging.getLogger(__name__)


class TagRepository(BaseRepository[ChatTag]):
    """Repository for ChatTag model."""

    def __init__(self, session: Session):
        super().__init__(ChatTag, session)

    def get_tag(self, name: str) -> Optional[int]:
        """
        Get the message id a tag points to.

        Args:
            name: Tag name

        Returns:
            Message id or None if the tag does not exist
        """
        tag = self.get(name)
        return tag.message_id if tag else None

    def set_tag(self, name: str, message_id: int) -> Optional[int]:
        """
        Point a tag at a message, creating the tag if needed.

        Args:
            name: Tag name
            message_id: Target message id

        Returns:
            The message id the tag previously pointed to, or None if new

        Raises:
            MessageNotFoundError: If the target message does not exist
        """
        if self.session.get(Message, message_id) is None:
            raise MessageNotFoundError(message_id)

        tag = self.get(name)
        if tag is None:
            self.create(tag=name, message_id=message_id)
            logger.debug(f"Created tag {name!r} -> {message_id}")
            return None

        previous = tag.message_id
        tag.message_id = message_id
        self.session.flush()
        logger.debug(f"Moved tag {name!r} from {previous} to {message_id}")
        return previous

    def delete_tag(self, name: str) -> Optional[int]:
        """
        Delete a tag.

        Returns:
            The message id it pointed to, or None if the tag did not exist
        """
        tag = self.get(name)
        if tag is None:
            return None
        message_id = tag.message_id
        self.session.delete(tag)
        self.session.flush()
        return message_id

    def list_tags(self) -> Dict[str, int]:
        """All tags as a name -> message id mapping, ordered by name."""
        rows = self.session.execute(
            select(ChatTag.tag, ChatTag.message_id).order_by(ChatTag.tag.asc())
        )
        return {tag: message_id for tag, message_id in rows}

    def tags_for_message(self, message_id: int) -> List[str]:
        """Names of all tags pointing at a message."""
        rows = self.session.scalars(
            select(ChatTag.tag)
            .where(ChatTag.message_id == message_id)
            .order_by(ChatTag.tag.asc())
        )
        return list(rows)
