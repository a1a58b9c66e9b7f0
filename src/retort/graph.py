"""
Conversation graph store.

A thin facade over the message and tag repositories that exposes the tree
operations callers need: append, lookup, history reconstruction, leaf
discovery and tag management. A "conversation" is never stored; it is the
root-to-leaf path reconstructed on demand.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from retort.db.repositories import MessageRepository, TagRepository
from retort.models.db import Message, MessageRole


@dataclass
class LeafSummary:
    """A leaf plus what the listing screen shows about its conversation."""

    message: Message
    tags: List[str] = field(default_factory=list)
    preview: str = ""

    @property
    def id(self) -> int:
        return self.message.id


class GraphStore:
    """Durable storage and traversal of the message tree."""

    def __init__(self, session: Session):
        self.session = session
        self.messages = MessageRepository(session)
        self.tags = TagRepository(session)

    # Messages

    def append(
        self,
        parent_id: Optional[int],
        role: MessageRole | str,
        content: str,
        metadata: Optional[dict] = None,
    ) -> int:
        """Append a message and return its id."""
        return self.messages.append(parent_id, role, content, metadata).id

    def get(self, id: int) -> Message:
        return self.messages.get_or_raise(id)

    def exists(self, id: int) -> bool:
        return self.messages.exists(id)

    def history(self, leaf_id: int) -> List[Message]:
        return self.messages.history(leaf_id)

    def children(self, id: int) -> Set[int]:
        return self.messages.children(id)

    def leaves_since(self, since: Optional[datetime] = None) -> List[Message]:
        return self.messages.leaves_since(since)

    def list_conversations(
        self, since: Optional[datetime] = None, preview_length: int = 70
    ) -> List[LeafSummary]:
        """
        One entry per leaf, newest first.

        The preview is the last user message on the leaf's path, falling back
        to the leaf's own content when the path has no user message.
        """
        summaries = []
        for leaf in self.leaves_since(since):
            last_user = self.messages.nearest_with_role(leaf.id, MessageRole.USER)
            text = last_user.content if last_user else leaf.content
            preview = text[:preview_length].replace("\n", " ")
            summaries.append(
                LeafSummary(
                    message=leaf,
                    tags=self.tags.tags_for_message(leaf.id),
                    preview=preview,
                )
            )
        return summaries

    # Tags

    def set_tag(self, name: str, message_id: int) -> Optional[int]:
        return self.tags.set_tag(name, message_id)

    def delete_tag(self, name: str) -> Optional[int]:
        return self.tags.delete_tag(name)

    def get_tag(self, name: str) -> Optional[int]:
        return self.tags.get_tag(name)

    def list_tags(self) -> Dict[str, int]:
        return self.tags.list_tags()
