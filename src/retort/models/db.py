"""
SQLAlchemy database models for Retort.

Conversations are stored as a tree of messages: each message holds only the
id of its parent, children are found by query. Tags are the only mutable
pointers into the tree.
"""

import enum
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from retort.exceptions import ImmutableMessageError


def utcnow() -> datetime:
    """Current time as naive UTC (SQLite stores no timezone)."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class MessageRole(str, enum.Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(Base):
    """A single conversation turn; immutable once flushed."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("messages.id"), nullable=True, index=True
    )
    role: Mapped[MessageRole] = mapped_column(
        Enum(
            MessageRole,
            name="message_role",
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Open-ended document: context snapshot for user turns, generation
    # parameters for assistant turns. Readers must tolerate unknown keys.
    extra_data: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id}, parent_id={self.parent_id}, "
            f"role={self.role.value if self.role else None!r})>"
        )


class ChatTag(Base):
    """Named, movable pointer to a message."""

    __tablename__ = "chat_tags"

    tag: Mapped[str] = mapped_column(String(255), primary_key=True)
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messages.id"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<ChatTag(tag={self.tag!r}, message_id={self.message_id})>"


class ContextStage(Base):
    """Files explicitly prepared for the next turn."""

    __tablename__ = "context_stages"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    read_write_files: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    read_only_files: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # Paths to remove from the inherited context on the next turn
    dropped_files: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    @property
    def is_empty(self) -> bool:
        return not (self.read_write_files or self.read_only_files or self.dropped_files)

    def __repr__(self) -> str:
        return (
            f"<ContextStage(name={self.name!r}, rw={len(self.read_write_files)}, "
            f"ro={len(self.read_only_files)}, dropped={len(self.dropped_files)})>"
        )


class Profile(Base):
    """User profile: default continuation point and write boundary."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    active_chat_tag: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    project_root: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Profile(name={self.name!r}, active_chat_tag={self.active_chat_tag!r}, "
            f"project_root={self.project_root!r})>"
        )


@event.listens_for(Message, "before_update")
def _reject_message_update(mapper, connection, target: Message) -> None:
    raise ImmutableMessageError(target.id, "update")


@event.listens_for(Message, "before_delete")
def _reject_message_delete(mapper, connection, target: Message) -> None:
    raise ImmutableMessageError(target.id, "delete")
