"""ThreadMessage model: one log entry per relayed message, notice or log-only event."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import utcnow


class ThreadMessage(Base):
    """
    Log entry of a thread. The row is history: editing or deleting the live
    platform messages never removes it. Only the surface linkage ids are
    filled in after creation.
    """

    __tablename__ = "thread_messages"

    __table_args__ = (
        UniqueConstraint(
            "thread_id", "message_number", name="uq_thread_messages_thread_number"
        ),
        Index("ix_thread_messages_thread_id_created_at", "thread_id", "created_at"),
        Index("ix_thread_messages_thread_id_dm_message_id", "thread_id", "dm_message_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
    )
    message_type = Column(String(32), nullable=False)
    message_number = Column(Integer, nullable=True)  # TO_USER only
    user_id = Column(String(64), nullable=True)
    user_name = Column(String(128), nullable=False, default="")
    body = Column(Text, nullable=False, default="")
    is_anonymous = Column(Boolean, nullable=False, default=False)
    dm_channel_id = Column(String(128), nullable=True)
    dm_message_id = Column(String(128), nullable=True)
    inbox_message_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    thread = relationship("Thread", back_populates="messages")
