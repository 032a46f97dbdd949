"""Thread model: one row per conversation between a user and the staff inbox."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.constants.threads import ThreadStatus
from app.db import Base
from app.models.mixins import TimestampMixin


class Thread(Base, TimestampMixin):
    """
    One tracked conversation, bound to the user's private chat and one staff channel.

    Scheduled close/suspend are plain data here; an external poller executes them.
    """

    __tablename__ = "threads"

    __table_args__ = (
        Index("ix_threads_user_id_status", "user_id", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    status = Column(String(16), nullable=False, default=ThreadStatus.OPEN.value)
    user_id = Column(String(64), nullable=False)
    user_name = Column(String(128), nullable=False, default="")
    channel_id = Column(String(128), nullable=True)

    scheduled_close_at = Column(DateTime, nullable=True)
    scheduled_close_id = Column(String(64), nullable=True)
    scheduled_close_name = Column(String(128), nullable=True)
    scheduled_close_silent = Column(Boolean, nullable=True)

    scheduled_suspend_at = Column(DateTime, nullable=True)
    scheduled_suspend_id = Column(String(64), nullable=True)
    scheduled_suspend_name = Column(String(128), nullable=True)

    alert_id = Column(String(64), nullable=True)

    # Highest message_number handed out so far; bumped atomically per staff reply
    last_message_number = Column(Integer, nullable=False, default=0)

    messages = relationship(
        "ThreadMessage",
        back_populates="thread",
        passive_deletes=True,
        order_by="[ThreadMessage.created_at, ThreadMessage.id]",
    )
