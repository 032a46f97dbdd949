"""Pydantic schemas for Thread and ThreadMessage."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.constants.threads import ThreadMessageType, ThreadStatus

# -----------------------------------------------------------------------------
# Thread schemas
# -----------------------------------------------------------------------------


class ThreadCreate(BaseModel):
    """Schema for opening a thread."""

    user_id: str
    user_name: str = ""
    channel_id: str
    status: ThreadStatus = ThreadStatus.OPEN


class ThreadUpdate(BaseModel):
    """
    Schema for updating a thread. Only explicitly set fields are written,
    so passing None clears a column.
    """

    status: Optional[ThreadStatus] = None
    user_name: Optional[str] = None
    channel_id: Optional[str] = None
    scheduled_close_at: Optional[datetime] = None
    scheduled_close_id: Optional[str] = None
    scheduled_close_name: Optional[str] = None
    scheduled_close_silent: Optional[bool] = None
    scheduled_suspend_at: Optional[datetime] = None
    scheduled_suspend_id: Optional[str] = None
    scheduled_suspend_name: Optional[str] = None
    alert_id: Optional[str] = None


class ThreadRead(BaseModel):
    """Thread as stored in DB."""

    id: UUID
    status: ThreadStatus
    user_id: str
    user_name: str
    channel_id: Optional[str] = None
    scheduled_close_at: Optional[datetime] = None
    scheduled_close_id: Optional[str] = None
    scheduled_close_name: Optional[str] = None
    scheduled_close_silent: Optional[bool] = None
    scheduled_suspend_at: Optional[datetime] = None
    scheduled_suspend_id: Optional[str] = None
    scheduled_suspend_name: Optional[str] = None
    alert_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# -----------------------------------------------------------------------------
# ThreadMessage schemas
# -----------------------------------------------------------------------------


class ThreadMessageCreate(BaseModel):
    """Schema for a new log entry. message_number is never supplied by callers."""

    message_type: ThreadMessageType
    user_id: Optional[str] = None
    user_name: str = ""
    body: str = ""
    is_anonymous: bool = False
    dm_channel_id: Optional[str] = None
    dm_message_id: Optional[str] = None
    inbox_message_id: Optional[str] = None


class ThreadMessageUpdate(BaseModel):
    """Mutable parts of a log entry: the surface linkage and the body."""

    body: Optional[str] = None
    dm_channel_id: Optional[str] = None
    dm_message_id: Optional[str] = None
    inbox_message_id: Optional[str] = None


class ThreadMessageRead(BaseModel):
    """Log entry as stored in DB."""

    id: int
    thread_id: UUID
    message_type: ThreadMessageType
    message_number: Optional[int] = None
    user_id: Optional[str] = None
    user_name: str = ""
    body: str = ""
    is_anonymous: bool = False
    dm_channel_id: Optional[str] = None
    dm_message_id: Optional[str] = None
    inbox_message_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
