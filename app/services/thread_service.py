"""Thread CRUD, lifecycle field updates and due scheduled actions."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from app.constants.threads import ThreadStatus
from app.models.thread import Thread
from app.schemas.thread import ThreadCreate, ThreadUpdate


class ThreadService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_thread(self, thread_id: UUID) -> Optional[Thread]:
        return self.db.query(Thread).filter(Thread.id == thread_id).first()

    def get_open_thread_by_user_id(self, user_id: str) -> Optional[Thread]:
        return (
            self.db.query(Thread)
            .filter(Thread.user_id == user_id, Thread.status == ThreadStatus.OPEN.value)
            .first()
        )

    def get_threads_by_user_id(self, user_id: str) -> List[Thread]:
        """All threads of a user, oldest first."""
        return (
            self.db.query(Thread)
            .filter(Thread.user_id == user_id)
            .order_by(Thread.created_at.asc())
            .all()
        )

    def create_thread(self, data: ThreadCreate) -> Thread:
        """
        Open a new thread. Raises ValueError if the user already has an open
        thread; a user has at most one.
        """
        if (
            data.status == ThreadStatus.OPEN
            and self.get_open_thread_by_user_id(data.user_id) is not None
        ):
            raise ValueError(f"User {data.user_id!r} already has an open thread")
        thread = Thread(**data.model_dump(mode="json"))
        self.db.add(thread)
        self.db.commit()
        self.db.refresh(thread)
        return thread

    def update_thread(self, thread_id: UUID, data: ThreadUpdate) -> Optional[Thread]:
        """Write every explicitly set field in a single UPDATE."""
        thread = self.get_thread(thread_id)
        if thread is None:
            return None
        update_data = data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            if isinstance(value, ThreadStatus):
                value = value.value
            setattr(thread, key, value)
        self.db.commit()
        self.db.refresh(thread)
        return thread

    def get_threads_due_for_close(self, now: datetime) -> List[Thread]:
        return (
            self.db.query(Thread)
            .filter(
                Thread.status == ThreadStatus.OPEN.value,
                Thread.scheduled_close_at.is_not(None),
                Thread.scheduled_close_at <= now,
            )
            .order_by(Thread.scheduled_close_at.asc())
            .all()
        )

    def get_threads_due_for_suspend(self, now: datetime) -> List[Thread]:
        return (
            self.db.query(Thread)
            .filter(
                Thread.status == ThreadStatus.OPEN.value,
                Thread.scheduled_suspend_at.is_not(None),
                Thread.scheduled_suspend_at <= now,
            )
            .order_by(Thread.scheduled_suspend_at.asc())
            .all()
        )
