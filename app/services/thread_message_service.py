"""ThreadMessage CRUD, ordered retrieval and atomic reply numbering."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session as DBSession

from app.constants.threads import ThreadMessageType
from app.models.thread import Thread
from app.models.thread_message import ThreadMessage
from app.schemas.thread import ThreadMessageCreate, ThreadMessageUpdate


class ThreadMessageService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def _allocate_message_number(self, thread_id: UUID) -> int:
        """
        Bump the thread's reply counter and return the new value.

        A single UPDATE ... RETURNING, so concurrent writers serialize on the
        thread row. Must run in the same transaction as the insert that uses
        the number; a rollback returns the number.
        """
        stmt = (
            update(Thread)
            .where(Thread.id == thread_id)
            .values(last_message_number=Thread.last_message_number + 1)
            .returning(Thread.last_message_number)
            .execution_options(synchronize_session=False)
        )
        number = self.db.execute(stmt).scalar_one_or_none()
        if number is None:
            raise ValueError(f"Thread {thread_id} does not exist")
        return int(number)

    def create_message(self, thread_id: UUID, data: ThreadMessageCreate) -> ThreadMessage:
        """Insert a log entry. TO_USER entries get the next message_number."""
        message_number = None
        try:
            if data.message_type == ThreadMessageType.TO_USER:
                message_number = self._allocate_message_number(thread_id)
            dump = data.model_dump()
            dump["message_type"] = data.message_type.value
            msg = ThreadMessage(
                thread_id=thread_id,
                message_number=message_number,
                **dump,
            )
            self.db.add(msg)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(msg)
        return msg

    def update_message(
        self, message_id: int, data: ThreadMessageUpdate
    ) -> Optional[ThreadMessage]:
        msg = self.get_message(message_id)
        if msg is None:
            return None
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(msg, key, value)
        self.db.commit()
        self.db.refresh(msg)
        return msg

    def get_message(self, message_id: int) -> Optional[ThreadMessage]:
        return self.db.query(ThreadMessage).filter(ThreadMessage.id == message_id).first()

    def get_messages(self, thread_id: UUID) -> List[ThreadMessage]:
        """All log entries of a thread in display order: created_at, then id."""
        return (
            self.db.query(ThreadMessage)
            .filter(ThreadMessage.thread_id == thread_id)
            .order_by(ThreadMessage.created_at.asc(), ThreadMessage.id.asc())
            .all()
        )

    def find_by_message_number(
        self, thread_id: UUID, message_number: int
    ) -> Optional[ThreadMessage]:
        return (
            self.db.query(ThreadMessage)
            .filter(
                ThreadMessage.thread_id == thread_id,
                ThreadMessage.message_number == message_number,
            )
            .first()
        )

    def update_body_by_dm_message_id(
        self, thread_id: UUID, dm_message_id: str, body: str
    ) -> int:
        """Rewrite the body of a CHAT entry. Other entry types are history and never match."""
        updated = (
            self.db.query(ThreadMessage)
            .filter(
                ThreadMessage.thread_id == thread_id,
                ThreadMessage.message_type == ThreadMessageType.CHAT.value,
                ThreadMessage.dm_message_id == dm_message_id,
            )
            .update({ThreadMessage.body: body}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated

    def delete_by_dm_message_id(self, thread_id: UUID, dm_message_id: str) -> int:
        # Platform message ids are only unique per chat, so match CHAT entries only
        deleted = (
            self.db.query(ThreadMessage)
            .filter(
                ThreadMessage.thread_id == thread_id,
                ThreadMessage.message_type == ThreadMessageType.CHAT.value,
                ThreadMessage.dm_message_id == dm_message_id,
            )
            .delete(synchronize_session="fetch")
        )
        self.db.commit()
        return deleted
