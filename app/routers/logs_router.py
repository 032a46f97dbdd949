"""Logs API: plain-text thread transcripts and stored attachments."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, PlainTextResponse
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.formatters import MessageFormatter
from app.db import get_db
from app.services.attachment_service import LocalAttachmentStore
from app.services.thread_message_service import ThreadMessageService
from app.services.thread_service import ThreadService

router = APIRouter(tags=["logs"])


def get_formatter() -> MessageFormatter:
    return MessageFormatter.from_settings(get_settings())


def get_attachment_store() -> LocalAttachmentStore:
    return LocalAttachmentStore.from_settings(get_settings())


@router.get("/logs/{thread_id}", response_class=PlainTextResponse)
def get_thread_log(
    thread_id: UUID,
    db: Session = Depends(get_db),
    formatter: MessageFormatter = Depends(get_formatter),
) -> PlainTextResponse:
    """Return the full transcript of a thread, oldest entry first."""
    thread = ThreadService(db).get_thread(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail="Thread not found")
    messages = ThreadMessageService(db).get_messages(thread.id)
    return PlainTextResponse(formatter.format_log(thread, messages))


@router.get("/attachments/{attachment_id}/{filename}")
def get_attachment(
    attachment_id: str,
    filename: str,
    store: LocalAttachmentStore = Depends(get_attachment_store),
) -> FileResponse:
    """Serve a stored attachment under its original filename."""
    path = store.get_attachment_path(attachment_id)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Attachment not found")
    return FileResponse(path, filename=filename)
