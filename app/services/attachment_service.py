"""
Attachment persistence.

Attachments relayed through a thread are copied out of the chat platform so
log links keep working after the original message is gone.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx

from app.config import Settings, get_settings
from app.schemas.relay import Attachment, FilePayload, SavedAttachment

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class BaseAttachmentStore(ABC):
    """Contract for attachment storage backends."""

    @abstractmethod
    async def save_attachment(self, attachment: Attachment) -> SavedAttachment:
        """Persist the attachment externally and return its stable public URL."""
        ...

    @abstractmethod
    async def to_file_payload(self, attachment: Attachment) -> FilePayload:
        """Return the attachment as a file that can be re-sent on another surface."""
        ...


class LocalAttachmentStore(BaseAttachmentStore):
    """Stores attachments on local disk; served back by the logs router."""

    def __init__(
        self,
        storage_dir: str | Path,
        public_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.storage_dir = Path(storage_dir)
        self.public_url = public_url.rstrip("/")
        self._http_client = http_client
        self._in_flight: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LocalAttachmentStore":
        settings = settings or get_settings()
        return cls(settings.attachment_storage_dir, settings.public_url)

    def get_attachment_path(self, attachment_id: str) -> Path:
        return self.storage_dir / _UNSAFE_ID_CHARS.sub("_", attachment_id)

    def get_attachment_url(self, attachment_id: str, filename: str) -> str:
        return f"{self.public_url}/attachments/{quote(attachment_id)}/{quote(filename)}"

    async def _download(self, url: str) -> bytes:
        if self._http_client is not None:
            response = await self._http_client.get(url)
            response.raise_for_status()
            return response.content
        async with httpx.AsyncClient(timeout=60, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    async def _fetch(self, attachment: Attachment) -> bytes:
        """Download an attachment. Concurrent callers for the same id share one request."""
        task = self._in_flight.get(attachment.id)
        if task is None:
            task = asyncio.ensure_future(self._download(attachment.url))
            self._in_flight[attachment.id] = task

            def _forget(done: asyncio.Task) -> None:
                if self._in_flight.get(attachment.id) is done:
                    del self._in_flight[attachment.id]

            task.add_done_callback(_forget)
        return await asyncio.shield(task)

    async def save_attachment(self, attachment: Attachment) -> SavedAttachment:
        path = self.get_attachment_path(attachment.id)
        if not path.exists():
            data = await self._fetch(attachment)
            await asyncio.to_thread(self._write_file, path, data)
            logger.debug("Saved attachment %s (%d bytes)", attachment.id, len(data))
        return SavedAttachment(
            id=attachment.id,
            url=self.get_attachment_url(attachment.id, attachment.filename),
        )

    async def to_file_payload(self, attachment: Attachment) -> FilePayload:
        path = self.get_attachment_path(attachment.id)
        if path.exists():
            data = await asyncio.to_thread(path.read_bytes)
        else:
            data = await self._fetch(attachment)
        return FilePayload(filename=attachment.filename, data=data)

    @staticmethod
    def _write_file(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".part")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
