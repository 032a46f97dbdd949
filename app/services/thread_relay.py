"""
ThreadRelay: keeps a user's DMs and the staff thread channel in sync.

Every relayed message is sent to the opposite surface, written to the thread
log, and cross-linked by the ids it produced on each surface. New activity
interrupts a pending scheduled close and fires an armed alert.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session as DBSession

from app.adapters.base import (
    BaseChatTransport,
    ChannelNotFoundError,
    MessageNotFoundError,
    TransportError,
    UserUnreachableError,
)
from app.config import Settings, get_settings
from app.constants.threads import (
    EMPTY_LOG_BODY,
    USER_UNREACHABLE_MESSAGE,
    ThreadMessageType,
    ThreadStatus,
)
from app.core.formatters import MessageFormatter
from app.models.thread import Thread
from app.models.thread_message import ThreadMessage
from app.schemas.relay import (
    Actor,
    Attachment,
    Delivered,
    FilePayload,
    MessageContent,
    PlainText,
    PlatformMessage,
    SendResult,
    SentMessage,
    TargetGone,
    to_message_content,
)
from app.schemas.thread import ThreadMessageCreate, ThreadMessageUpdate, ThreadUpdate
from app.services.attachment_service import BaseAttachmentStore, LocalAttachmentStore
from app.services.thread_message_service import ThreadMessageService
from app.services.thread_service import ThreadService
from app.utils.text import chunk_text

logger = logging.getLogger(__name__)

Content = Union[str, MessageContent]


class ThreadRelay:
    """Relay, log and lifecycle operations for one thread."""

    def __init__(
        self,
        db: DBSession,
        thread: Thread,
        transport: BaseChatTransport,
        attachment_store: BaseAttachmentStore,
        formatter: MessageFormatter,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.thread = thread
        self.transport = transport
        self.attachment_store = attachment_store
        self.formatter = formatter
        self.settings = settings or get_settings()
        self._threads = ThreadService(db)
        self._messages = ThreadMessageService(db)

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def _send_chunked(
        self, channel_id: str, content: Content, files: Sequence[FilePayload] = ()
    ) -> SentMessage:
        """
        Send content to a channel. Plain text is chunked and files ride on the
        last chunk. Returns the first message sent, carrying the full text.
        """
        content = to_message_content(content)
        if not isinstance(content, PlainText):
            return await self.transport.send_message(channel_id, content, files)

        chunks = chunk_text(content.text)
        first: Optional[SentMessage] = None
        for i, chunk in enumerate(chunks):
            is_last = i == len(chunks) - 1
            sent = await self.transport.send_message(
                channel_id, PlainText(text=chunk), files if is_last else ()
            )
            first = first or sent
        return first.model_copy(update={"content": content.text})

    async def get_dm_channel(self) -> Optional[str]:
        return await self.transport.open_private_channel(self.thread.user_id)

    async def _send_dm_to_user(
        self, content: Content, files: Sequence[FilePayload] = ()
    ) -> SentMessage:
        dm_channel_id = await self.get_dm_channel()
        if not dm_channel_id:
            raise UserUnreachableError(USER_UNREACHABLE_MESSAGE)
        return await self._send_chunked(dm_channel_id, content, files)

    async def _deliver_to_thread_channel(
        self, content: Content, files: Sequence[FilePayload] = ()
    ) -> SendResult:
        channel_id = self.thread.channel_id
        if not channel_id:
            return TargetGone(channel_id=None)
        try:
            sent = await self._send_chunked(channel_id, content, files)
        except ChannelNotFoundError:
            return TargetGone(channel_id=channel_id)
        return Delivered(message=sent)

    async def _post_to_thread_channel(
        self, content: Content, files: Sequence[FilePayload] = ()
    ) -> Optional[SentMessage]:
        """Send to the staff channel; if the channel is gone, close the thread and return None."""
        result = await self._deliver_to_thread_channel(content, files)
        if isinstance(result, TargetGone):
            if self.thread.status != ThreadStatus.CLOSED.value:
                logger.info(
                    "Failed to send message to thread channel for %s because the channel "
                    "no longer exists. Auto-closing the thread.",
                    self.thread.user_name,
                )
                await self.close(suppress_system_message=True)
            return None
        return result.message

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    def _add_thread_message(self, data: ThreadMessageCreate) -> ThreadMessage:
        return self._messages.create_message(self.thread.id, data)

    def _set_inbox_message_id(self, thread_message: ThreadMessage, inbox_message_id: str) -> None:
        self._messages.update_message(
            thread_message.id, ThreadMessageUpdate(inbox_message_id=inbox_message_id)
        )

    def _update_thread(self, **fields) -> None:
        updated = self._threads.update_thread(self.thread.id, ThreadUpdate(**fields))
        if updated is not None:
            self.thread = updated

    # -------------------------------------------------------------------------
    # Staff -> user
    # -------------------------------------------------------------------------

    async def _prepare_reply_attachments(
        self, attachments: Sequence[Attachment]
    ) -> Tuple[List[FilePayload], List[str]]:
        async def prepare(attachment: Attachment) -> Tuple[FilePayload, str]:
            file, saved = await asyncio.gather(
                self.attachment_store.to_file_payload(attachment),
                self.attachment_store.save_attachment(attachment),
            )
            return file, saved.url

        prepared = await asyncio.gather(*(prepare(a) for a in attachments))
        return [file for file, _ in prepared], [url for _, url in prepared]

    async def reply_to_user(
        self,
        moderator: Actor,
        text: str,
        attachments: Sequence[Attachment] = (),
        is_anonymous: bool = False,
    ) -> bool:
        """
        Send a staff reply to the user, log it and mirror it in the thread channel.

        Returns whether the reply reached the user. When the DM fails a notice
        is posted to staff and nothing is logged.
        """
        files, attachment_links = await self._prepare_reply_attachments(attachments)

        dm_content = self.formatter.format_staff_reply_dm(moderator, text, is_anonymous)
        try:
            dm_message = await self._send_dm_to_user(dm_content, files)
        except TransportError as e:
            logger.warning("Could not reply to user %s in thread %s: %s", self.thread.user_id, self.thread.id, e)
            await self.post_system_message(f"Error while replying to user: {e}")
            return False

        log_content = self.formatter.format_staff_reply_log_message(
            moderator, text, is_anonymous, attachment_links
        )
        thread_message = self._add_thread_message(
            ThreadMessageCreate(
                message_type=ThreadMessageType.TO_USER,
                user_id=moderator.id,
                user_name=moderator.name,
                body=log_content,
                is_anonymous=is_anonymous,
                dm_channel_id=dm_message.channel_id,
                dm_message_id=dm_message.message_id,
            )
        )

        inbox_content = self.formatter.format_staff_reply_thread_message(
            moderator, text, thread_message.message_number, is_anonymous
        )
        inbox_message = await self._post_to_thread_channel(inbox_content, files)
        if inbox_message:
            self._set_inbox_message_id(thread_message, inbox_message.message_id)

        if self.thread.scheduled_close_at:
            await self.cancel_scheduled_close()
            await self.post_system_message(
                "Cancelling scheduled closing of this thread due to new reply"
            )

        return True

    # -------------------------------------------------------------------------
    # User -> staff
    # -------------------------------------------------------------------------

    async def receive_user_reply(self, msg: PlatformMessage) -> ThreadMessage:
        """Log a message the user sent in DMs and mirror it in the thread channel."""
        attachment_files: List[FilePayload] = []
        thread_formatted_attachments: List[str] = []
        log_formatted_attachments: List[str] = []

        for attachment in msg.attachments:
            saved = await self.attachment_store.save_attachment(attachment)
            formatted = self.formatter.format_attachment(attachment, saved.url)
            log_formatted_attachments.append(formatted)

            # Small files are re-uploaded to staff, larger ones are only linked
            if (
                self.settings.relay_small_attachments_as_attachments
                and attachment.size <= self.settings.small_attachment_limit
            ):
                attachment_files.append(await self.attachment_store.to_file_payload(attachment))
            else:
                thread_formatted_attachments.append(formatted)

        log_content = self.formatter.format_user_reply_log_message(
            msg.author, msg, log_formatted_attachments
        )
        thread_message = self._add_thread_message(
            ThreadMessageCreate(
                message_type=ThreadMessageType.FROM_USER,
                user_id=self.thread.user_id,
                user_name=msg.author.name,
                body=log_content,
                dm_channel_id=msg.channel_id,
                dm_message_id=msg.message_id,
            )
        )

        inbox_content = self.formatter.format_user_reply_thread_message(
            msg.author, msg, thread_formatted_attachments
        )
        inbox_message = await self._post_to_thread_channel(inbox_content, attachment_files)
        if inbox_message:
            self._set_inbox_message_id(thread_message, inbox_message.message_id)

        if self.thread.scheduled_close_at:
            scheduled_by = self.formatter.format_mention(
                self.thread.scheduled_close_id, self.thread.scheduled_close_name
            )
            await self.cancel_scheduled_close()
            await self.post_system_message(
                f"{scheduled_by} Thread that was scheduled to be closed got a new reply. Cancelling."
            )

        if self.thread.alert_id:
            alerted = self.formatter.format_mention(self.thread.alert_id)
            await self.set_alert(None)
            await self.post_system_message(f"{alerted} New message from {self.thread.user_name}")

        return thread_message

    # -------------------------------------------------------------------------
    # System and log-only messages
    # -------------------------------------------------------------------------

    async def post_system_message(
        self,
        content: Content,
        files: Sequence[FilePayload] = (),
        save_to_log: bool = True,
        log_body: Optional[str] = None,
    ) -> Optional[ThreadMessage]:
        """Post a notice to the thread channel and, unless disabled, log it as SYSTEM."""
        msg = await self._post_to_thread_channel(content, files)
        if msg is None or not save_to_log:
            return None
        return self._add_thread_message(
            ThreadMessageCreate(
                message_type=ThreadMessageType.SYSTEM,
                user_id=None,
                user_name="",
                body=log_body or msg.content or EMPTY_LOG_BODY,
                inbox_message_id=msg.message_id,
            )
        )

    async def send_system_message_to_user(
        self,
        content: Content,
        files: Sequence[FilePayload] = (),
        save_to_log: bool = True,
        log_body: Optional[str] = None,
    ) -> Optional[ThreadMessage]:
        """Send a notice to the user's DMs and, unless disabled, log it as SYSTEM_TO_USER."""
        msg = await self._send_dm_to_user(content, files)
        if not save_to_log:
            return None
        return self._add_thread_message(
            ThreadMessageCreate(
                message_type=ThreadMessageType.SYSTEM_TO_USER,
                user_id=None,
                user_name="",
                body=log_body or msg.content or EMPTY_LOG_BODY,
                dm_channel_id=msg.channel_id,
                dm_message_id=msg.message_id,
            )
        )

    async def post_non_log_message(
        self, content: Content, files: Sequence[FilePayload] = ()
    ) -> Optional[SentMessage]:
        return await self._post_to_thread_channel(content, files)

    def save_chat_message_to_logs(self, msg: PlatformMessage) -> ThreadMessage:
        return self._add_thread_message(
            ThreadMessageCreate(
                message_type=ThreadMessageType.CHAT,
                user_id=msg.author.id,
                user_name=msg.author.name,
                body=msg.content,
                dm_channel_id=msg.channel_id,
                dm_message_id=msg.message_id,
            )
        )

    def save_command_message_to_logs(self, msg: PlatformMessage) -> ThreadMessage:
        return self._add_thread_message(
            ThreadMessageCreate(
                message_type=ThreadMessageType.COMMAND,
                user_id=msg.author.id,
                user_name=msg.author.name,
                body=msg.content,
                dm_channel_id=msg.channel_id,
                dm_message_id=msg.message_id,
            )
        )

    def update_chat_message_in_logs(self, msg: PlatformMessage) -> None:
        self._messages.update_body_by_dm_message_id(self.thread.id, msg.message_id, msg.content)

    def delete_chat_message_from_logs(self, message_id: str) -> None:
        self._messages.delete_by_dm_message_id(self.thread.id, message_id)

    def get_thread_messages(self) -> List[ThreadMessage]:
        return self._messages.get_messages(self.thread.id)

    def find_thread_message_by_message_number(self, message_number: int) -> Optional[ThreadMessage]:
        return self._messages.find_by_message_number(self.thread.id, message_number)

    def get_log_url(self) -> str:
        return f"{self.settings.public_url.rstrip('/')}/logs/{self.thread.id}"

    # -------------------------------------------------------------------------
    # Editing and deleting staff replies
    # -------------------------------------------------------------------------

    async def _edit_surface_message(
        self, channel_id: Optional[str], message_id: Optional[str], content: MessageContent
    ) -> None:
        if not channel_id or not message_id:
            return
        try:
            await self.transport.edit_message(channel_id, message_id, content)
        except MessageNotFoundError:
            logger.warning("Message %s in %s is gone, not editing it", message_id, channel_id)

    async def _delete_surface_message(
        self, channel_id: Optional[str], message_id: Optional[str]
    ) -> None:
        if not channel_id or not message_id:
            return
        try:
            await self.transport.delete_message(channel_id, message_id)
        except MessageNotFoundError:
            logger.warning("Message %s in %s is already gone", message_id, channel_id)

    async def edit_staff_reply(
        self,
        moderator: Actor,
        thread_message: ThreadMessage,
        new_text: str,
        quiet: bool = False,
    ) -> None:
        """
        Edit a relayed staff reply in place on both surfaces.

        The log row keeps its number, ids and body; unless quiet, the edit is
        recorded as a separate notice.
        """
        is_anonymous = bool(thread_message.is_anonymous)
        formatted_thread_message = self.formatter.format_staff_reply_thread_message(
            moderator, new_text, thread_message.message_number, is_anonymous
        )
        formatted_dm = self.formatter.format_staff_reply_dm(moderator, new_text, is_anonymous)

        await self._edit_surface_message(
            thread_message.dm_channel_id, thread_message.dm_message_id, formatted_dm
        )
        await self._edit_surface_message(
            self.thread.channel_id, thread_message.inbox_message_id, formatted_thread_message
        )

        if not quiet:
            thread_notification = self.formatter.format_staff_reply_edit_notification_thread_message(
                moderator, thread_message, new_text
            )
            log_notification = self.formatter.format_staff_reply_edit_notification_log_message(
                moderator, thread_message, new_text
            )
            await self.post_system_message(thread_notification, log_body=log_notification)

    async def delete_staff_reply(
        self, moderator: Actor, thread_message: ThreadMessage, quiet: bool = False
    ) -> None:
        """Delete a relayed staff reply on both surfaces. The log row is kept."""
        await self._delete_surface_message(thread_message.dm_channel_id, thread_message.dm_message_id)
        await self._delete_surface_message(self.thread.channel_id, thread_message.inbox_message_id)

        if not quiet:
            thread_notification = self.formatter.format_staff_reply_deletion_notification_thread_message(
                moderator, thread_message
            )
            log_notification = self.formatter.format_staff_reply_deletion_notification_log_message(
                moderator, thread_message
            )
            await self.post_system_message(thread_notification, log_body=log_notification)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self, suppress_system_message: bool = False, silent: bool = False) -> None:
        """
        Close the thread and delete its staff channel.

        Pending scheduled close/suspend fields are left untouched; callers
        cancel them when relevant.
        """
        if not suppress_system_message:
            logger.info("Closing thread %s", self.thread.id)
            notice = "Closing thread silently..." if silent else "Closing thread..."
            try:
                await self.post_system_message(notice)
            except TransportError as e:
                logger.warning("Could not post closing notice in thread %s: %s", self.thread.id, e)

        self._update_thread(status=ThreadStatus.CLOSED)

        channel_id = self.thread.channel_id
        if channel_id:
            logger.info("Deleting channel %s", channel_id)
            try:
                await self.transport.delete_channel(channel_id, "Thread closed")
            except ChannelNotFoundError:
                logger.info("Channel %s was already deleted", channel_id)

    async def suspend(self) -> None:
        self._update_thread(
            status=ThreadStatus.SUSPENDED,
            scheduled_suspend_at=None,
            scheduled_suspend_id=None,
            scheduled_suspend_name=None,
        )

    async def unsuspend(self) -> None:
        self._update_thread(status=ThreadStatus.OPEN)

    async def schedule_close(self, time: datetime, user: Actor, silent: bool = False) -> None:
        self._update_thread(
            scheduled_close_at=time,
            scheduled_close_id=user.id,
            scheduled_close_name=user.name,
            scheduled_close_silent=silent,
        )

    async def cancel_scheduled_close(self) -> None:
        self._update_thread(
            scheduled_close_at=None,
            scheduled_close_id=None,
            scheduled_close_name=None,
            scheduled_close_silent=None,
        )

    async def schedule_suspend(self, time: datetime, user: Actor) -> None:
        self._update_thread(
            scheduled_suspend_at=time,
            scheduled_suspend_id=user.id,
            scheduled_suspend_name=user.name,
        )

    async def cancel_scheduled_suspend(self) -> None:
        self._update_thread(
            scheduled_suspend_at=None,
            scheduled_suspend_id=None,
            scheduled_suspend_name=None,
        )

    async def set_alert(self, user_id: Optional[str]) -> None:
        self._update_thread(alert_id=user_id)


def create_thread_relay(
    db: DBSession,
    thread: Thread,
    transport: BaseChatTransport,
    settings: Optional[Settings] = None,
) -> ThreadRelay:
    """Build a ThreadRelay with the local attachment store and settings-driven formatting."""
    settings = settings or get_settings()
    return ThreadRelay(
        db,
        thread,
        transport,
        attachment_store=LocalAttachmentStore.from_settings(settings),
        formatter=MessageFormatter.from_settings(settings),
        settings=settings,
    )
