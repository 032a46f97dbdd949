"""
Rendering of relayed messages, notices and transcripts.

Each staff reply has three renderings: what the user sees in their DMs, what
staff see in the thread channel (with the reply number), and the log body.
All methods are pure apart from reading the clock for thread timestamps.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from app.config import Settings, get_settings
from app.constants.threads import ThreadMessageType
from app.models.thread import Thread
from app.models.thread_message import ThreadMessage
from app.schemas.relay import Actor, Attachment, PlainText, PlatformMessage

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_LOG_TYPE_LABELS = {
    ThreadMessageType.FROM_USER: "FROM USER",
    ThreadMessageType.TO_USER: "TO USER",
    ThreadMessageType.SYSTEM: "SYSTEM",
    ThreadMessageType.SYSTEM_TO_USER: "SYSTEM TO USER",
    ThreadMessageType.CHAT: "CHAT",
    ThreadMessageType.COMMAND: "COMMAND",
}


def humanize_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class MessageFormatter:
    """Renders DM, thread channel and log variants of every relayed message."""

    def __init__(self, anonymous_name: str = "Moderator", thread_timestamps: bool = False) -> None:
        self.anonymous_name = anonymous_name
        self.thread_timestamps = thread_timestamps

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MessageFormatter":
        settings = settings or get_settings()
        return cls(
            anonymous_name=settings.anonymous_reply_name,
            thread_timestamps=settings.thread_timestamps,
        )

    # -------------------------------------------------------------------------
    # Building blocks
    # -------------------------------------------------------------------------

    def _public_name(self, moderator: Actor, is_anonymous: bool) -> str:
        """Name shown to the user."""
        if is_anonymous:
            return moderator.role_name or self.anonymous_name
        if moderator.role_name:
            return f"({moderator.role_name}) {moderator.name}"
        return moderator.name

    def _staff_name(self, moderator: Actor, is_anonymous: bool) -> str:
        """Name shown to staff; anonymous replies still reveal the author."""
        if is_anonymous:
            return f"(Anonymous) ({moderator.name}) {moderator.role_name or self.anonymous_name}"
        return self._public_name(moderator, False)

    def _with_timestamp(self, text: str) -> str:
        if not self.thread_timestamps:
            return text
        now = datetime.now(timezone.utc).strftime("%H:%M")
        return f"[{now}] {text}"

    @staticmethod
    def _append_attachments(text: str, attachment_links: Sequence[str]) -> str:
        for link in attachment_links:
            text = f"{text}\n\n{link}" if text else link
        return text

    def format_mention(self, user_id: Optional[str], name: Optional[str] = None) -> str:
        if name:
            return f"@{name}"
        return f"<@{user_id}>"

    def format_attachment(self, attachment: Attachment, url: str) -> str:
        return f"**Attachment:** {attachment.filename} ({humanize_size(attachment.size)})\n{url}"

    # -------------------------------------------------------------------------
    # Staff replies
    # -------------------------------------------------------------------------

    def format_staff_reply_dm(
        self, moderator: Actor, text: str, is_anonymous: bool = False
    ) -> PlainText:
        return PlainText(text=f"**{self._public_name(moderator, is_anonymous)}:** {text}")

    def format_staff_reply_thread_message(
        self,
        moderator: Actor,
        text: str,
        message_number: Optional[int],
        is_anonymous: bool = False,
    ) -> PlainText:
        result = self._with_timestamp(f"**{self._staff_name(moderator, is_anonymous)}:** {text}")
        if message_number is not None:
            result = f"`[{message_number}]` {result}"
        return PlainText(text=result)

    def format_staff_reply_log_message(
        self,
        moderator: Actor,
        text: str,
        is_anonymous: bool = False,
        attachment_links: Sequence[str] = (),
    ) -> str:
        result = f"{self._staff_name(moderator, is_anonymous)}: {text}"
        if attachment_links:
            result += "\n"
            for link in attachment_links:
                result += f"\n**Attachment:** {link}"
        return result

    def format_staff_reply_edit_notification_thread_message(
        self, moderator: Actor, thread_message: ThreadMessage, new_text: str
    ) -> PlainText:
        return PlainText(
            text=(
                f"**{moderator.name}** edited reply `{thread_message.message_number}`:\n\n"
                f"Before:\n```\n{thread_message.body}\n```\n"
                f"After:\n```\n{new_text}\n```"
            )
        )

    def format_staff_reply_edit_notification_log_message(
        self, moderator: Actor, thread_message: ThreadMessage, new_text: str
    ) -> str:
        return (
            f"{moderator.name} edited reply {thread_message.message_number}:\n\n"
            f"Before:\n{thread_message.body}\n\n"
            f"After:\n{new_text}"
        )

    def format_staff_reply_deletion_notification_thread_message(
        self, moderator: Actor, thread_message: ThreadMessage
    ) -> PlainText:
        return PlainText(
            text=(
                f"**{moderator.name}** deleted reply `{thread_message.message_number}`:\n\n"
                f"```\n{thread_message.body}\n```"
            )
        )

    def format_staff_reply_deletion_notification_log_message(
        self, moderator: Actor, thread_message: ThreadMessage
    ) -> str:
        return (
            f"{moderator.name} deleted reply {thread_message.message_number}:\n\n"
            f"{thread_message.body}"
        )

    # -------------------------------------------------------------------------
    # User replies
    # -------------------------------------------------------------------------

    def format_user_reply_thread_message(
        self, user: Actor, msg: PlatformMessage, attachment_links: Sequence[str] = ()
    ) -> PlainText:
        result = self._append_attachments(f"**{user.name}:** {msg.content}", attachment_links)
        return PlainText(text=self._with_timestamp(result))

    def format_user_reply_log_message(
        self, user: Actor, msg: PlatformMessage, attachment_links: Sequence[str] = ()
    ) -> str:
        return self._append_attachments(msg.content, attachment_links)

    # -------------------------------------------------------------------------
    # Transcript
    # -------------------------------------------------------------------------

    def format_log(self, thread: Thread, messages: Iterable[ThreadMessage]) -> str:
        """Plain-text transcript of a thread, one entry per log row, oldest first."""
        started = thread.created_at.strftime(LOG_TIMESTAMP_FORMAT)
        lines = [
            f"# Modmail thread with {thread.user_name} ({thread.user_id}) started at {started}. "
            "All times are in UTC+0."
        ]
        for message in messages:
            if message.message_type == ThreadMessageType.LEGACY:
                lines.append(message.body)
                continue

            line = f"[{message.created_at.strftime(LOG_TIMESTAMP_FORMAT)}]"
            label = _LOG_TYPE_LABELS.get(ThreadMessageType(message.message_type))
            if message.message_type in (
                ThreadMessageType.SYSTEM,
                ThreadMessageType.SYSTEM_TO_USER,
            ):
                line += f" [{label}] {message.body}"
            elif message.message_type == ThreadMessageType.TO_USER:
                line += f" [{label}] [{message.message_number}] [{message.user_name}] {message.body}"
            else:
                line += f" [{label}] [{message.user_name}] {message.body}"
            lines.append(line)

        return "\n\n".join(lines)
