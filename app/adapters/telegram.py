"""
Telegram chat transport.

Uses python-telegram-bot (async API). The user side is the user's private
chat with the bot; the staff side is one forum topic per thread inside the
inbox supergroup, addressed as "<chat_id>:<topic_id>".
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, AsyncIterator, Optional, Sequence

from telegram import Bot, InputFile
from telegram.error import BadRequest, Forbidden, TelegramError

from app.adapters.base import (
    BaseChatTransport,
    ChannelNotFoundError,
    MessageNotFoundError,
    TransportError,
    UserUnreachableError,
)
from app.schemas.relay import FilePayload, MessageContent, RichPayload, SentMessage

logger = logging.getLogger(__name__)

_CHANNEL_GONE_MARKERS = (
    "chat not found",
    "message thread not found",
    "topic_deleted",
    "topic_id_invalid",
)
_MESSAGE_GONE_MARKERS = (
    "message to edit not found",
    "message to delete not found",
    "message can't be deleted",
    "message_id_invalid",
)


def build_inbox_channel_id(chat_id: int | str, topic_id: int | str) -> str:
    return f"{chat_id}:{topic_id}"


def parse_channel_id(channel_id: str) -> tuple[int, Optional[int]]:
    """Split "<chat_id>[:<topic_id>]" into Bot API arguments."""
    chat_id, _, topic_id = str(channel_id).partition(":")
    try:
        return int(chat_id), (int(topic_id) if topic_id else None)
    except ValueError as e:
        raise ChannelNotFoundError(f"Invalid Telegram channel id: {channel_id!r}") from e


@contextlib.asynccontextmanager
async def _translate_errors() -> AsyncIterator[None]:
    """Map python-telegram-bot errors onto the transport error taxonomy."""
    try:
        yield
    except Forbidden as e:
        raise UserUnreachableError(e.message) from e
    except BadRequest as e:
        text = e.message.lower()
        if any(marker in text for marker in _CHANNEL_GONE_MARKERS):
            raise ChannelNotFoundError(e.message) from e
        if any(marker in text for marker in _MESSAGE_GONE_MARKERS):
            raise MessageNotFoundError(e.message) from e
        raise TransportError(e.message) from e
    except TelegramError as e:
        raise TransportError(e.message) from e


class TelegramTransport(BaseChatTransport):
    """Telegram transport: private chats for users, forum topics for staff threads."""

    def __init__(self, bot_token: str) -> None:
        self._bot_token = bot_token
        self._bot: Optional[Bot] = None

    def _get_bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self._bot_token)
        return self._bot

    async def start(self) -> None:
        await self._get_bot().initialize()

    async def stop(self) -> None:
        if self._bot is not None:
            await self._bot.shutdown()

    @staticmethod
    def _send_options(content: MessageContent) -> dict[str, Any]:
        if isinstance(content, RichPayload):
            options = dict(content.options)
            if content.parse_mode:
                options["parse_mode"] = content.parse_mode
            return options
        return {}

    async def open_private_channel(self, user_id: str) -> Optional[str]:
        """The private chat id equals the user id; None if the bot cannot see the user."""
        try:
            chat = await self._get_bot().get_chat(chat_id=int(user_id))
        except (BadRequest, Forbidden) as e:
            logger.info("Cannot open private chat with %s: %s", user_id, e.message)
            return None
        except ValueError:
            logger.warning("Invalid Telegram user id: %r", user_id)
            return None
        return str(chat.id)

    async def send_message(
        self,
        channel_id: str,
        content: MessageContent,
        files: Sequence[FilePayload] = (),
    ) -> SentMessage:
        """Send text first, then each file as a document. Returns the first message sent."""
        chat_id, topic_id = parse_channel_id(channel_id)
        bot = self._get_bot()
        target: dict[str, Any] = {"chat_id": chat_id}
        if topic_id is not None:
            target["message_thread_id"] = topic_id

        first = None
        async with _translate_errors():
            if content.text:
                first = await bot.send_message(
                    text=content.text, **target, **self._send_options(content)
                )
            for file in files:
                sent = await bot.send_document(
                    document=InputFile(file.data, filename=file.filename), **target
                )
                first = first or sent
        if first is None:
            raise TransportError("Refusing to send an empty message")
        return SentMessage(
            channel_id=channel_id,
            message_id=str(first.message_id),
            content=content.text,
        )

    async def edit_message(
        self, channel_id: str, message_id: str, content: MessageContent
    ) -> None:
        chat_id, _ = parse_channel_id(channel_id)
        async with _translate_errors():
            await self._get_bot().edit_message_text(
                text=content.text,
                chat_id=chat_id,
                message_id=int(message_id),
                **self._send_options(content),
            )

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        chat_id, _ = parse_channel_id(channel_id)
        async with _translate_errors():
            await self._get_bot().delete_message(
                chat_id=chat_id, message_id=int(message_id)
            )

    async def delete_channel(self, channel_id: str, reason: Optional[str] = None) -> None:
        """Delete the forum topic. Private chats cannot be deleted and are left alone."""
        chat_id, topic_id = parse_channel_id(channel_id)
        if topic_id is None:
            logger.warning("Not deleting %s: not a forum topic", channel_id)
            return
        try:
            async with _translate_errors():
                await self._get_bot().delete_forum_topic(
                    chat_id=chat_id, message_thread_id=topic_id
                )
        except ChannelNotFoundError:
            logger.info("Channel %s was already gone (%s)", channel_id, reason)
