"""
Chat transport interface.

Transports encapsulate platform-specific logic and expose the narrow
send/edit/delete capability the thread relay needs on both surfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from app.schemas.relay import FilePayload, MessageContent, SentMessage


class TransportError(Exception):
    """A platform call failed. code carries the platform error code when known."""

    def __init__(self, message: str, code: Optional[int | str] = None) -> None:
        super().__init__(message)
        self.code = code


class ChannelNotFoundError(TransportError):
    """The target channel does not exist (anymore)."""


class MessageNotFoundError(TransportError):
    """The message to edit or delete does not exist (anymore)."""


class UserUnreachableError(TransportError):
    """The user's private channel cannot be opened or the user blocked the bot."""


class BaseChatTransport(ABC):
    """Contract for chat transports. New platforms implement this interface."""

    @abstractmethod
    async def open_private_channel(self, user_id: str) -> Optional[str]:
        """Return the id of the private channel with the user, or None if it cannot be opened."""
        ...

    @abstractmethod
    async def send_message(
        self,
        channel_id: str,
        content: MessageContent,
        files: Sequence[FilePayload] = (),
    ) -> SentMessage:
        """
        Send one message. Text must already fit the platform limit.
        Raise ChannelNotFoundError if the channel is gone.
        """
        ...

    @abstractmethod
    async def edit_message(
        self, channel_id: str, message_id: str, content: MessageContent
    ) -> None:
        """Replace the content of a sent message. Raise MessageNotFoundError if it is gone."""
        ...

    @abstractmethod
    async def delete_message(self, channel_id: str, message_id: str) -> None:
        """Delete a sent message. Raise MessageNotFoundError if it is gone."""
        ...

    @abstractmethod
    async def delete_channel(self, channel_id: str, reason: Optional[str] = None) -> None:
        """Delete a channel. A channel that no longer exists is not an error."""
        ...
