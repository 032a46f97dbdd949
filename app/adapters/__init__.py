"""Chat transports for the user and staff surfaces."""

from app.adapters.base import (
    BaseChatTransport,
    ChannelNotFoundError,
    MessageNotFoundError,
    TransportError,
    UserUnreachableError,
)
from app.adapters.telegram import TelegramTransport

__all__ = [
    "BaseChatTransport",
    "ChannelNotFoundError",
    "MessageNotFoundError",
    "TelegramTransport",
    "TransportError",
    "UserUnreachableError",
]
