"""Thread lifecycle states, log entry types and relay limits."""

from enum import StrEnum


class ThreadStatus(StrEnum):
    """Lifecycle state of a thread. CLOSED is terminal."""

    OPEN = "open"
    CLOSED = "closed"
    SUSPENDED = "suspended"


class ThreadMessageType(StrEnum):
    """Kind of event a thread log entry records."""

    FROM_USER = "from_user"
    TO_USER = "to_user"
    SYSTEM = "system"
    SYSTEM_TO_USER = "system_to_user"
    CHAT = "chat"
    COMMAND = "command"
    LEGACY = "legacy"


# Longest text a single platform message may carry; longer text is chunked
MAX_MESSAGE_LENGTH = 2000

EMPTY_LOG_BODY = "<empty message>"

USER_UNREACHABLE_MESSAGE = (
    "Could not open DMs with the user. "
    "They may have blocked the bot or set their privacy settings higher."
)
