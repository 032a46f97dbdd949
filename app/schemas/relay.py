"""
Normalized shapes exchanged between the thread relay and its collaborators.

Transports, attachment stores and formatters speak only these types, so the
relay never touches a platform SDK object.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class Actor(BaseModel):
    """A human on either side: the thread's user or a staff member."""

    id: str
    name: str
    role_name: Optional[str] = None  # staff only; shown instead of the name when anonymous


class Attachment(BaseModel):
    """Attachment reference as received from the platform (not yet downloaded)."""

    id: str
    filename: str
    size: int = 0  # bytes
    url: str
    content_type: Optional[str] = None


class SavedAttachment(BaseModel):
    """Attachment persisted by the attachment store; url is stable and public."""

    id: str
    url: str


class FilePayload(BaseModel):
    """File bytes ready to be attached to an outgoing message."""

    filename: str
    data: bytes


class PlatformMessage(BaseModel):
    """A native message seen on either surface (user DM or staff channel)."""

    message_id: str
    channel_id: Optional[str] = None
    author: Actor
    content: str = ""
    attachments: list[Attachment] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Outgoing content
# -----------------------------------------------------------------------------


class PlainText(BaseModel):
    """Plain text; split into chunks before sending when it is too long."""

    kind: Literal["text"] = "text"
    text: str


class RichPayload(BaseModel):
    """Pre-structured content, sent as a single message without chunking."""

    kind: Literal["rich"] = "rich"
    text: str = ""
    parse_mode: Optional[str] = None
    options: dict[str, Any] = Field(default_factory=dict)  # extra platform send options


MessageContent = Annotated[Union[PlainText, RichPayload], Field(discriminator="kind")]


def to_message_content(content: Union[str, PlainText, RichPayload]) -> Union[PlainText, RichPayload]:
    """Wrap bare strings as PlainText; pass structured content through."""
    if isinstance(content, str):
        return PlainText(text=content)
    return content


# -----------------------------------------------------------------------------
# Send outcomes
# -----------------------------------------------------------------------------


class SentMessage(BaseModel):
    """Handle of a message that now exists on a surface."""

    channel_id: str
    message_id: str
    content: str = ""


class Delivered(BaseModel):
    outcome: Literal["delivered"] = "delivered"
    message: SentMessage


class TargetGone(BaseModel):
    """The destination channel no longer exists; nothing was sent."""

    outcome: Literal["target_gone"] = "target_gone"
    channel_id: Optional[str] = None


SendResult = Annotated[Union[Delivered, TargetGone], Field(discriminator="outcome")]
