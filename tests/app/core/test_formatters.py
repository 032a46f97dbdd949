"""Tests for MessageFormatter."""

import uuid
from datetime import datetime

import pytest

from app.config import Settings
from app.constants.threads import ThreadMessageType
from app.core.formatters import MessageFormatter, humanize_size
from app.models.thread import Thread
from app.models.thread_message import ThreadMessage
from app.schemas.relay import Actor, Attachment, PlatformMessage

MOD = Actor(id="1", name="alice")
MOD_WITH_ROLE = Actor(id="2", name="bob", role_name="Admin")
USER = Actor(id="9", name="carol")


@pytest.fixture
def fmt():
    return MessageFormatter(anonymous_name="Staff")


@pytest.mark.parametrize(
    "size, expected",
    [(512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024, "5.0 MB"), (3 * 1024**3, "3.0 GB")],
)
def test_humanize_size(size, expected):
    assert humanize_size(size) == expected


def test_staff_reply_dm_names(fmt):
    assert fmt.format_staff_reply_dm(MOD, "hi").text == "**alice:** hi"
    assert fmt.format_staff_reply_dm(MOD_WITH_ROLE, "hi").text == "**(Admin) bob:** hi"
    assert fmt.format_staff_reply_dm(MOD_WITH_ROLE, "hi", is_anonymous=True).text == "**Admin:** hi"
    assert fmt.format_staff_reply_dm(MOD, "hi", is_anonymous=True).text == "**Staff:** hi"


def test_staff_reply_thread_message_shows_number(fmt):
    content = fmt.format_staff_reply_thread_message(MOD, "hi", 3)
    anonymous = fmt.format_staff_reply_thread_message(MOD, "hi", 4, is_anonymous=True)

    assert content.text == "`[3]` **alice:** hi"
    assert anonymous.text == "`[4]` **(Anonymous) (alice) Staff:** hi"


def test_thread_timestamps_prefix():
    fmt = MessageFormatter(thread_timestamps=True)

    text = fmt.format_staff_reply_thread_message(MOD, "hi", 1).text

    assert text.startswith("`[1]` [")
    assert text.endswith("] **alice:** hi")


def test_staff_reply_log_message_with_attachments(fmt):
    body = fmt.format_staff_reply_log_message(
        MOD, "see files", attachment_links=["https://x/1", "https://x/2"]
    )

    assert body == "alice: see files\n\n**Attachment:** https://x/1\n**Attachment:** https://x/2"


def test_user_reply_formats(fmt):
    msg = PlatformMessage(message_id="1", author=USER, content="help")
    link = fmt.format_attachment(
        Attachment(id="5", filename="a.png", size=2048, url="https://cdn/5"), "https://files/5"
    )

    assert link == "**Attachment:** a.png (2.0 KB)\nhttps://files/5"
    assert fmt.format_user_reply_thread_message(USER, msg, [link]).text == f"**carol:** help\n\n{link}"
    assert fmt.format_user_reply_log_message(USER, msg) == "help"
    assert fmt.format_user_reply_log_message(USER, msg.model_copy(update={"content": ""}), [link]) == link


def test_format_mention(fmt):
    assert fmt.format_mention("7") == "<@7>"
    assert fmt.format_mention("7", "dave") == "@dave"


def test_edit_and_deletion_notices(fmt):
    reply = ThreadMessage(message_number=2, body="alice: old")

    assert fmt.format_staff_reply_edit_notification_log_message(MOD, reply, "new") == (
        "alice edited reply 2:\n\nBefore:\nalice: old\n\nAfter:\nnew"
    )
    assert fmt.format_staff_reply_edit_notification_thread_message(MOD, reply, "new").text == (
        "**alice** edited reply `2`:\n\nBefore:\n```\nalice: old\n```\nAfter:\n```\nnew\n```"
    )
    assert fmt.format_staff_reply_deletion_notification_log_message(MOD, reply) == (
        "alice deleted reply 2:\n\nalice: old"
    )
    assert fmt.format_staff_reply_deletion_notification_thread_message(MOD, reply).text == (
        "**alice** deleted reply `2`:\n\n```\nalice: old\n```"
    )


def test_format_log(fmt):
    thread = Thread(
        id=uuid.uuid4(), user_id="9", user_name="carol", created_at=datetime(2026, 3, 1, 8, 0, 0)
    )
    at = datetime(2026, 3, 1, 8, 5, 0)
    messages = [
        ThreadMessage(message_type=ThreadMessageType.FROM_USER.value, user_name="carol", body="help", created_at=at),
        ThreadMessage(
            message_type=ThreadMessageType.TO_USER.value,
            message_number=1,
            user_name="alice",
            body="alice: hi",
            created_at=at,
        ),
        ThreadMessage(message_type=ThreadMessageType.SYSTEM.value, user_name="", body="Closing thread...", created_at=at),
        ThreadMessage(message_type=ThreadMessageType.LEGACY.value, body="imported line", created_at=at),
    ]

    log = fmt.format_log(thread, messages)

    assert log.split("\n\n") == [
        "# Modmail thread with carol (9) started at 2026-03-01 08:00:00. All times are in UTC+0.",
        "[2026-03-01 08:05:00] [FROM USER] [carol] help",
        "[2026-03-01 08:05:00] [TO USER] [1] [alice] alice: hi",
        "[2026-03-01 08:05:00] [SYSTEM] Closing thread...",
        "imported line",
    ]


def test_from_settings():
    fmt = MessageFormatter.from_settings(Settings(anonymous_reply_name="Team", thread_timestamps=True))

    assert fmt.anonymous_name == "Team"
    assert fmt.thread_timestamps is True
