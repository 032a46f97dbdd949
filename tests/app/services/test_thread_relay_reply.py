"""Tests for ThreadRelay.reply_to_user."""

import asyncio
from datetime import datetime

import pytest

from app.constants.threads import USER_UNREACHABLE_MESSAGE, ThreadMessageType, ThreadStatus
from app.db import SessionLocal
from app.schemas.relay import Actor
from app.services.thread_relay import ThreadRelay
from app.services.thread_service import ThreadService
from tests.fixtures.thread_fixtures import INBOX_CHANNEL_ID


@pytest.mark.asyncio
async def test_reply_is_sent_logged_and_mirrored(relay, moderator, thread_user, fake_transport):
    ok = await relay.reply_to_user(moderator, "hello there")

    assert ok is True
    dm_channel = fake_transport.dm_channel_for(thread_user.id)
    dm = fake_transport.sent_to(dm_channel)
    inbox = fake_transport.sent_to(INBOX_CHANNEL_ID)
    assert [r.text for r in dm] == [f"**{moderator.name}:** hello there"]
    assert [r.text for r in inbox] == [f"`[1]` **{moderator.name}:** hello there"]

    messages = relay.get_thread_messages()
    assert len(messages) == 1
    msg = messages[0]
    assert msg.message_type == ThreadMessageType.TO_USER
    assert msg.message_number == 1
    assert msg.user_id == moderator.id
    assert msg.body == f"{moderator.name}: hello there"
    assert msg.dm_channel_id == dm_channel
    assert msg.dm_message_id == dm[0].message_id
    assert msg.inbox_message_id == inbox[0].message_id


@pytest.mark.asyncio
async def test_reply_numbers_increase_per_thread(relay, moderator):
    await relay.reply_to_user(moderator, "first")
    await relay.reply_to_user(moderator, "second")

    numbers = [m.message_number for m in relay.get_thread_messages()]
    assert numbers == [1, 2]
    assert relay.find_thread_message_by_message_number(2).body.endswith("second")


@pytest.mark.asyncio
async def test_concurrent_replies_get_distinct_numbers(relay, moderator):
    results = await asyncio.gather(
        *(relay.reply_to_user(moderator, f"reply {i}") for i in range(5))
    )

    assert all(results)
    numbers = sorted(m.message_number for m in relay.get_thread_messages())
    assert numbers == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_replies_from_separate_sessions_get_distinct_numbers(
    db, setup_thread, moderator, fake_transport, fake_attachment_store, formatter, test_settings
):
    sessions = [SessionLocal(), SessionLocal()]
    try:
        relays = [
            ThreadRelay(
                session,
                ThreadService(session).get_thread(setup_thread.id),
                fake_transport,
                fake_attachment_store,
                formatter,
                settings=test_settings,
            )
            for session in sessions
        ]

        results = await asyncio.gather(
            *(relays[i % 2].reply_to_user(moderator, f"reply {i}") for i in range(6))
        )
    finally:
        for session in sessions:
            session.close()

    assert all(results)
    db.expire_all()
    replies = ThreadService(db).get_thread(setup_thread.id).messages
    assert sorted(m.message_number for m in replies) == [1, 2, 3, 4, 5, 6]
    assert ThreadService(db).get_thread(setup_thread.id).last_message_number == 6


@pytest.mark.asyncio
async def test_anonymous_reply_hides_name_from_user(relay, fake_transport, thread_user):
    mod = Actor(id="1002", name="alice", role_name="Admin")

    await relay.reply_to_user(mod, "hi", is_anonymous=True)

    dm = fake_transport.sent_to(fake_transport.dm_channel_for(thread_user.id))
    inbox = fake_transport.sent_to(INBOX_CHANNEL_ID)
    assert dm[0].text == "**Admin:** hi"
    assert inbox[0].text == "`[1]` **(Anonymous) (alice) Admin:** hi"
    msg = relay.get_thread_messages()[0]
    assert msg.is_anonymous is True
    assert msg.body == "(Anonymous) (alice) Admin: hi"


@pytest.mark.asyncio
async def test_reply_fails_when_user_unreachable(relay, moderator, thread_user, fake_transport):
    fake_transport.unreachable_users.add(thread_user.id)

    ok = await relay.reply_to_user(moderator, "hello")

    assert ok is False
    inbox = fake_transport.sent_to(INBOX_CHANNEL_ID)
    assert [r.text for r in inbox] == [f"Error while replying to user: {USER_UNREACHABLE_MESSAGE}"]
    messages = relay.get_thread_messages()
    assert [m.message_type for m in messages] == [ThreadMessageType.SYSTEM]
    assert relay.find_thread_message_by_message_number(1) is None


@pytest.mark.asyncio
async def test_reply_fails_when_user_blocked_bot(relay, moderator, thread_user, fake_transport):
    fake_transport.blocked_channels.add(fake_transport.dm_channel_for(thread_user.id))

    ok = await relay.reply_to_user(moderator, "hello")

    assert ok is False
    inbox = fake_transport.sent_to(INBOX_CHANNEL_ID)
    assert inbox[0].text == "Error while replying to user: Cannot send messages to this user"
    assert relay.thread.status == ThreadStatus.OPEN.value


@pytest.mark.asyncio
async def test_reply_failed_number_is_not_consumed(relay, moderator, thread_user, fake_transport):
    fake_transport.unreachable_users.add(thread_user.id)
    await relay.reply_to_user(moderator, "lost")
    fake_transport.unreachable_users.clear()

    await relay.reply_to_user(moderator, "delivered")

    assert relay.find_thread_message_by_message_number(1).body.endswith("delivered")


@pytest.mark.asyncio
async def test_reply_when_thread_channel_gone_closes_thread(
    relay, moderator, thread_user, fake_transport
):
    fake_transport.gone_channels.add(INBOX_CHANNEL_ID)

    ok = await relay.reply_to_user(moderator, "hello")

    assert ok is True
    assert fake_transport.sent_to(fake_transport.dm_channel_for(thread_user.id))
    msg = relay.find_thread_message_by_message_number(1)
    assert msg is not None
    assert msg.inbox_message_id is None
    assert relay.thread.status == ThreadStatus.CLOSED.value
    assert fake_transport.deleted_channels == [(INBOX_CHANNEL_ID, "Thread closed")]


@pytest.mark.asyncio
async def test_reply_cancels_scheduled_close(relay, moderator, fake_transport):
    await relay.schedule_close(datetime(2030, 1, 1, 12, 0), moderator)

    await relay.reply_to_user(moderator, "still here")

    assert relay.thread.scheduled_close_at is None
    assert relay.thread.scheduled_close_id is None
    inbox = fake_transport.sent_to(INBOX_CHANNEL_ID)
    assert inbox[-1].text == "Cancelling scheduled closing of this thread due to new reply"
    assert relay.get_thread_messages()[-1].message_type == ThreadMessageType.SYSTEM


@pytest.mark.asyncio
async def test_reply_keeps_scheduled_suspend(relay, moderator):
    when = datetime(2030, 1, 1, 12, 0)
    await relay.schedule_suspend(when, moderator)

    await relay.reply_to_user(moderator, "hi")

    assert relay.thread.scheduled_suspend_at == when
    assert relay.thread.scheduled_suspend_name == moderator.name


@pytest.mark.asyncio
async def test_reply_with_attachments(
    relay, moderator, thread_user, fake_transport, fake_attachment_store, make_attachment
):
    attachment = make_attachment(1000, filename="screenshot.png")

    await relay.reply_to_user(moderator, "see attached", attachments=[attachment])

    dm = fake_transport.sent_to(fake_transport.dm_channel_for(thread_user.id))
    inbox = fake_transport.sent_to(INBOX_CHANNEL_ID)
    assert [f.filename for f in dm[0].files] == ["screenshot.png"]
    assert [f.filename for f in inbox[0].files] == ["screenshot.png"]
    assert fake_attachment_store.saved == [attachment.id]

    url = fake_attachment_store.url_for(attachment)
    body = relay.get_thread_messages()[0].body
    assert body == f"{moderator.name}: see attached\n\n**Attachment:** {url}"


@pytest.mark.asyncio
async def test_long_reply_is_chunked(relay, moderator, thread_user, fake_transport, make_attachment):
    text = "a" * 4500
    attachment = make_attachment(10)

    await relay.reply_to_user(moderator, text, attachments=[attachment])

    dm = fake_transport.sent_to(fake_transport.dm_channel_for(thread_user.id))
    assert len(dm) == 3
    assert all(len(r.text) <= 2000 for r in dm)
    assert "".join(r.text for r in dm) == f"**{moderator.name}:** {text}"
    # files ride on the last chunk only
    assert [len(r.files) for r in dm] == [0, 0, 1]
    assert relay.get_thread_messages()[0].dm_message_id == dm[0].message_id


@pytest.mark.asyncio
async def test_reply_to_suspended_thread_is_relayed(relay, moderator, thread_user, fake_transport):
    await relay.suspend()

    ok = await relay.reply_to_user(moderator, "hi")

    assert ok is True
    assert fake_transport.sent_to(fake_transport.dm_channel_for(thread_user.id))
    assert relay.thread.status == ThreadStatus.SUSPENDED.value


@pytest.mark.asyncio
async def test_failed_reply_keeps_scheduled_close(
    relay, moderator, thread_user, fake_transport
):
    when = datetime(2030, 1, 1, 12, 0)
    await relay.schedule_close(when, moderator)
    fake_transport.unreachable_users.add(thread_user.id)

    await relay.reply_to_user(moderator, "hello")

    assert relay.thread.scheduled_close_at == when
