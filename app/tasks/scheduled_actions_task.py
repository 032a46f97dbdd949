"""
Executes scheduled thread closes and suspends once they are due.

Threads only record when a close/suspend should happen; this poller finds
due threads and runs the transition through the thread's relay.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session as DBSession

from app.infra.logging_config import get_logger
from app.models.thread import Thread
from app.services.thread_relay import ThreadRelay
from app.services.thread_service import ThreadService
from app.utils.db.db_session_helper import db_session

logger = get_logger("scheduled_actions")

RelayFactory = Callable[[DBSession, Thread], ThreadRelay]

DEFAULT_POLL_INTERVAL_SECONDS = 2


def _utcnow() -> datetime:
    # Naive UTC, matching how scheduled_* columns are stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def process_due_closes(
    db: DBSession, relay_factory: RelayFactory, now: Optional[datetime] = None
) -> int:
    """Close every open thread whose scheduled close time has passed. Returns the count."""
    now = now or _utcnow()
    closed = 0
    for thread in ThreadService(db).get_threads_due_for_close(now):
        relay = relay_factory(db, thread)
        scheduled_by = thread.scheduled_close_name
        await relay.close(False, bool(thread.scheduled_close_silent))
        logger.info(
            "Modmail thread with %s (%s) was closed as scheduled by %s. Logs: %s",
            thread.user_name,
            thread.user_id,
            scheduled_by,
            relay.get_log_url(),
        )
        closed += 1
    return closed


async def process_due_suspends(
    db: DBSession, relay_factory: RelayFactory, now: Optional[datetime] = None
) -> int:
    """Suspend every open thread whose scheduled suspend time has passed. Returns the count."""
    now = now or _utcnow()
    suspended = 0
    for thread in ThreadService(db).get_threads_due_for_suspend(now):
        relay = relay_factory(db, thread)
        scheduled_by = thread.scheduled_suspend_name
        await relay.suspend()
        await relay.post_system_message(
            f"**Thread suspended** as scheduled by {scheduled_by}. "
            "This thread will act as closed until unsuspended."
        )
        logger.info("Thread %s suspended as scheduled by %s", thread.id, scheduled_by)
        suspended += 1
    return suspended


async def run_scheduled_actions(relay_factory: RelayFactory) -> tuple[int, int]:
    """One pass over due closes and suspends in a fresh database session."""
    with db_session() as db:
        closed = await process_due_closes(db, relay_factory)
        suspended = await process_due_suspends(db, relay_factory)
    return closed, suspended


async def scheduled_actions_loop(
    relay_factory: RelayFactory,
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> None:
    """Poll forever. A failing pass is logged and retried on the next tick."""
    while True:
        try:
            await run_scheduled_actions(relay_factory)
        except Exception:
            logger.exception("Scheduled thread actions pass failed")
        await asyncio.sleep(interval_seconds)
