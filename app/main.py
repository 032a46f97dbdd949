import asyncio
import logging

from fastapi import FastAPI

from app.adapters.telegram import TelegramTransport
from app.config import get_settings
from app.infra.logging_config import LoggingConfig
from app.routers.logs_router import router as logs_router
from app.services.thread_relay import create_thread_relay
from app.tasks.scheduled_actions_task import scheduled_actions_loop

LoggingConfig()

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title=settings.app_name)

app.include_router(logs_router)


@app.on_event("startup")
async def startup():
    # The scheduler needs a transport to post notices and delete channels
    if not settings.telegram_enabled:
        return
    if not settings.telegram_bot_token:
        logger.warning("TELEGRAM_ENABLED is set but TELEGRAM_BOT_TOKEN is missing")
        return
    transport = TelegramTransport(settings.telegram_bot_token)
    await transport.start()
    app.state.transport = transport
    app.state.scheduler_task = asyncio.create_task(
        scheduled_actions_loop(
            lambda db, thread: create_thread_relay(db, thread, transport, settings)
        )
    )
    logger.info("Telegram transport and scheduled actions started")


@app.on_event("shutdown")
async def shutdown():
    task = getattr(app.state, "scheduler_task", None)
    if task is not None:
        task.cancel()
    transport = getattr(app.state, "transport", None)
    if transport is not None:
        await transport.stop()


@app.get("/health")
def health():
    return {"ok": True}
