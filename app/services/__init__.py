from app.services.attachment_service import LocalAttachmentStore
from app.services.thread_message_service import ThreadMessageService
from app.services.thread_relay import ThreadRelay, create_thread_relay
from app.services.thread_service import ThreadService

__all__ = [
    "LocalAttachmentStore",
    "ThreadMessageService",
    "ThreadRelay",
    "ThreadService",
    "create_thread_relay",
]
