from app.models.thread import Thread
from app.models.thread_message import ThreadMessage

__all__ = [
    "Thread",
    "ThreadMessage",
]
