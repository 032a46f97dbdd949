"""Text helpers for outgoing messages."""

from __future__ import annotations

from typing import List

from app.constants.threads import MAX_MESSAGE_LENGTH


def chunk_text(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """
    Split text into chunks of at most max_length characters.

    Cuts at the last newline inside the window when there is one (the newline
    itself is dropped), otherwise hard-cuts at max_length.
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    if len(text) <= max_length:
        return [text]

    chunks: List[str] = []
    remaining = text
    while len(remaining) > max_length:
        cut = remaining.rfind("\n", 0, max_length + 1)
        if cut <= 0:
            chunks.append(remaining[:max_length])
            remaining = remaining[max_length:]
        else:
            chunks.append(remaining[:cut])
            remaining = remaining[cut + 1 :]
    if remaining:
        chunks.append(remaining)
    return chunks
