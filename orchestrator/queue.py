"""In-memory FIFO queue with dedup support for card IDs."""

from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Deque, Optional


class InMemoryCardQueue:
    """Best-effort in-memory queue of cards awaiting a pipeline run."""

    def __init__(self) -> None:
        self._queue: Deque[str] = deque()
        self._enqueued = set()
        self._lock = Lock()

    def enqueue(self, card_id: str) -> bool:
        """Queue card ID once. Returns True when newly enqueued."""
        with self._lock:
            if card_id in self._enqueued:
                return False
            self._queue.append(card_id)
            self._enqueued.add(card_id)
            return True

    def dequeue(self) -> Optional[str]:
        """Pop next card ID, or None when empty."""
        with self._lock:
            if not self._queue:
                return None
            card_id = self._queue.popleft()
            self._enqueued.discard(card_id)
            return card_id

    def remove(self, card_id: str) -> bool:
        """Drop a queued card, e.g. after deletion."""
        with self._lock:
            if card_id not in self._enqueued:
                return False
            self._queue = deque(item for item in self._queue if item != card_id)
            self._enqueued.discard(card_id)
            return True

    def size(self) -> int:
        with self._lock:
            return len(self._queue)
