"""Client-side query cache for contact lists and message threads."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from ..shared.dto import ChatMessageDTO

logger = logging.getLogger(__name__)

Key = Tuple[Hashable, ...]

CONTACTS_KEY: Key = ("/api/chat/contacts",)
MESSAGES_ROOT = "/api/chat/messages"


def thread_key(contact_id: int) -> Key:
    return (MESSAGES_ROOT, contact_id)


@dataclass
class _Entry:
    value: Any
    stale: bool = False


class QueryCache:
    """Route-keyed cache with prefix invalidation.

    Keys are tuples such as ``("/api/chat/messages", 7)``. Invalidating the
    prefix ``("/api/chat/messages",)`` marks every thread stale; the next
    ``get`` refetches it. Every key carries a generation that ``set``,
    ``invalidate`` and ``clear`` bump, so a fetch that was overtaken by an
    invalidation is stored stale instead of looking fresh.
    """

    def __init__(self) -> None:
        self._entries: Dict[Key, _Entry] = {}
        self._generations: Dict[Key, int] = {}
        self._lock = threading.RLock()

    def get(self, key: Key, fetcher: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not entry.stale:
                return entry.value
            generation = self._generations.setdefault(key, 0)
        value = fetcher()
        with self._lock:
            overtaken = self._generations.get(key, 0) != generation
            self._entries[key] = _Entry(value, stale=overtaken)
        if overtaken:
            logger.debug("Cache entry %s was invalidated during its fetch", key)
        return value

    def peek(self, key: Key) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            return entry.value if entry else None

    def set(self, key: Key, value: Any) -> None:
        with self._lock:
            self._bump(key)
            self._entries[key] = _Entry(value)

    def update(self, key: Key, fn: Callable[[Any], Any]) -> bool:
        """Patch a cached value in place. Returns False if the key is not cached."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.value = fn(entry.value)
            return True

    def is_stale(self, key: Key) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is None or entry.stale

    def invalidate(self, prefix: Key) -> int:
        with self._lock:
            # in-flight keys have a generation but no entry yet
            for key in [key for key in self._generations if key[: len(prefix)] == prefix]:
                self._bump(key)
            matched = [key for key in self._entries if key[: len(prefix)] == prefix]
            for key in matched:
                self._entries[key].stale = True
        if matched:
            logger.debug("Invalidated %d cache entries for %s", len(matched), prefix)
        return len(matched)

    def clear(self) -> None:
        with self._lock:
            for key in self._generations:
                self._bump(key)
            self._entries.clear()

    def _bump(self, key: Key) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1


def merge_messages(thread: List[ChatMessageDTO], incoming: Iterable[ChatMessageDTO]) -> List[ChatMessageDTO]:
    """Merge messages into a thread, deduplicated by id and ordered by id."""
    by_id = {msg.id: msg for msg in thread}
    for msg in incoming:
        by_id[msg.id] = msg
    return sorted(by_id.values(), key=lambda msg: msg.id)
