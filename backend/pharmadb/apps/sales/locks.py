from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from pharmadb.errors import ContentionError

ITEM_LOCK_TIMEOUT_SEC = float(os.getenv("ITEM_LOCK_TIMEOUT_SEC", "5"))


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class ItemLockRegistry:
    """
    One mutex per item id.

    Sales, edits and deletes of the same item run one at a time; different
    items never wait on each other. Entries are reference counted and dropped
    once nobody holds or waits for them.
    """

    def __init__(self, timeout: float = ITEM_LOCK_TIMEOUT_SEC) -> None:
        self.timeout = timeout
        self._entries: Dict[int, _Entry] = {}
        self._guard = threading.Lock()

    def _checkout(self, item_id: int) -> _Entry:
        with self._guard:
            entry = self._entries.get(item_id)
            if entry is None:
                entry = _Entry()
                self._entries[item_id] = entry
            entry.users += 1
            return entry

    def _release(self, item_id: int, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(item_id) is entry:
                del self._entries[item_id]

    @contextmanager
    def hold(self, item_id: int, timeout: Optional[float] = None) -> Iterator[None]:
        entry = self._checkout(item_id)
        wait = self.timeout if timeout is None else timeout
        try:
            if not entry.lock.acquire(timeout=wait):
                raise ContentionError(f"Timed out after {wait:g}s waiting for item {item_id}")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._release(item_id, entry)

    def is_held(self, item_id: int) -> bool:
        with self._guard:
            entry = self._entries.get(item_id)
        return bool(entry and entry.lock.locked())

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


item_locks = ItemLockRegistry()
