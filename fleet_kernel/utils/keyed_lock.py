"""
Per-key mutual exclusion.

KeyedLock hands out one ``threading.Lock`` per key, so that mutations of
the same rental are serialized while different rentals proceed in
parallel.  Entries are reference counted and dropped when the last holder
leaves, so the table only ever contains keys that are in use.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLock:
    """Mutex keyed by string; keys are compared case-insensitively."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    @staticmethod
    def normalize(key: str) -> str:
        return key.strip().lower()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Block until ``key`` is free, then hold it for the with-block."""
        norm = self.normalize(key)
        with self._guard:
            entry = self._entries.get(norm)
            if entry is None:
                entry = self._entries[norm] = _Entry()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[norm]

    def active_keys(self) -> frozenset[str]:
        """Keys currently held or waited on."""
        with self._guard:
            return frozenset(self._entries)
