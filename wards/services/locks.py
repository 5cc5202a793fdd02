"""
In-process keyed mutex.

The gateway holds one lock per record key (``room:3``, ``patient:7``,
``allocation:12``) across each read-decide-write sequence.  Keys are
always acquired in sorted order, so two operations locking overlapping
key sets cannot deadlock.  Locks are reference counted and dropped once
no thread holds or waits on them.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from ..errors import ConflictError


def room_key(room_id) -> str:
    return f'room:{room_id}'


def patient_key(patient_id) -> str:
    return f'patient:{patient_id}'


def allocation_key(allocation_id) -> str:
    return f'allocation:{allocation_id}'


class _Entry:
    __slots__ = ('lock', 'users')

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Hold every key for the duration of the ``with`` block.

        Raises :class:`ConflictError` if a key cannot be acquired within
        ``timeout`` seconds; keys already taken are released first.
        """
        held: List[tuple] = []
        try:
            for key in sorted(set(keys)):
                entry = self._checkout(key)
                # timeout=0 means try once, None means wait forever
                if self.timeout is not None:
                    acquired = entry.lock.acquire(timeout=self.timeout)
                else:
                    acquired = entry.lock.acquire()
                if not acquired:
                    self._checkin(key)
                    raise ConflictError(f'{key} is busy, try again')
                held.append((key, entry))
            yield
        finally:
            for key, entry in reversed(held):
                entry.lock.release()
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
