"""In-process per-event mutation locks.

Paired with ``SELECT ... FOR UPDATE`` on the event row: the row lock
serializes writers across processes on PostgreSQL, this registry
serializes them inside one process (and is the only guard on SQLite).

Entries are reference-counted and dropped when the last holder or waiter
leaves, so the registry only holds ids with a mutation in flight.
"""
import threading
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


_registry_lock = threading.Lock()
_locks: dict[str, _Entry] = {}


def _acquire_entry(event_id: str) -> _Entry:
    with _registry_lock:
        entry = _locks.get(event_id)
        if entry is None:
            entry = _locks[event_id] = _Entry()
        entry.holders += 1
        return entry


def _release_entry(event_id: str, entry: _Entry) -> None:
    with _registry_lock:
        entry.holders -= 1
        if entry.holders == 0 and _locks.get(event_id) is entry:
            del _locks[event_id]


@contextmanager
def event_lock(event_id: str):
    entry = _acquire_entry(event_id)
    try:
        with entry.lock:
            yield
    finally:
        _release_entry(event_id, entry)


def tracked() -> int:
    """Number of event ids currently held or waited on."""
    with _registry_lock:
        return len(_locks)
