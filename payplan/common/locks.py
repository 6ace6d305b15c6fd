"""Per-work-unit serialization for synchronization passes.

On PostgreSQL the lock is a transaction-scoped advisory lock, so it is shared
by every replica and released by the enclosing commit or rollback. Other
dialects fall back to a process-local mutex keyed the same way.
"""

import hashlib
import threading
from contextlib import contextmanager

from sqlalchemy import text

_local_locks: dict[int, threading.Lock] = {}
_registry_lock = threading.Lock()


def lock_key(*parts: str) -> int:
    """Stable signed 63-bit key for `pg_advisory_xact_lock`."""

    digest = hashlib.sha256("|".join(parts).encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") >> 1


def _local_lock(key: int) -> threading.Lock:
    with _registry_lock:
        lock = _local_locks.get(key)
        if lock is None:
            lock = _local_locks[key] = threading.Lock()
        return lock


@contextmanager
def serialize_work_unit(db, *parts: str):
    """Hold the work-unit lock for the body of the `with` block.

    The caller must commit (or roll back) inside the block; on PostgreSQL the
    advisory lock is only released at transaction end.
    """

    key = lock_key(*parts)
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
        yield
        return
    lock = _local_lock(key)
    with lock:
        yield
