"""
Server status shared between the lifecycle manager and the probe routes.

The status value is immutable and swapped as a whole under a reader/writer
lock, so a reader always sees the healthy and ready flags from the same write.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterator, Optional

from yarl import URL


class RWLock:
    """
    Reader/writer lock built on a condition variable.

    Readers share the lock; a writer holds it alone. Waiting writers are
    preferred over new readers so status updates are not starved by probes.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class ServerStatus:
    """Snapshot of the server's liveness and readiness."""

    healthy: bool = False
    ready: bool = False
    url: Optional[URL] = None
    started_at: Optional[datetime] = None

    def to_dict(self):
        return {
            'healthy': self.healthy,
            'ready': self.ready,
            'url': str(self.url) if self.url is not None else None,
            'started_at': self.started_at.isoformat() if self.started_at else None
        }


class StatusGuard:
    """
    Owns the current ServerStatus together with the lock protecting it.

    The status is never exposed except through get(), which returns an
    immutable snapshot.
    """

    def __init__(self, status: Optional[ServerStatus] = None):
        self._lock = RWLock()
        self._status = status or ServerStatus()

    def get(self) -> ServerStatus:
        """Read the current status under the shared lock."""
        with self._lock.read_locked():
            return self._status

    def set(self, healthy: bool, ready: bool) -> ServerStatus:
        """Set both probe flags together under the exclusive lock."""
        with self._lock.write_locked():
            self._status = replace(self._status, healthy=healthy, ready=ready)
            return self._status

    def bind(self, url: URL, started_at: datetime) -> ServerStatus:
        """Record the bound endpoint and start time."""
        with self._lock.write_locked():
            self._status = replace(self._status, url=url, started_at=started_at)
            return self._status
