"""Durable append/read primitives, one append-only byte stream per key.

The Identity Store only talks to a ``LogBackend``; swapping the medium
(filesystem, memory, anything else) does not touch the store logic.
Missing keys raise KeyError; medium failures raise OSError.
"""

import io
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO


@dataclass(frozen=True)
class BackendStat:
    size: int
    created: datetime
    modified: datetime


class LogBackend:
    """Interface for a key -> append-only byte stream medium."""

    def append(self, key: str, data: bytes) -> None:
        """Append ``data`` atomically relative to other appends to ``key``."""
        raise NotImplementedError

    def read(self, key: str) -> bytes:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        """Return a readable binary stream over the key's current content."""
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self) -> list[str]:
        """All keys with at least one append, sorted."""
        raise NotImplementedError

    def stat(self, key: str) -> BackendStat:
        raise NotImplementedError


class _KeyLocks:
    """Lazily created lock per key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class FileLogBackend(LogBackend):
    """One ``<key><suffix>`` file per key inside ``log_dir``.

    Appends go through ``O_APPEND`` with a single write per entry under a
    per-key lock, so lines from concurrent writers never interleave.
    """

    def __init__(self, log_dir: str, suffix: str = ".log"):
        self._log_dir = log_dir
        self._suffix = suffix
        self._locks = _KeyLocks()
        os.makedirs(log_dir, exist_ok=True)

    @property
    def log_dir(self) -> str:
        return self._log_dir

    @property
    def suffix(self) -> str:
        return self._suffix

    def filename(self, key: str) -> str:
        return f"{key}{self._suffix}"

    def path(self, key: str) -> str:
        return os.path.join(self._log_dir, self.filename(key))

    def append(self, key: str, data: bytes) -> None:
        with self._locks.get(key):
            fd = os.open(self.path(key), os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
            try:
                view = memoryview(data)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
            finally:
                os.close(fd)

    def read(self, key: str) -> bytes:
        with self.open(key) as f:
            return f.read()

    def open(self, key: str) -> BinaryIO:
        try:
            return open(self.path(key), "rb")
        except FileNotFoundError:
            raise KeyError(key) from None

    def exists(self, key: str) -> bool:
        return os.path.isfile(self.path(key))

    def keys(self) -> list[str]:
        keys = []
        for name in os.listdir(self._log_dir):
            if not name.endswith(self._suffix) or len(name) == len(self._suffix):
                continue
            if os.path.isfile(os.path.join(self._log_dir, name)):
                keys.append(name[: -len(self._suffix)])
        keys.sort()
        return keys

    def stat(self, key: str) -> BackendStat:
        try:
            st = os.stat(self.path(key))
        except FileNotFoundError:
            raise KeyError(key) from None
        # st_birthtime only exists on some platforms; fall back to ctime.
        created = getattr(st, "st_birthtime", st.st_ctime)
        return BackendStat(
            size=st.st_size,
            created=datetime.fromtimestamp(created, tz=timezone.utc),
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )


class MemoryLogBackend(LogBackend):
    """In-process backend; content is lost on restart."""

    def __init__(self, time_func=None):
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._data: dict[str, bytearray] = {}
        self._created: dict[str, datetime] = {}
        self._modified: dict[str, datetime] = {}

    def append(self, key: str, data: bytes) -> None:
        now = self._time_func()
        with self._lock:
            if key not in self._data:
                self._data[key] = bytearray()
                self._created[key] = now
            self._data[key].extend(data)
            self._modified[key] = now

    def read(self, key: str) -> bytes:
        with self._lock:
            return bytes(self._data[key])

    def open(self, key: str) -> BinaryIO:
        return io.BytesIO(self.read(key))

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def stat(self, key: str) -> BackendStat:
        with self._lock:
            return BackendStat(
                size=len(self._data[key]),
                created=self._created[key],
                modified=self._modified[key],
            )
