"""File-backed cache for remote API responses.

One JSON file per entry, named by the SHA-256 hex digest of the logical
request key, holding ``{"value": ..., "timestamp": ...}``. Readers share
the cache; writers (set/clear/enable/disable) are exclusive.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import structlog

from depgraph.exceptions import CacheIOError

log = structlog.get_logger("depgraph.cache")

_DIR_MODE = 0o755
_FILE_MODE = 0o644
_SUFFIX = ".json"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    A waiting writer blocks new readers, so a steady stream of reads cannot
    starve writes.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writers_waiting = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
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
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class FileCache:
    """Time-limited, content-addressed response cache on the filesystem."""

    def __init__(
        self,
        directory: Path | str,
        max_age: timedelta,
        *,
        enabled: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._dir = Path(directory)
        self._max_age = max_age
        self._enabled = enabled
        self._clock = clock
        self._lock = ReadWriteLock()
        try:
            self._dir.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheIOError(f"failed to create cache directory {self._dir}: {exc}") from exc

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def key_digest(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def path_for(self, key: str) -> Path:
        return self._dir / f"{self.key_digest(key)}{_SUFFIX}"

    # ── reads ──────────────────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for *key*, or *default* on a miss.

        Expired entries are evicted. Unreadable or undecodable entries are
        treated as misses and left for the next :meth:`set` to overwrite.
        """
        path = self.path_for(key)
        with self._lock.read():
            if not self._enabled:
                return default
            entry = self._read_entry(path)
        if entry is None:
            return default

        value, stamp = entry
        if self._clock() - stamp < self._max_age:
            return value

        self._evict_if_stale(path)
        return default

    def __contains__(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    # ── writes ─────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* stamped with the current time.

        No-op while the cache is disabled. Raises :class:`CacheIOError`
        if the value cannot be encoded or the file cannot be written.
        """
        path = self.path_for(key)
        with self._lock.write():
            if not self._enabled:
                return
            try:
                payload = json.dumps({"value": value, "timestamp": self._clock().isoformat()})
            except (TypeError, ValueError) as exc:
                raise CacheIOError(f"cannot encode cache value for {key!r}: {exc}") from exc
            try:
                self._write_whole(path, payload)
            except OSError as exc:
                raise CacheIOError(f"failed to write cache entry {path.name}: {exc}") from exc

    def clear(self) -> int:
        """Remove every entry. Returns the number of files removed."""
        removed = 0
        with self._lock.write():
            try:
                for entry in self._dir.iterdir():
                    if entry.suffix == _SUFFIX and entry.is_file():
                        entry.unlink()
                        removed += 1
            except OSError as exc:
                raise CacheIOError(f"failed to clear cache {self._dir}: {exc}") from exc
        log.info("cache.cleared", directory=str(self._dir), removed=removed)
        return removed

    def enable(self) -> None:
        with self._lock.write():
            self._enabled = True

    def disable(self) -> None:
        with self._lock.write():
            self._enabled = False

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    def _read_entry(path: Path) -> tuple[Any, datetime] | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            log.debug("cache.read_failed", file=path.name, exc_info=True)
            return None
        try:
            data = json.loads(raw)
            stamp = datetime.fromisoformat(data["timestamp"])
            value = data["value"]
        except (ValueError, KeyError, TypeError):
            log.debug("cache.decode_failed", file=path.name)
            return None
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return value, stamp

    def _evict_if_stale(self, path: Path) -> None:
        with self._lock.write():
            # A writer may have refreshed the entry since our read.
            entry = self._read_entry(path)
            if entry is None or self._clock() - entry[1] < self._max_age:
                return
            try:
                path.unlink()
            except FileNotFoundError:
                return
            except OSError:
                log.debug("cache.evict_failed", file=path.name, exc_info=True)
                return
        log.debug("cache.evicted", file=path.name)

    def _write_whole(self, path: Path, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.chmod(tmp_name, _FILE_MODE)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
