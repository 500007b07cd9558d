"""
Thread-safe JSON metadata cache for pawtag.

Fetching metadata is the slow part of a run (one yt-dlp process per id),
so every fetched record is kept in a JSON file next to the working
directory. A second run over the same playlist fetches nothing.

File format (.pawtag_cache.json):
    {
        "dQw4w9WgXcQ": {
            "title": "Never Gonna Give You Up",
            "uploader": "Rick Astley",
            "upload_date": "20091025",
            "thumbnail_url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg",
            "webpage_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "fetched_at": 1700000000.0
        }
    }

    "fetched_at" is only used when a TTL is configured; files written by
    hand without it are accepted and never expire.

Persistence:
    The whole map is written at once, to a temporary file in the same
    directory that then replaces the cache file. A crash mid-write leaves
    the previous cache intact. Write failures are logged, never raised:
    losing the cache only costs refetching.

Usage:
    cache = MetadataCache(Path(".pawtag_cache.json"))
    cache.load()
    if "abc123" not in cache:
        cache.put("abc123", record)
    cache.persist()
"""

import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any

from pawtag.core.exceptions import CachePersistError
from pawtag.core.logger import get_logger
from pawtag.youtube.models import MetadataRecord

logger = get_logger(__name__)


SECONDS_PER_DAY = 86400


class MetadataCache:
    """
    Persistent mapping of remote id -> MetadataRecord.

    Attributes:
        path: Cache file, or None for an in-memory cache that never
              touches disk.
        ttl_days: Entries older than this are treated as missing.
                  None keeps entries forever.
        autosave_every: Persist after every N new entries (0 disables).

    Thread Safety:
        All public methods take an internal lock. Fetch workers call
        put() concurrently; persist() snapshots the map under the lock
        and writes outside it.
    """

    def __init__(
        self,
        path: Path | None,
        ttl_days: float | None = None,
        autosave_every: int = 0
    ) -> None:
        self.path = path
        self.ttl_days = ttl_days
        self.autosave_every = autosave_every

        self._lock = threading.Lock()
        self._records: dict[str, MetadataRecord] = {}
        self._fetched_at: dict[str, float] = {}
        self._unsaved = 0

    def load(self) -> None:
        """
        Load the cache file into memory.

        Never fails: a missing file yields an empty cache silently; an
        unreadable or corrupt file yields an empty cache with a warning.
        Invalid entries are skipped individually.
        """
        if self.path is None or not self.path.exists():
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable cache {self.path}: {e}")
            return

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring cache {self.path}: top level is not an object")
            return

        loaded = 0
        with self._lock:
            for remote_id, data in raw.items():
                if not isinstance(data, dict):
                    continue
                self._records[remote_id] = MetadataRecord.from_dict(data)
                fetched_at = data.get("fetched_at")
                if isinstance(fetched_at, (int, float)) and not isinstance(fetched_at, bool):
                    self._fetched_at[remote_id] = float(fetched_at)
                loaded += 1

        logger.debug(f"Loaded {loaded} cached records from {self.path}")

    def _expired(self, remote_id: str) -> bool:
        if self.ttl_days is None:
            return False
        fetched_at = self._fetched_at.get(remote_id)
        if fetched_at is None:
            return False
        return time.time() - fetched_at > self.ttl_days * SECONDS_PER_DAY

    def get(self, remote_id: str) -> MetadataRecord | None:
        with self._lock:
            if self._expired(remote_id):
                return None
            return self._records.get(remote_id)

    def put(self, remote_id: str, record: MetadataRecord) -> None:
        """
        Store a record, persisting if the autosave threshold is reached.
        """
        with self._lock:
            self._records[remote_id] = record
            self._fetched_at[remote_id] = time.time()
            self._unsaved += 1
            autosave = self.autosave_every > 0 and self._unsaved >= self.autosave_every

        if autosave:
            self.persist()

    def persist(self) -> bool:
        """
        Write the whole cache to disk atomically.

        Returns:
            True if the file was written (or there is no file to write),
            False if writing failed. Failures are logged, not raised.
        """
        if self.path is None:
            return True

        with self._lock:
            snapshot = self._snapshot()
            self._unsaved = 0

        temp_path: str | None = None
        try:
            directory = self.path.parent
            directory.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self.path)
            temp_path = None
        except OSError as e:
            error = CachePersistError(
                f"Failed to write cache {self.path}: {e}",
                details={"path": str(self.path), "original_error": str(e)}
            )
            logger.warning(str(error))
            return False
        finally:
            if temp_path is not None:
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

        logger.debug(f"Saved {len(snapshot)} cached records to {self.path}")
        return True

    def _snapshot(self) -> dict[str, dict[str, Any]]:
        snapshot = {}
        for remote_id, record in self._records.items():
            data = record.to_dict()
            if remote_id in self._fetched_at:
                data["fetched_at"] = self._fetched_at[remote_id]
            snapshot[remote_id] = data
        return snapshot

    def __contains__(self, remote_id: object) -> bool:
        if not isinstance(remote_id, str):
            return False
        with self._lock:
            return remote_id in self._records and not self._expired(remote_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
