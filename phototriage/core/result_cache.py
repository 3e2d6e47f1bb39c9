"""Persistent, expiring, size-bounded cache of photo analysis results."""
import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from phototriage.core.kv_store import KeyValueStore
from phototriage.core.models import CachedResult, CacheStats

log = logging.getLogger("phototriage.result_cache")

CACHE_KEY = "photo_analysis_cache"
DEFAULT_CAPACITY = 1000
DEFAULT_EXPIRY = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResultCache:
    """Maps photo ids to previously computed analysis results.

    The in-memory dict is authoritative for the session. Every mutating
    call flushes the whole cache as one JSON blob to ``store``; a failed
    load or flush is logged and otherwise ignored.

    Mutations are serialized by an internal lock so ``stats()`` can be
    read from another thread while the analysis worker writes.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        capacity: int = DEFAULT_CAPACITY,
        expiry: timedelta = DEFAULT_EXPIRY,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self.capacity = capacity
        self.expiry = expiry
        self._clock = clock
        self._entries: dict[str, CachedResult] = {}
        self._lock = threading.RLock()
        self._load()

    # ── Public API ───────────────────────────────────────

    def get(self, photo_id: str) -> Optional[CachedResult]:
        with self._lock:
            cached = self._entries.get(photo_id)
            if cached is None:
                return None
            if self._is_expired(cached):
                # Purged in memory; the next flush drops it from storage
                del self._entries[photo_id]
                log.debug("Expired cache entry dropped for %s", photo_id)
                return None
            log.debug("Cache hit for %s", photo_id)
            return cached

    def put(self, photo_id: str, result: CachedResult) -> None:
        with self._lock:
            self._entries[photo_id] = result
            if len(self._entries) > self.capacity:
                self._evict()
            self._flush()

    def put_many(self, results: dict[str, CachedResult]) -> None:
        with self._lock:
            self._entries.update(results)
            if len(self._entries) > self.capacity:
                self._evict()
            self._flush()
        log.debug("Cached %d results", len(results))

    def invalidate(self, photo_id: str) -> None:
        with self._lock:
            if self._entries.pop(photo_id, None) is not None:
                log.debug("Invalidated cache entry for %s", photo_id)
            self._flush()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._flush()
        log.info("Analysis cache cleared")

    def stats(self) -> CacheStats:
        with self._lock:
            entries = list(self._entries.values())
        expired = sum(1 for e in entries if self._is_expired(e))
        return CacheStats(
            total_entries=len(entries),
            valid_entries=len(entries) - expired,
            expired_entries=expired,
            approx_memory_bytes=sum(e.estimated_size for e in entries),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, photo_id: str) -> bool:
        return self.get(photo_id) is not None

    # ── Internals ────────────────────────────────────────

    def _is_expired(self, result: CachedResult) -> bool:
        return self._clock() - result.cached_at >= self.expiry

    def _evict(self):
        expired = [k for k, v in self._entries.items() if self._is_expired(v)]
        for key in expired:
            del self._entries[key]

        overflow = len(self._entries) - self.capacity
        if overflow > 0:
            # sorted() is stable, so equal timestamps evict in insertion order
            oldest = sorted(self._entries.items(), key=lambda kv: kv[1].cached_at)
            for key, _ in oldest[:overflow]:
                del self._entries[key]

        log.debug(
            "Cache evicted %d expired and %d oldest entries, size now %d",
            len(expired), max(overflow, 0), len(self._entries),
        )

    def _load(self):
        if self._store is None:
            return
        try:
            raw = self._store.get(CACHE_KEY)
        except Exception as e:
            log.warning("Cannot read analysis cache from storage: %s", e)
            return
        if not raw:
            return
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            log.warning("Stored analysis cache is corrupt, starting empty: %s", e)
            return
        if not isinstance(data, dict):
            log.warning("Stored analysis cache has unexpected shape, starting empty")
            return

        skipped = 0
        for photo_id, entry in data.items():
            try:
                result = CachedResult.from_dict(entry)
                expired = self._is_expired(result)
            except (KeyError, TypeError, ValueError) as e:
                log.debug("Skipping unreadable cache entry %s: %s", photo_id, e)
                skipped += 1
                continue
            if expired:
                skipped += 1
                continue
            self._entries[photo_id] = result
        log.info(
            "Loaded %d cached results from storage (%d skipped)",
            len(self._entries), skipped,
        )

    def _flush(self):
        if self._store is None:
            return
        try:
            payload = json.dumps(
                {k: v.to_dict() for k, v in self._entries.items()},
                ensure_ascii=False,
            )
            self._store.set(CACHE_KEY, payload)
        except Exception as e:
            log.warning("Cannot write analysis cache to storage: %s", e)
