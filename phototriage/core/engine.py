"""Batch analysis engine: scores a photo collection in fixed-size batches.

Photos are processed one at a time in collection order. Each photo is
looked up in the result cache first; on a miss the remote scorer is
health-checked and then asked for a score. Remote failures never abort a
batch: the photo is marked ``failed``/``bad`` (or scored locally when the
local fallback is enabled) and processing moves on.

The engine never advances on its own. After ``on_batch_complete`` fires
the caller decides whether to call ``continue_to_next_batch``.
"""
import math
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from phototriage.core.collection import PhotoCollection
from phototriage.core.fallback import category_for_score, score_locally
from phototriage.core.library import PhotoLibrary, PhotoLibraryError
from phototriage.core.models import (
    AnalysisMethod, AnalysisSettings, BatchResult, CachedResult, CacheStats,
    Category, Photo, PhotoState, ScoreResult,
)
from phototriage.core.result_cache import ResultCache
from phototriage.core.scorer import QualityScorer

log = logging.getLogger("phototriage.engine")

BATCH_SIZE = 50
# Load another page once fewer than this many loaded photos are unanalyzed
REFILL_THRESHOLD = 10

MSG_NO_PHOTOS = "No photos to analyze"
MSG_ALL_ANALYZED = "All photos have been analyzed!"
MSG_BUSY = "Analysis already in progress"
MSG_SIGNED_OUT = "Sign in to analyze photos"
MSG_CANCELLED = "Analysis cancelled"
MSG_LOADING_MORE = "Loading more photos..."
MSG_COMPLETE = "Analysis complete!"

ProgressCallback = Callable[[int, int], None]  # current, total
StatusCallback = Callable[[str], None]
BatchCompleteCallback = Callable[[list[Photo], int, int], None]  # photos, batch, total batches
CancelCheck = Callable[[], bool]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _noop(*_args):
    pass


class BatchAnalysisEngine:
    def __init__(
        self,
        scorer: QualityScorer,
        cache: ResultCache,
        library: PhotoLibrary,
        settings: Optional[AnalysisSettings] = None,
        is_session_active: Optional[Callable[[], bool]] = None,
        batch_size: int = BATCH_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.scorer = scorer
        self.cache = cache
        self.library = library
        self.settings = settings or AnalysisSettings()
        self.batch_size = batch_size
        self._is_session_active = is_session_active
        self._clock = clock
        self._run_lock = threading.Lock()
        self._current_id: Optional[str] = None

    # ── State ────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def photo_state(self, photo: Photo) -> PhotoState:
        if photo.id == self._current_id:
            return PhotoState.ANALYZING
        return photo.state

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    # ── Batch operations ─────────────────────────────────

    def analyze_next_batch(
        self,
        collection: PhotoCollection,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
        on_batch_complete: Optional[BatchCompleteCallback] = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> Optional[BatchResult]:
        """Analyze the batch starting at the first unanalyzed photo.

        Returns the processed batch, or None when there was nothing to do
        or the batch was cancelled.
        """
        on_status = on_status or _noop
        if not self._run_lock.acquire(blocking=False):
            on_status(MSG_BUSY)
            return None
        try:
            if not self._session_ok(on_status):
                return None
            return self._run_batch(
                collection, on_progress or _noop, on_status,
                on_batch_complete or _noop, cancel_check,
            )
        finally:
            self._run_lock.release()

    def continue_to_next_batch(
        self,
        collection: PhotoCollection,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
        on_batch_complete: Optional[BatchCompleteCallback] = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> Optional[BatchResult]:
        """Like ``analyze_next_batch``, loading one more page first when the
        loaded-but-unanalyzed backlog runs low."""
        on_status = on_status or _noop
        if not self._run_lock.acquire(blocking=False):
            on_status(MSG_BUSY)
            return None
        try:
            if not self._session_ok(on_status):
                return None
            self._refill(collection, on_status)
            return self._run_batch(
                collection, on_progress or _noop, on_status,
                on_batch_complete or _noop, cancel_check,
            )
        finally:
            self._run_lock.release()

    def analyze_all(
        self,
        collection: PhotoCollection,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> int:
        """Analyze every loaded photo without pausing between batches.

        Returns the number of photos processed.
        """
        on_status = on_status or _noop
        if not self._run_lock.acquire(blocking=False):
            on_status(MSG_BUSY)
            return 0
        processed = 0
        try:
            if not self._session_ok(on_status):
                return 0
            on_status("Starting analysis...")
            while True:
                result = self._run_batch(
                    collection, on_progress or _noop, on_status, _noop, cancel_check,
                )
                if result is None:
                    break
                processed += len(result.photos)
            if len(collection) and not (cancel_check and cancel_check()):
                log.info(
                    "Analysis complete: %d processed, %d bad of %d",
                    processed, len(collection.bad_photos()), len(collection),
                )
                on_status(MSG_COMPLETE)
            return processed
        finally:
            self._run_lock.release()

    # ── Resetting ────────────────────────────────────────

    def invalidate_photo(self, collection: PhotoCollection, photo_id: str) -> bool:
        """Forget the cached result and return the photo to unanalyzed."""
        self.cache.invalidate(photo_id)
        photo = collection.get(photo_id)
        if photo is None:
            return False
        photo.reset_analysis()
        return True

    def clear_cache_and_reset(self, collection: PhotoCollection):
        self.cache.clear()
        collection.reset_analysis()
        log.info("Cache cleared and %d photos reset", len(collection))

    # ── Internals ────────────────────────────────────────

    def _session_ok(self, on_status: StatusCallback) -> bool:
        if self._is_session_active is None or self._is_session_active():
            return True
        log.info("Analysis skipped: no active session")
        on_status(MSG_SIGNED_OUT)
        return False

    def _refill(self, collection: PhotoCollection, on_status: StatusCallback):
        if not collection.has_more:
            return
        if collection.unanalyzed_count() >= REFILL_THRESHOLD:
            return
        on_status(MSG_LOADING_MORE)
        try:
            added = collection.load_more(self.batch_size)
        except PhotoLibraryError as e:
            log.warning("Loading more photos failed: %s", e)
            on_status(f"Could not load more photos: {e}")
            return
        log.debug("Refilled collection with %d photos", added)

    def _run_batch(
        self,
        collection: PhotoCollection,
        on_progress: ProgressCallback,
        on_status: StatusCallback,
        on_batch_complete: BatchCompleteCallback,
        cancel_check: Optional[CancelCheck],
    ) -> Optional[BatchResult]:
        total = len(collection)
        if total == 0:
            on_status(MSG_NO_PHOTOS)
            return None

        start = collection.first_unanalyzed_index()
        if start is None:
            on_status(MSG_ALL_ANALYZED)
            return None

        end = min(start + self.batch_size, total)
        batch = collection.slice(start, end)
        batch_number = start // self.batch_size + 1
        total_batches = math.ceil(total / self.batch_size)

        log.info(
            "Batch %d of %d: photos %d-%d of %d",
            batch_number, total_batches, start + 1, end, total,
        )
        on_status(f"Processing batch {batch_number} of {total_batches}...")

        for offset, photo in enumerate(batch):
            if cancel_check and cancel_check():
                log.info("Batch %d cancelled at photo %d", batch_number, start + offset + 1)
                on_status(MSG_CANCELLED)
                return None
            index = start + offset
            on_status(f"Analyzing photo {index + 1} of {total}...")
            self._analyze_photo(photo, on_status)
            on_progress(index + 1, total)

        bad = sum(1 for p in batch if p.is_bad)
        log.info(
            "Batch %d complete: %d good, %d bad", batch_number, len(batch) - bad, bad,
        )
        on_batch_complete(list(batch), batch_number, total_batches)
        return BatchResult(
            photos=list(batch),
            batch_number=batch_number,
            total_batches=total_batches,
            start=start,
            end=end,
        )

    def _analyze_photo(self, photo: Photo, on_status: StatusCallback):
        self._current_id = photo.id
        try:
            if self.settings.use_cache:
                cached = self.cache.get(photo.id)
                if cached is not None:
                    photo.apply_result(
                        cached.category, cached.quality_score, cached.method,
                        cached.raw_method_details, cached.cached_at,
                    )
                    return

            image: Optional[bytes] = None
            if self.scorer.is_healthy():
                image = self._read_image(photo, on_status)
                if image is None:
                    details = {"reason": "image_unavailable"}
                else:
                    result = self.scorer.score_single(image)
                    if result.success:
                        self._apply_primary(photo, result)
                        return
                    details = {"reason": "scorer_error", "error": result.error}
            else:
                details = {"reason": "scorer_unhealthy"}

            if self.settings.local_fallback:
                if image is None and details["reason"] == "scorer_unhealthy":
                    image = self._read_image(photo, on_status)
                if image is not None and self._apply_fallback(photo, image, details):
                    return

            self._apply_failed(photo, details)
        finally:
            self._current_id = None

    def _read_image(self, photo: Photo, on_status: StatusCallback) -> Optional[bytes]:
        if self.settings.score_from_thumbnail:
            readers = (self.library.fetch_thumbnail, self.library.fetch_original_bytes)
        else:
            readers = (self.library.fetch_original_bytes, self.library.fetch_thumbnail)
        try:
            for read in readers:
                data = read(photo.id)
                if data:
                    return data
        except PhotoLibraryError as e:
            log.warning("Cannot read %s: %s", photo.id, e)
            on_status(f"Could not read {photo.display_name}: {e}")
            return None
        log.warning("No image data available for %s", photo.id)
        return None

    def _apply_primary(self, photo: Photo, result: ScoreResult):
        now = self._clock()
        remote = result.category.strip().lower()
        details: dict[str, Any] = dict(result.raw_details)
        if remote == "good":
            category = Category.GOOD
        elif remote in ("moderate", "bad"):
            category = Category.BAD
        else:
            # Unrecognized category: fall back to the numeric threshold
            category = category_for_score(result.normalized_score)
            details["category_source"] = "threshold"

        score = result.normalized_score
        photo.apply_result(category, score, AnalysisMethod.PRIMARY, details, now)
        self.cache.put(photo.id, CachedResult(
            category=category,
            quality_score=score,
            method=AnalysisMethod.PRIMARY,
            cached_at=now,
            raw_method_details=details,
        ))
        log.debug(
            "%s scored %.2f (%s -> %s)",
            photo.id, score, result.category, category.value,
        )

    def _apply_fallback(self, photo: Photo, image: bytes, details: dict) -> bool:
        local = score_locally(image)
        if local is None:
            return False
        score, metrics = local
        photo.apply_result(
            category_for_score(score), score, AnalysisMethod.FALLBACK,
            {**details, **metrics}, self._clock(),
        )
        log.debug("%s scored locally %.2f", photo.id, score)
        return True

    def _apply_failed(self, photo: Photo, details: dict):
        # Failed results are kept on the photo only, never cached
        photo.apply_result(
            Category.BAD, 0.0, AnalysisMethod.FAILED, details, self._clock(),
        )
        log.debug("%s failed: %s", photo.id, details.get("reason"))
