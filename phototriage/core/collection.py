"""Incrementally loaded, ordered collection of photos."""
import logging
from typing import Iterator, Optional

from phototriage.core.library import PhotoLibrary
from phototriage.core.models import Photo

log = logging.getLogger("phototriage.collection")


class PhotoCollection:
    """Photos materialized from a library, in the order the library returns them.

    ``total_asset_count`` is the upstream count reported by the last
    listing; ``remaining`` is how many exist upstream but are not loaded.
    Accessor errors propagate unchanged and leave the collection as it was.
    """

    def __init__(self, library: PhotoLibrary):
        self.library = library
        self._photos: list[Photo] = []
        self.total_asset_count = 0

    # ── Loading ──────────────────────────────────────────

    def load_initial(self, limit: int) -> int:
        """Replace the loaded photos with the first page.

        Photos that survive the reload keep their ``selected`` flag.
        """
        records, total = self.library.list_assets(0, limit)
        was_selected = {p.id for p in self._photos if p.selected}
        self._photos = [Photo.from_record(r) for r in records[:limit]]
        for p in self._photos:
            p.selected = p.id in was_selected
        self.total_asset_count = max(total, len(self._photos))
        log.info(
            "Loaded %d of %d photos", len(self._photos), self.total_asset_count,
        )
        return len(self._photos)

    def load_more(self, additional_limit: int) -> int:
        """Append the next page. Returns how many photos were added."""
        if self.remaining <= 0 or additional_limit <= 0:
            log.debug("No more photos to load")
            return 0

        start = len(self._photos)
        limit = min(additional_limit, self.remaining)
        records, total = self.library.list_assets(start, limit)

        known = {p.id for p in self._photos}
        added = [Photo.from_record(r) for r in records[:limit] if r.id not in known]
        self._photos.extend(added)
        self.total_asset_count = max(total, len(self._photos))
        log.info(
            "Loaded %d more photos, %d of %d now materialized",
            len(added), len(self._photos), self.total_asset_count,
        )
        return len(added)

    # ── Deletion ─────────────────────────────────────────

    def remove(self, ids: set[str]) -> int:
        """Drop photos with the given ids, keeping survivors in order."""
        before = len(self._photos)
        self._photos = [p for p in self._photos if p.id not in ids]
        removed = before - len(self._photos)
        self.total_asset_count = max(self.total_asset_count - removed, len(self._photos))
        if removed:
            log.info("Removed %d photos from collection", removed)
        return removed

    # ── Views ────────────────────────────────────────────

    @property
    def photos(self) -> list[Photo]:
        return list(self._photos)

    @property
    def materialized_count(self) -> int:
        return len(self._photos)

    @property
    def remaining(self) -> int:
        return self.total_asset_count - len(self._photos)

    @property
    def has_more(self) -> bool:
        return self.remaining > 0

    def get(self, photo_id: str) -> Optional[Photo]:
        for p in self._photos:
            if p.id == photo_id:
                return p
        return None

    def first_unanalyzed_index(self) -> Optional[int]:
        for i, p in enumerate(self._photos):
            if not p.is_analyzed:
                return i
        return None

    def slice(self, start: int, end: int) -> list[Photo]:
        return self._photos[start:end]

    def bad_photos(self) -> list[Photo]:
        return [p for p in self._photos if p.is_bad]

    def good_photos(self) -> list[Photo]:
        return [p for p in self._photos if p.is_analyzed and not p.is_bad]

    def analyzed_count(self) -> int:
        return sum(1 for p in self._photos if p.is_analyzed)

    def unanalyzed_count(self) -> int:
        return len(self._photos) - self.analyzed_count()

    def reset_analysis(self):
        for p in self._photos:
            p.reset_analysis()

    def __len__(self) -> int:
        return len(self._photos)

    def __iter__(self) -> Iterator[Photo]:
        return iter(list(self._photos))

    def __getitem__(self, index: int) -> Photo:
        return self._photos[index]
