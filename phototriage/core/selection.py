"""Selection of photos marked for deletion."""
import logging
from typing import Iterable

from phototriage.core.collection import PhotoCollection
from phototriage.core.models import Photo

log = logging.getLogger("phototriage.selection")


class SelectionLedger:
    """Set of photo ids marked for deletion.

    The ledger owns the selection; each photo's ``selected`` flag is only
    a mirror for display. Ids not present in the collection are ignored,
    and ids that drop out of the collection (a reload that no longer
    materializes them) leave the selection.
    """

    def __init__(self, collection: PhotoCollection):
        self._collection = collection
        self._selected: set[str] = set()

    def _mirror(self, photo_id: str, selected: bool):
        photo = self._collection.get(photo_id)
        if photo is not None:
            photo.selected = selected

    def _sync(self):
        present = set()
        for p in self._collection:
            present.add(p.id)
            p.selected = p.id in self._selected
        stale = self._selected - present
        if stale:
            log.info("Dropped %d selected photos no longer loaded", len(stale))
            self._selected -= stale

    def toggle(self, photo_id: str) -> bool:
        """Flip selection for one photo. Returns the new state."""
        self._sync()
        if self._collection.get(photo_id) is None:
            log.debug("Toggle ignored for unknown photo %s", photo_id)
            return False
        if photo_id in self._selected:
            self._selected.discard(photo_id)
            self._mirror(photo_id, False)
            return False
        self._selected.add(photo_id)
        self._mirror(photo_id, True)
        return True

    def select_all(self, candidate_ids: Iterable[str]) -> int:
        """Replace the selection with every known candidate."""
        self.clear()
        for photo_id in candidate_ids:
            if self._collection.get(photo_id) is not None:
                self._selected.add(photo_id)
                self._mirror(photo_id, True)
        return len(self._selected)

    def clear(self):
        for photo_id in self._selected:
            self._mirror(photo_id, False)
        self._selected.clear()

    def prune(self, photo_ids: Iterable[str]):
        for photo_id in photo_ids:
            self._selected.discard(photo_id)

    def is_selected(self, photo_id: str) -> bool:
        self._sync()
        return photo_id in self._selected

    def count(self) -> int:
        self._sync()
        return len(self._selected)

    def selected_ids(self) -> set[str]:
        self._sync()
        return set(self._selected)

    def selected_photos(self) -> list[Photo]:
        self._sync()
        return [p for p in self._collection if p.id in self._selected]

    def selected_size_bytes(self) -> int:
        return sum(p.file_size for p in self.selected_photos())
