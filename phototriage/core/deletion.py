"""Deletion of selected photos through the photo library."""
import logging
from typing import Optional

from phototriage.core.collection import PhotoCollection
from phototriage.core.library import PhotoLibrary
from phototriage.core.models import DeleteOutcome
from phototriage.core.result_cache import ResultCache
from phototriage.core.selection import SelectionLedger

log = logging.getLogger("phototriage.deletion")


def delete_selected(
    collection: PhotoCollection,
    ledger: SelectionLedger,
    library: PhotoLibrary,
    cache: Optional[ResultCache] = None,
) -> DeleteOutcome:
    """Delete every selected photo.

    Only the ids the library reports as deleted are removed from the
    collection, the selection and ``cache``. Photos that could not be
    deleted stay where they are, still selected. Library errors propagate
    with nothing removed.
    """
    # Keep collection order so the library sees photos as the user does
    requested = [p.id for p in ledger.selected_photos()]
    if not requested:
        log.debug("Delete requested with empty selection")
        return DeleteOutcome()

    log.info("Deleting %d selected photos", len(requested))
    reported = set(library.delete_assets(requested))

    deleted = [pid for pid in requested if pid in reported]
    failed = [pid for pid in requested if pid not in reported]

    collection.remove(set(deleted))
    ledger.prune(deleted)
    if cache is not None:
        for pid in deleted:
            cache.invalidate(pid)

    if failed:
        log.warning("%d of %d photos were not deleted", len(failed), len(requested))
    return DeleteOutcome(requested=requested, deleted=deleted, failed=failed)
