"""Background workers for photo loading and deletion."""
import logging
from typing import Optional

from PySide6.QtCore import QThread, Signal

from phototriage.core.collection import PhotoCollection
from phototriage.core.deletion import delete_selected
from phototriage.core.library import PhotoLibrary
from phototriage.core.result_cache import ResultCache
from phototriage.core.selection import SelectionLedger

log = logging.getLogger("phototriage.library_worker")


class LoadWorker(QThread):
    photos_loaded = Signal(int, int)     # materialized, total
    load_error = Signal(str)

    def __init__(self, collection: PhotoCollection, limit: int, initial: bool = True):
        super().__init__()
        self.collection = collection
        self.limit = limit
        self.initial = initial

    def run(self):
        try:
            if self.initial:
                self.collection.load_initial(self.limit)
            else:
                self.collection.load_more(self.limit)
        except Exception as e:
            log.exception("Loading photos failed")
            self.load_error.emit(str(e))
            return
        self.photos_loaded.emit(
            self.collection.materialized_count, self.collection.total_asset_count,
        )


class DeleteWorker(QThread):
    delete_finished = Signal(object)     # DeleteOutcome
    delete_error = Signal(str)

    def __init__(
        self,
        collection: PhotoCollection,
        ledger: SelectionLedger,
        library: PhotoLibrary,
        cache: Optional[ResultCache] = None,
    ):
        super().__init__()
        self.collection = collection
        self.ledger = ledger
        self.library = library
        self.cache = cache

    def run(self):
        try:
            outcome = delete_selected(
                self.collection, self.ledger, self.library, self.cache,
            )
        except Exception as e:
            log.exception("Delete failed")
            self.delete_error.emit(str(e))
            return
        self.delete_finished.emit(outcome)
