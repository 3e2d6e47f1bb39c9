"""Wiring of the triage components for one photo folder."""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from phototriage.core.collection import PhotoCollection
from phototriage.core.engine import BatchAnalysisEngine
from phototriage.core.kv_store import SqliteKeyValueStore
from phototriage.core.library import FolderPhotoLibrary
from phototriage.core.models import AnalysisSettings
from phototriage.core.result_cache import ResultCache
from phototriage.core.scorer import QualityScorer
from phototriage.core.selection import SelectionLedger
from phototriage.util.paths import get_db_path, get_thumb_dir, has_existing_cache

log = logging.getLogger("phototriage.session")


@dataclass
class TriageSession:
    library_root: str
    settings: AnalysisSettings
    library: FolderPhotoLibrary
    store: SqliteKeyValueStore
    cache: ResultCache
    scorer: QualityScorer
    collection: PhotoCollection
    ledger: SelectionLedger
    engine: BatchAnalysisEngine

    def close(self):
        self.scorer.close()
        self.store.close()
        log.info("Session closed for %s", self.library_root)


def open_session(
    library_root: str,
    settings: Optional[AnalysisSettings] = None,
    is_session_active: Optional[Callable[[], bool]] = None,
) -> TriageSession:
    """Build every component for ``library_root``. Nothing is listed yet;
    call ``collection.load_initial`` to materialize the first page."""
    settings = settings or AnalysisSettings()
    resuming = has_existing_cache(library_root)

    library = FolderPhotoLibrary(library_root, get_thumb_dir(library_root))
    store = SqliteKeyValueStore(get_db_path(library_root))
    cache = ResultCache(
        store,
        capacity=settings.cache_capacity,
        expiry=timedelta(days=settings.cache_expiry_days),
    )
    scorer = QualityScorer(
        base_url=settings.scorer_base_url,
        score_timeout=settings.score_timeout,
        health_timeout=settings.health_timeout,
        max_dimension=settings.max_dimension,
        jpeg_quality=settings.jpeg_quality,
    )
    collection = PhotoCollection(library)
    ledger = SelectionLedger(collection)
    engine = BatchAnalysisEngine(
        scorer, cache, library, settings, is_session_active=is_session_active,
    )
    if resuming:
        log.info("Resuming %s with %d cached results", library_root, len(cache))
    else:
        log.info("New session for %s", library_root)
    return TriageSession(
        library_root=library_root,
        settings=settings,
        library=library,
        store=store,
        cache=cache,
        scorer=scorer,
        collection=collection,
        ledger=ledger,
        engine=engine,
    )
