"""Headless bootstrap: analyze a photo folder batch by batch."""
import os
import sys
import logging
import argparse
from typing import Optional

from PySide6.QtCore import QCoreApplication, QObject, Slot

from phototriage.core.library import PhotoLibraryError
from phototriage.core.session import TriageSession, open_session
from phototriage.util.logging_util import setup_logging
from phototriage.util.paths import get_log_dir, get_settings_path
from phototriage.util.settings import load_settings
from phototriage.workers.analysis_worker import (
    AnalysisWorker, MODE_CONTINUE, MODE_NEXT,
)

log = logging.getLogger("phototriage.main")


class BatchRunner(QObject):
    """Starts one AnalysisWorker per batch until the batch limit is reached
    or a run completes no batch, then quits the event loop."""

    def __init__(self, session: TriageSession, max_batches: int, app: QCoreApplication):
        super().__init__()
        self.session = session
        self.max_batches = max_batches
        self.app = app
        self.batches_done = 0
        self.error: Optional[str] = None
        self.worker: Optional[AnalysisWorker] = None
        self._batch_in_run = False

    def start(self):
        self._launch(MODE_NEXT)

    def _launch(self, mode: str):
        if self.worker is not None:
            self.worker.wait()
        self._batch_in_run = False
        worker = AnalysisWorker(self.session.engine, self.session.collection, mode)
        worker.status_changed.connect(self._on_status)
        worker.batch_completed.connect(self._on_batch)
        worker.analysis_error.connect(self._on_error)
        worker.finished.connect(self._on_finished)
        self.worker = worker
        worker.start()

    @Slot(str)
    def _on_status(self, message: str):
        log.debug(message)

    @Slot(list, int, int)
    def _on_batch(self, photos: list, batch_number: int, total_batches: int):
        self.batches_done += 1
        self._batch_in_run = True
        bad = sum(1 for p in photos if p.is_bad)
        log.info(
            "Batch %d of %d done: %d photos, %d bad",
            batch_number, total_batches, len(photos), bad,
        )

    @Slot(str)
    def _on_error(self, message: str):
        self.error = message

    @Slot()
    def _on_finished(self):
        wants_more = self.max_batches <= 0 or self.batches_done < self.max_batches
        if self._batch_in_run and self.error is None and wants_more:
            self._launch(MODE_CONTINUE)
            return
        self.app.quit()


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="phototriage",
        description="Score the photos in a folder and report the bad ones.",
    )
    parser.add_argument("folder", help="photo folder to analyze")
    parser.add_argument(
        "--batches", type=int, default=1,
        help="number of batches to analyze, 0 for all (default: 1)",
    )
    parser.add_argument("--settings", help="settings JSON (default: <folder>/.phototriage/settings.json)")
    parser.add_argument("--url", help="scoring service base URL")
    parser.add_argument("--fallback", action="store_true", help="score locally when the service fails")
    parser.add_argument("--no-cache", action="store_true", help="ignore cached results")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug output on the console")
    return parser.parse_args(argv)


def _log_summary(session: TriageSession):
    collection = session.collection
    bad = collection.bad_photos()
    stats = session.engine.cache_stats()
    log.info(
        "%d of %d loaded photos analyzed (%d in library), %d bad",
        collection.analyzed_count(), len(collection), collection.total_asset_count, len(bad),
    )
    log.info(
        "Cache: %d entries, %d valid, ~%d KB",
        stats.total_entries, stats.valid_entries, stats.approx_memory_bytes // 1024,
    )
    for photo in bad:
        log.info("  bad: %s (%.2f, %s)", photo.path, photo.quality_score or 0.0, photo.method.value)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    root = os.path.abspath(args.folder)
    if not os.path.isdir(root):
        print(f"Not a folder: {root}", file=sys.stderr)
        return 2

    setup_logging(get_log_dir(root), logging.DEBUG if args.verbose else logging.INFO)
    settings = load_settings(args.settings or get_settings_path(root))
    if args.url:
        settings.scorer_base_url = args.url
    if args.fallback:
        settings.local_fallback = True
    if args.no_cache:
        settings.use_cache = False

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("PhotoTriage")

    session = open_session(root, settings)
    try:
        try:
            session.collection.load_initial(settings.initial_load_limit)
        except PhotoLibraryError as e:
            log.error("Cannot load photos: %s", e)
            return 1

        runner = BatchRunner(session, args.batches, app)
        runner.start()
        app.exec()
        if runner.worker is not None:
            runner.worker.wait()

        _log_summary(session)
        return 0 if runner.error is None else 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
