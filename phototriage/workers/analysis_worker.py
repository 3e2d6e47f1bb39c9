"""Background worker thread for batch analysis."""
import logging

from PySide6.QtCore import QThread, Signal

from phototriage.core.collection import PhotoCollection
from phototriage.core.engine import BatchAnalysisEngine

log = logging.getLogger("phototriage.analysis_worker")

MODE_NEXT = "next"
MODE_CONTINUE = "continue"
MODE_ALL = "all"


class AnalysisWorker(QThread):
    progress_updated = Signal(int, int)         # current, total
    status_changed = Signal(str)
    batch_completed = Signal(list, int, int)    # photos, batch_number, total_batches
    analysis_error = Signal(str)
    analysis_finished = Signal()

    def __init__(
        self,
        engine: BatchAnalysisEngine,
        collection: PhotoCollection,
        mode: str = MODE_NEXT,
    ):
        super().__init__()
        if mode not in (MODE_NEXT, MODE_CONTINUE, MODE_ALL):
            raise ValueError(f"Unknown analysis mode: {mode}")
        self.engine = engine
        self.collection = collection
        self.mode = mode
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def _is_cancelled(self) -> bool:
        return self._cancelled

    def run(self):
        try:
            self._run_analysis()
        except Exception as e:
            log.exception("Analysis failed")
            self.analysis_error.emit(str(e))
        finally:
            self.analysis_finished.emit()

    def _run_analysis(self):
        if self.mode == MODE_ALL:
            self.engine.analyze_all(
                self.collection,
                on_progress=self.progress_updated.emit,
                on_status=self.status_changed.emit,
                cancel_check=self._is_cancelled,
            )
            return

        if self.mode == MODE_CONTINUE:
            run_batch = self.engine.continue_to_next_batch
        else:
            run_batch = self.engine.analyze_next_batch
        run_batch(
            self.collection,
            on_progress=self.progress_updated.emit,
            on_status=self.status_changed.emit,
            on_batch_complete=self.batch_completed.emit,
            cancel_check=self._is_cancelled,
        )
