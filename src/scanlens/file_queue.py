# src/scanlens/file_queue.py
from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from .analyzer import DocumentAnalyzer, ProgressCallback
from .models import AnalysisResult, FileOutcome
from .utils import append_jsonl

logger = logging.getLogger("scanlens")

_SENTINEL = None


@dataclass
class _QueueItem:
    source: Union[str, Path]
    file_index: int
    future: Future


class FileQueue:
    """
    Single-flight queue: analyzes whole files one at a time on a worker thread.

    Sources are either a PDF path (Path) or already extracted text (str).
    Each submission gets a Future; a failing file only fails its own future
    and never stops the files queued behind it.

        fq = FileQueue(analyzer)
        fq.start()
        fut = fq.submit(Path("report.pdf"), 0)
        ...
        fq.stop()
    """

    def __init__(
        self,
        analyzer: DocumentAnalyzer,
        on_progress: Optional[ProgressCallback] = None,
        on_outcome: Optional[Callable[[FileOutcome], None]] = None,
        error_log_path: Optional[Path] = None,
    ):
        self.analyzer = analyzer
        self.on_progress = on_progress
        self.on_outcome = on_outcome
        self.error_log_path = error_log_path
        self._pending: "queue.Queue[Optional[_QueueItem]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._accepting = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._worker is not None:
                raise RuntimeError("FileQueue already started")
            self._accepting = True
            self._worker = threading.Thread(target=self._run, name="scanlens-file-queue", daemon=True)
            self._worker.start()
        logger.info("File queue started")

    def stop(self, wait: bool = True) -> None:
        """Stop accepting files; already queued files are still processed."""
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            self._pending.put(_SENTINEL)
        if wait and self._worker is not None:
            self._worker.join()
        logger.info("File queue stopped")

    def submit(self, source: Union[str, Path], file_index: int) -> "Future[AnalysisResult]":
        with self._lock:
            if not self._accepting:
                raise RuntimeError("FileQueue is not running; call start() first")
            fut: "Future[AnalysisResult]" = Future()
            self._pending.put(_QueueItem(source=source, file_index=file_index, future=fut))
        return fut

    def join(self) -> None:
        """Block until every submitted file has been processed."""
        self._pending.join()

    def _process(self, item: _QueueItem) -> AnalysisResult:
        if isinstance(item.source, Path):
            return self.analyzer.analyze_pdf(item.source, item.file_index, self.on_progress)
        return self.analyzer.process_document(item.source, item.file_index, self.on_progress)

    def _run(self) -> None:
        while True:
            item = self._pending.get()
            try:
                if item is _SENTINEL:
                    break
                if not item.future.set_running_or_notify_cancel():
                    continue
                label = str(item.source) if isinstance(item.source, Path) else f"<text {item.file_index}>"
                try:
                    result = self._process(item)
                except Exception as e:
                    logger.error("Error processing file %d, %s", item.file_index, e, exc_info=True)
                    append_jsonl(self.error_log_path, {
                        "source": label,
                        "file_index": item.file_index,
                        "error_reason": f"{type(e).__name__}: {e}",
                    })
                    item.future.set_exception(e)
                    self._notify(FileOutcome(file_index=item.file_index, source=label, error=str(e)))
                else:
                    logger.info("File %d processed successfully", item.file_index)
                    item.future.set_result(result)
                    self._notify(FileOutcome(file_index=item.file_index, source=label, result=result))
            finally:
                self._pending.task_done()

    def _notify(self, outcome: FileOutcome) -> None:
        if self.on_outcome is None:
            return
        try:
            self.on_outcome(outcome)
        except Exception:
            logger.exception("Outcome handler failed for file %d", outcome.file_index)
