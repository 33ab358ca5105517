# src/scanlens/analyzer.py
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .chunking import chunk_text
from .combiner import combine_reconstructed_chunks, postprocess_reconstruction
from .config import AnalysisConfig
from .executor import TaskExecutor
from .llm_backends.base import BaseLLMBackend
from .models import AnalysisResult, ProgressEvent, TaskKind
from .parallel import OCRPool
from .pdf_processor import BasePDFProcessor, get_pdf_processor
from .postprocess import TermCorrector, TextHook, clean_ocr_text, identity_hook
from .utils import import_object

logger = logging.getLogger("scanlens")

# (file_index, progress 0-100, status, task, chunk descriptor)
ProgressCallback = Callable[[int, float, str, Optional[str], Optional[str]], None]

TASK_ORDER = (TaskKind.EXTRACT, TaskKind.SUMMARIZE, TaskKind.RECONSTRUCT)


class ProgressReporter:
    """
    Delivers progress events to the PROGRESS log level and to an optional callback.
    A failing callback is logged and ignored; progress never changes pipeline flow.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def __call__(self, file_index: int, progress: float, status: str,
                 task: Optional[str] = None, chunk: Optional[str] = None) -> None:
        event = ProgressEvent(file_index=file_index, progress=progress, status=status, task=task, chunk=chunk)
        logger.progress(
            status,
            extra={"file_index": file_index, "pct": progress, "task": task, "chunk": chunk},
        )
        if self.callback is None:
            return
        try:
            self.callback(event.file_index, event.progress, event.status, event.task, event.chunk)
        except Exception:
            logger.exception("Progress callback failed for file %s", file_index)


class DocumentAnalyzer:
    """Sequences OCR, chunking and the three analysis tasks for one file at a time."""

    def __init__(
        self,
        config: AnalysisConfig,
        backend: Optional[BaseLLMBackend] = None,
        pdf_processor: Optional[BasePDFProcessor] = None,
        ocr_pool: Optional[OCRPool] = None,
        term_hook: Optional[TextHook] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self._backend = backend
        self._sleep = sleep
        self._executor: Optional[TaskExecutor] = None
        self.pdf_processor = pdf_processor or get_pdf_processor(config.pdf_engine, config.dpi)
        self.ocr_pool = ocr_pool or OCRPool(config)
        if term_hook is None:
            if config.term_dictionary_path:
                term_hook = TermCorrector.from_file(config.term_dictionary_path)
            else:
                term_hook = identity_hook
        self.term_hook = term_hook

    @property
    def executor(self) -> TaskExecutor:
        # Built on first use so OCR-only runs need no LLM credentials
        if self._executor is None:
            if self._backend is None:
                BackendCls = import_object(self.config.llm_backend)
                self._backend = BackendCls(**(self.config.llm_backend_kwargs or {}))
            self._executor = TaskExecutor(self._backend, self.config, sleep=self._sleep)
        return self._executor

    # -----------------------------
    # Stage 1. PDF to text
    # -----------------------------
    def extract_pdf(self, pdf_path: Union[str, Path], file_index: int = 0,
                    on_progress: Optional[ProgressCallback] = None) -> str:
        report = ProgressReporter(on_progress)
        pdf_path = Path(pdf_path)

        logger.info("Starting PDF processing, %s", pdf_path)
        report(file_index, 20, "Converting PDF to images...", "convert")
        pages = self.pdf_processor.render_pages(pdf_path, self.config.temp_dir / "pages")
        logger.info("Converted %s to %d images", pdf_path.name, len(pages))

        report(file_index, 30, "Starting text extraction from images...", "ocr")
        try:
            raw_text = self.ocr_pool.extract(
                pages, lambda pct, status: report(file_index, pct, status, "ocr")
            )
        finally:
            # pages not consumed by OCR (error path) are removed here
            for page in pages:
                page.path.unlink(missing_ok=True)
        logger.info("Finished text extraction, %d characters", len(raw_text))

        report(file_index, 80, "Post-processing extracted text...", "postprocess")
        text = clean_ocr_text(raw_text)

        report(file_index, 90, "Applying term corrections...", "postprocess")
        text = self.term_hook(text)

        report(file_index, 100, "Text extraction complete", "postprocess")
        return text

    # -----------------------------
    # Stage 2. Chunked analysis
    # -----------------------------
    def process_document(self, text: str, file_index: int = 0,
                         on_progress: Optional[ProgressCallback] = None) -> AnalysisResult:
        report = ProgressReporter(on_progress)
        results: Dict[TaskKind, List[str]] = {task: [] for task in TASK_ORDER}

        for task in TASK_ORDER:
            chunks = chunk_text(text, self.config.chunk_size_for(task), self.config.chunk_overlap_for(task))
            logger.info("Created %d %s chunks for file %d", len(chunks), task.value, file_index)

            for i, chunk in enumerate(chunks):
                report(
                    file_index,
                    i / len(chunks) * 100,
                    f"Processing {task.value} task",
                    task.value,
                    f"Chunk {i + 1} of {len(chunks)}",
                )
                results[task].append(self.executor.run_task(chunk, task, i, len(chunks), file_index))

        reconstruction = postprocess_reconstruction(
            combine_reconstructed_chunks(results[TaskKind.RECONSTRUCT])
        )
        report(file_index, 100, "Analysis complete")
        return AnalysisResult(
            extraction=results[TaskKind.EXTRACT],
            summary=[" ".join(results[TaskKind.SUMMARIZE])],
            reconstruction=reconstruction,
        )

    def analyze_pdf(self, pdf_path: Union[str, Path], file_index: int = 0,
                    on_progress: Optional[ProgressCallback] = None) -> AnalysisResult:
        text = self.extract_pdf(pdf_path, file_index, on_progress)
        return self.process_document(text, file_index, on_progress)
