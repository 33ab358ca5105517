# scanlens/parallel.py
from __future__ import annotations

import logging
import multiprocessing as mp
from multiprocessing.pool import ThreadPool
from pathlib import Path
from typing import Callable, List, Optional

from tqdm import tqdm

from .config import AnalysisConfig
from .exceptions import OCRError
from .models import PageImage
from .ocr_worker import initialize_ocr_worker
from .processors import worker_ocr_page

logger = logging.getLogger("scanlens")

OCRProgressCallback = Callable[[int, str], None]


def stage_progress(done: int, total: int, lo: int, hi: int) -> int:
    """Map `done` of `total` pages into the stage's reserved [lo, hi] range."""
    if total <= 0:
        return hi
    return lo + round(done / total * (hi - lo))


class OCRPool:
    """
    Converts page images to text with a bounded set of OCR workers.

    Each worker builds its own engine in the pool initializer and handles
    one page at a time, so the pool size is the concurrency limit.
    """

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def _make_pool(self, num_workers: int):
        initargs = (self.config.log_queue, self.config.ocr_backend, dict(self.config.ocr_backend_kwargs or {}))
        if self.config.ocr_worker_mode == "thread":
            # Same process, the parent's handlers stay in place
            return ThreadPool(
                processes=num_workers,
                initializer=initialize_ocr_worker,
                initargs=(None,) + initargs[1:],
            )
        if self.config.ocr_worker_mode != "process":
            raise ValueError(f"Unknown OCR worker mode, '{self.config.ocr_worker_mode}'")
        ctx = mp.get_context("spawn")
        return ctx.Pool(processes=num_workers, initializer=initialize_ocr_worker, initargs=initargs)

    def extract(self, page_images: List[PageImage], on_progress: Optional[OCRProgressCallback] = None) -> str:
        """
        OCR every page and return the texts in page order joined by blank lines.
        Raises OCRError if any page fails; workers are released either way.
        """
        if not page_images:
            logger.info("No page images to OCR")
            return ""

        pages = sorted(page_images, key=lambda p: p.index)
        total = len(pages)
        num_workers = max(1, min(self.config.max_ocr_workers, total))
        lo, hi = self.config.ocr_progress_range

        tasks = [
            {"image_path": str(p.path), "slot": slot, "threshold": self.config.binarize_threshold}
            for slot, p in enumerate(pages)
        ]
        texts: List[Optional[str]] = [None] * total

        logger.info("Starting OCR on %d pages with %d workers (%s mode)", total, num_workers, self.config.ocr_worker_mode)
        pool = self._make_pool(num_workers)
        failed = True
        try:
            results = pool.imap_unordered(worker_ocr_page, tasks, chunksize=1)
            for done, result in enumerate(tqdm(results, total=total, desc="OCR pages"), start=1):
                if result.get("error"):
                    raise OCRError(result["error"])

                slot = result["slot"]
                texts[slot] = result.get("text", "")
                Path(result["image_path"]).unlink(missing_ok=True)
                logger.debug("Page %d OCR took %.2fs", slot + 1, result.get("duration_seconds", 0.0))

                if on_progress:
                    on_progress(stage_progress(done, total, lo, hi), f"Processed {done} of {total} images")
            failed = False
        finally:
            if failed:
                pool.terminate()
            else:
                pool.close()
            pool.join()
            logger.info("OCR pool has been shut down.")

        return "\n\n".join(t or "" for t in texts).strip()
