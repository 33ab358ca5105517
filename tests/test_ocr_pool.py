"""
Tests for the bounded OCR worker pool, mostly in thread mode with fake engines.
"""

import threading

import pytest

from conftest import BrokenEngine
from scanlens.exceptions import OCRError
from scanlens.parallel import OCRPool, stage_progress


class RecordingPool(OCRPool):
    """Remembers how many workers were requested."""

    def _make_pool(self, num_workers):
        self.requested_workers = num_workers
        return super()._make_pool(num_workers)


class TestStageProgress:

    def test_maps_into_range(self):
        assert stage_progress(0, 4, 30, 80) == 30
        assert stage_progress(2, 4, 30, 80) == 55
        assert stage_progress(4, 4, 30, 80) == 80

    def test_empty_total_is_complete(self):
        assert stage_progress(0, 0, 30, 80) == 80


class TestOCRPool:
    """Page order, cleanup, progress and failure handling."""

    def test_text_in_page_order(self, config, page_images):
        shuffled = [page_images[2], page_images[0], page_images[1]]
        text = OCRPool(config).extract(shuffled)
        assert text == "page 100\n\npage 200\n\npage 300"

    def test_images_deleted_after_ocr(self, config, page_images):
        OCRPool(config).extract(page_images)
        assert not any(p.path.exists() for p in page_images)

    def test_progress_is_monotonic_within_range(self, config, page_images):
        events = []
        OCRPool(config).extract(page_images, lambda pct, status: events.append((pct, status)))
        pcts = [pct for pct, _ in events]
        assert len(events) == 3
        assert pcts == sorted(pcts)
        assert all(30 <= p <= 80 for p in pcts)
        assert pcts[-1] == 80
        assert events[-1][1] == "Processed 3 of 3 images"

    def test_page_failure_raises_ocr_error(self, config, page_images):
        config.ocr_backend_kwargs = {"fail_on_width": 200}
        with pytest.raises(OCRError, match="page 2"):
            OCRPool(config).extract(page_images)

    def test_workers_capped_by_page_count(self, config, page_images):
        config.max_ocr_workers = 8
        pool = RecordingPool(config)
        pool.extract(page_images)
        assert pool.requested_workers == 3

    def test_workers_capped_by_config(self, config, page_images):
        config.max_ocr_workers = 1
        pool = RecordingPool(config)
        assert pool.extract(page_images).startswith("page 100")
        assert pool.requested_workers == 1

    def test_no_pages(self, config):
        assert OCRPool(config).extract([]) == ""

    def test_unknown_mode(self, config, page_images):
        config.ocr_worker_mode = "fiber"
        with pytest.raises(ValueError):
            OCRPool(config).extract(page_images)


def extract_within(pool, pages, seconds=30):
    """Run pool.extract on a helper thread; fail instead of hanging past the deadline."""
    outcome = {}

    def target():
        try:
            outcome["text"] = pool.extract(pages)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=target, daemon=True)
    worker.start()
    worker.join(seconds)
    assert not worker.is_alive(), f"extract() still running after {seconds}s"
    return outcome


class TestEngineInitFailure:
    """A backend that cannot be built fails the extraction instead of blocking it."""

    def test_constructor_error_raises_ocr_error(self, config, page_images):
        config.ocr_backend = BrokenEngine
        outcome = extract_within(OCRPool(config), page_images)
        assert isinstance(outcome["error"], OCRError)
        assert "engine init failed" in str(outcome["error"])

    def test_bad_backend_path(self, config, page_images):
        config.ocr_backend = "scanlens.ocr_backends.missing_backend.Engine"
        outcome = extract_within(OCRPool(config), page_images)
        assert isinstance(outcome["error"], OCRError)
        assert "Cannot initialize OCR backend" in str(outcome["error"])


class TestProcessMode:
    """The default spawn pool, with an engine importable by the child processes."""

    def test_spawn_pool_extracts_in_order(self, config, page_images):
        config.ocr_worker_mode = "process"
        outcome = extract_within(OCRPool(config), page_images, seconds=120)
        assert outcome["text"] == "page 100\n\npage 200\n\npage 300"
        assert not any(p.path.exists() for p in page_images)

    def test_spawn_pool_engine_failure(self, config, page_images):
        config.ocr_worker_mode = "process"
        config.ocr_backend = BrokenEngine
        outcome = extract_within(OCRPool(config), page_images, seconds=120)
        assert isinstance(outcome["error"], OCRError)
