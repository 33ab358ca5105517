"""
Shared fixtures and fakes for the scanlens test suite.
"""

import sys
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
import pytest
from PIL import Image

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scanlens.config import AnalysisConfig  # noqa: E402
from scanlens.llm_backends.base import BaseLLMBackend  # noqa: E402
from scanlens.models import PageImage  # noqa: E402
from scanlens.ocr_backends.base import BaseOCREngine  # noqa: E402


class WidthEngine(BaseOCREngine):
    """OCR engine that 'reads' the image width, so page order is observable."""

    def __init__(self, fail_on_width: Optional[int] = None, **kwargs):
        self.fail_on_width = fail_on_width

    def read_batch(self, images):
        texts = []
        for im in images:
            width = im.shape[1]
            if width == self.fail_on_width:
                raise RuntimeError(f"cannot read page of width {width}")
            texts.append(f"page {width}")
        return texts, 0.0


class BrokenEngine(BaseOCREngine):
    """OCR engine whose constructor always fails."""

    def __init__(self, **kwargs):
        raise RuntimeError("engine init failed")

    def read_batch(self, images):
        raise AssertionError("never constructed")


class FakeLLMBackend(BaseLLMBackend):
    """Records every prompt and answers through a responder function."""

    def __init__(self, responder: Optional[Callable[[str], str]] = None):
        self.prompts: List[str] = []
        self.responder = responder or (lambda prompt: "A perfectly reasonable answer " * 3)

    def complete(self, prompt, *, model, temperature, max_tokens):
        self.prompts.append(prompt)
        return self.responder(prompt)


def task_of(prompt: str) -> str:
    if prompt.startswith("Extract key details"):
        return "extract"
    if prompt.startswith("Provide a brief summary"):
        return "summarize"
    return "reconstruct"


def write_page(path: Path, width: int, height: int = 40) -> Path:
    img = Image.new("L", (width, height), color=255)
    img.paste(0, (5, 5, width // 2, 15))
    img.save(path)
    return path


@pytest.fixture
def config(tmp_path):
    """Thread-mode config with every path under tmp_path."""
    return AnalysisConfig(
        temp_dir=tmp_path / "tmp",
        output_dir=tmp_path / "out",
        error_log_path=tmp_path / "out" / "errors.jsonl",
        ocr_worker_mode="thread",
        ocr_backend=WidthEngine,
        max_ocr_workers=2,
    )


@pytest.fixture
def sleeps():
    """A list that doubles as a recording sleep function via .append."""
    return []


@pytest.fixture
def page_images(tmp_path):
    """Three page images of widths 100, 200 and 300, indexed 0..2."""
    pages_dir = tmp_path / "pages"
    pages_dir.mkdir()
    return [
        PageImage(path=write_page(pages_dir / f"p-{i + 1}.png", width), index=i)
        for i, width in enumerate((100, 200, 300))
    ]


@pytest.fixture
def gradient_image():
    """Horizontal greyscale ramp from black to white."""
    ramp = np.tile(np.linspace(0, 255, 64, dtype=np.uint8), (32, 1))
    return Image.fromarray(ramp)
