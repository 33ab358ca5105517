# src/scanlens/pdf_processor.py
from __future__ import annotations

import logging
import re
import subprocess
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

import fitz  # PyMuPDF

from .exceptions import ConversionError
from .models import PageImage

logger = logging.getLogger("scanlens")

_PAGE_SUFFIX = re.compile(r"-(\d+)\.png$")


# --- Step 1, interface ---
class BasePDFProcessor(ABC):
    """
    Interface for any PDF rasterization engine.
    """

    def __init__(self, dpi: int = 150):
        self.dpi = dpi

    @abstractmethod
    def render_pages(self, file_path: Path, output_dir: Path) -> List[PageImage]:
        """Renders all pages of a PDF to PNG files and returns them in page order."""
        raise NotImplementedError


# --- Step 2, external pdftoppm process ---
class PdftoppmProcessor(BasePDFProcessor):
    """Runs poppler's pdftoppm and collects its output by a unique filename prefix."""

    binary = "pdftoppm"

    def render_pages(self, file_path: Path, output_dir: Path) -> List[PageImage]:
        output_dir.mkdir(parents=True, exist_ok=True)
        prefix = uuid.uuid4().hex
        cmd = [self.binary, "-png", "-r", str(self.dpi), str(file_path), str(output_dir / prefix)]
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise ConversionError(f"Cannot run {self.binary} for {file_path.name}, {e}") from e

        if proc.returncode != 0:
            raise ConversionError(
                f"{self.binary} exited with {proc.returncode} for {file_path.name}, {proc.stderr.strip()}"
            )

        return collect_page_images(output_dir, prefix)


# --- Step 3, in-process PyMuPDF ---
class PyMuPDFProcessor(BasePDFProcessor):
    """PDF rasterizer that uses PyMuPDF."""

    def render_pages(self, file_path: Path, output_dir: Path) -> List[PageImage]:
        output_dir.mkdir(parents=True, exist_ok=True)
        prefix = uuid.uuid4().hex
        pages: List[PageImage] = []
        try:
            zoom = self.dpi / 72.0
            with fitz.open(file_path) as doc:
                for i, page in enumerate(doc):
                    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
                    out_path = output_dir / f"{prefix}-{i + 1}.png"
                    pix.save(str(out_path))
                    pages.append(PageImage(path=out_path, index=i))
        except Exception as e:
            for p in pages:
                p.path.unlink(missing_ok=True)
            raise ConversionError(f"PyMuPDF failed to render {file_path.name}, {e}") from e
        return pages


def collect_page_images(output_dir: Path, prefix: str) -> List[PageImage]:
    """
    Find '<prefix>-<n>.png' files and order them by page number.
    pdftoppm zero-pads n depending on the page count, so sort numerically.
    """
    found = []
    for p in output_dir.iterdir():
        if not p.name.startswith(f"{prefix}-"):
            continue
        m = _PAGE_SUFFIX.search(p.name)
        if m:
            found.append((int(m.group(1)), p))
    found.sort()
    return [PageImage(path=p, index=i) for i, (_, p) in enumerate(found)]


# --- Step 4, factory ---
def get_pdf_processor(engine_name: str = "pdftoppm", dpi: int = 150) -> BasePDFProcessor:
    """
    Create a PDF processor by name.
    """
    name = (engine_name or "").lower()
    if name == "pdftoppm":
        return PdftoppmProcessor(dpi=dpi)
    if name == "pymupdf":
        return PyMuPDFProcessor(dpi=dpi)
    raise ValueError(f"Unknown PDF engine, '{engine_name}'. Supported engines, ['pdftoppm', 'pymupdf']")
