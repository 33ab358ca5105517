"""
Tests for PDF rasterization adapters.
"""

import subprocess
from pathlib import Path

import pytest

from scanlens import pdf_processor
from scanlens.exceptions import ConversionError
from scanlens.pdf_processor import (
    PdftoppmProcessor,
    PyMuPDFProcessor,
    collect_page_images,
    get_pdf_processor,
)


class FakeRun:
    """Stands in for subprocess.run; writes the PNGs pdftoppm would."""

    def __init__(self, pages=(1, 2, 10), returncode=0, stderr=""):
        self.pages = pages
        self.returncode = returncode
        self.stderr = stderr
        self.calls = []

    def __call__(self, cmd, capture_output, text):
        self.calls.append(cmd)
        if self.returncode == 0:
            prefix = Path(cmd[-1])
            for n in self.pages:
                (prefix.parent / f"{prefix.name}-{n:02d}.png").write_bytes(b"png")
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr=self.stderr)


class TestPdftoppmProcessor:
    """External rasterizer adapter."""

    def test_command_line(self, tmp_path, monkeypatch):
        fake = FakeRun()
        monkeypatch.setattr(pdf_processor.subprocess, "run", fake)
        PdftoppmProcessor(dpi=200).render_pages(tmp_path / "doc.pdf", tmp_path / "out")
        cmd = fake.calls[0]
        assert cmd[:4] == ["pdftoppm", "-png", "-r", "200"]
        assert cmd[4] == str(tmp_path / "doc.pdf")
        assert Path(cmd[5]).parent == tmp_path / "out"

    def test_pages_in_numeric_order(self, tmp_path, monkeypatch):
        monkeypatch.setattr(pdf_processor.subprocess, "run", FakeRun(pages=(10, 2, 1)))
        pages = PdftoppmProcessor().render_pages(tmp_path / "doc.pdf", tmp_path / "out")
        assert [p.index for p in pages] == [0, 1, 2]
        assert [p.path.name.rsplit("-", 1)[1] for p in pages] == ["01.png", "02.png", "10.png"]

    def test_ignores_other_files(self, tmp_path, monkeypatch):
        out = tmp_path / "out"
        out.mkdir()
        (out / "stale-1.png").write_bytes(b"png")
        monkeypatch.setattr(pdf_processor.subprocess, "run", FakeRun(pages=(1,)))
        pages = PdftoppmProcessor().render_pages(tmp_path / "doc.pdf", out)
        assert len(pages) == 1
        assert not pages[0].path.name.startswith("stale")

    def test_nonzero_exit(self, tmp_path, monkeypatch):
        monkeypatch.setattr(pdf_processor.subprocess, "run", FakeRun(returncode=1, stderr="Syntax Error"))
        with pytest.raises(ConversionError, match="Syntax Error"):
            PdftoppmProcessor().render_pages(tmp_path / "doc.pdf", tmp_path / "out")

    def test_missing_binary(self, tmp_path, monkeypatch):
        def missing(*args, **kwargs):
            raise FileNotFoundError("pdftoppm")
        monkeypatch.setattr(pdf_processor.subprocess, "run", missing)
        with pytest.raises(ConversionError, match="Cannot run"):
            PdftoppmProcessor().render_pages(tmp_path / "doc.pdf", tmp_path / "out")


class TestPyMuPDFProcessor:

    def test_renders_every_page(self, tmp_path):
        fitz = pytest.importorskip("fitz")
        pdf_path = tmp_path / "doc.pdf"
        with fitz.open() as doc:
            for _ in range(2):
                doc.new_page(width=200, height=100).insert_text((20, 50), "Hello")
            doc.save(str(pdf_path))
        pages = PyMuPDFProcessor(dpi=72).render_pages(pdf_path, tmp_path / "out")
        assert [p.index for p in pages] == [0, 1]
        assert all(p.path.exists() for p in pages)

    def test_bad_pdf(self, tmp_path):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"definitely not a pdf")
        with pytest.raises(ConversionError):
            PyMuPDFProcessor().render_pages(bad, tmp_path / "out")


class TestHelpers:

    def test_collect_page_images(self, tmp_path):
        for name in ("abc-10.png", "abc-2.png", "abc-1.png", "xyz-1.png", "abc-notes.txt"):
            (tmp_path / name).write_bytes(b"")
        pages = collect_page_images(tmp_path, "abc")
        assert [p.path.name for p in pages] == ["abc-1.png", "abc-2.png", "abc-10.png"]

    @pytest.mark.parametrize("name,cls", [("pdftoppm", PdftoppmProcessor), ("PyMuPDF", PyMuPDFProcessor)])
    def test_factory(self, name, cls):
        processor = get_pdf_processor(name, dpi=300)
        assert isinstance(processor, cls)
        assert processor.dpi == 300

    def test_factory_unknown(self):
        with pytest.raises(ValueError):
            get_pdf_processor("ghostscript")
