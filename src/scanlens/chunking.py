# src/scanlens/chunking.py
from __future__ import annotations

from typing import List

from .models import Chunk

_BOUNDARY_CHARS = ("\n", ".")


def _snap_end(text: str, start: int, size: int, overlap: int) -> int:
    """
    Pick the end offset for a chunk starting at `start`.

    Prefers the position just after the last newline or period inside
    text[start:start+size]. Falls back to the raw size boundary when the
    window has no natural break, or when snapping would leave a chunk that
    is not longer than the overlap (no forward progress).
    """
    end = start + size
    if end >= len(text):
        return len(text)

    window = text[start:end]
    cut = max(window.rfind(ch) for ch in _BOUNDARY_CHARS)
    if cut >= 0 and cut + 1 > overlap:
        return start + cut + 1
    return end


def chunk_spans(text: str, size: int, overlap: int = 0) -> List[Chunk]:
    """
    Split text into bounded chunks snapped to natural boundaries.

    Consecutive chunks share exactly `overlap` characters, i.e.
    next.start == prev.end - overlap, so text[c.start:c.end] for each chunk,
    minus the leading overlap of every chunk after the first, rebuilds text.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    if overlap < 0 or overlap >= size:
        raise ValueError(f"overlap must be in [0, size), got {overlap} for size {size}")

    chunks: List[Chunk] = []
    start = 0
    while start < len(text):
        end = _snap_end(text, start, size, overlap)
        chunks.append(Chunk(text=text[start:end], start=start, end=end, index=len(chunks)))
        if end >= len(text):
            break
        start = end - overlap
    return chunks


def chunk_text(text: str, size: int, overlap: int = 0) -> List[str]:
    """Plain-string view of chunk_spans()."""
    return [c.text for c in chunk_spans(text, size, overlap)]
