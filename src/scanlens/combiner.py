# src/scanlens/combiner.py
"""
Markdown repair for reconstructed documents.

Two ordered pipelines of small text transforms:
  - combine_reconstructed_chunks() stitches per-chunk reconstructions together
    and removes the header duplication caused by chunk overlap.
  - postprocess_reconstruction() tidies the combined document for display.
"""
from __future__ import annotations

import re
from typing import Callable, Iterable, List, Sequence

Transform = Callable[[str], str]

_HEADER_LINE = re.compile(r"^#{1,3} .+$", re.MULTILINE)
_BLANKS_AFTER_HEADER = re.compile(r"^(#{1,3} .+)\n+", re.MULTILINE)
_PARAGRAPH_BREAK = re.compile(r"(?<=[^\n])\n(?=[^\n#])")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

_ESCAPED_NEWLINE = re.compile(r"\\n")
_HEADER_SPACING = re.compile(r"^(#{1,3} .+)$", re.MULTILINE)
_CONTINUATION = re.compile(r"(?<=[^\n])\n(?![#\-\d\n])")
_LIST_ITEM = re.compile(r"^([ \t]*(?:-|\d+\.?)[ \t]+)", re.MULTILINE)
_LEADING_INDENT = re.compile(r"^[ \t]+", re.MULTILINE)
_SINGLE_NEWLINE = re.compile(r"(?<!\n)\n(?!\n)")


def _run(text: str, steps: Iterable[Transform]) -> str:
    for step in steps:
        text = step(text)
    return text


# --- Combination passes ---

def dedupe_headers(text: str) -> str:
    """Keep the first occurrence of each header line, blank out the repeats."""
    seen = set()

    def keep_first(m: re.Match) -> str:
        header = m.group(0)
        if header in seen:
            return ""
        seen.add(header)
        return header

    return _HEADER_LINE.sub(keep_first, text)


def attach_header_content(text: str) -> str:
    """Drop blank lines between a header and the content below it."""
    return _BLANKS_AFTER_HEADER.sub(lambda m: m.group(1) + "\n", text)


def blank_line_after_headers(text: str) -> str:
    return _HEADER_LINE.sub(lambda m: m.group(0) + "\n", text)


def separate_paragraphs(text: str) -> str:
    """Insert a blank line between adjacent non-blank lines unless the next is a header."""
    return _PARAGRAPH_BREAK.sub("\n\n", text)


def collapse_blank_lines(text: str) -> str:
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()


COMBINE_STEPS: Sequence[Transform] = (
    dedupe_headers,
    attach_header_content,
    blank_line_after_headers,
    separate_paragraphs,
    collapse_blank_lines,
)


def combine_reconstructed_chunks(chunks: List[str]) -> str:
    return _run("\n\n".join(chunks), COMBINE_STEPS)


# --- Display passes ---

def unescape_newlines(text: str) -> str:
    """Models sometimes emit a literal backslash-n instead of a line break."""
    return _ESCAPED_NEWLINE.sub("\n", text)


def space_headers(text: str) -> str:
    return _HEADER_SPACING.sub(lambda m: "\n" + m.group(1) + "\n", text)


def merge_continuation_lines(text: str) -> str:
    """
    Join a line onto the previous one unless it starts a header, a list item
    or a numbered item.
    """
    return _CONTINUATION.sub(" ", text)


def isolate_list_items(text: str) -> str:
    return _LIST_ITEM.sub(lambda m: "\n" + m.group(1), text)


def strip_indentation(text: str) -> str:
    return _LEADING_INDENT.sub("", text)


def double_line_breaks(text: str) -> str:
    return _SINGLE_NEWLINE.sub("\n\n", text)


DISPLAY_STEPS: Sequence[Transform] = (
    unescape_newlines,
    collapse_blank_lines,
    space_headers,
    merge_continuation_lines,
    isolate_list_items,
    strip_indentation,
    double_line_breaks,
    collapse_blank_lines,
)


def postprocess_reconstruction(text: str) -> str:
    return _run(text, DISPLAY_STEPS)
