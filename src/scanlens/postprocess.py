# src/scanlens/postprocess.py
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from .utils import load_term_corrections

logger = logging.getLogger("scanlens")

TextHook = Callable[[str], str]

_SPACE_BEFORE_PUNCT = re.compile(r"(\w)[ \t]+(?=[,.!?])")
_HYPHEN_WRAP = re.compile(r"(\w+)-[ \t]*\n[ \t]*(\w+)")
_LINE_WRAP = re.compile(r"(\S)[ \t]*\n[ \t]*(?=\S)")
_EXCESS_NEWLINES = re.compile(r"\n(?:[ \t]*\n){2,}")
_SPACE_RUNS = re.compile(r"[ \t]{2,}")


def clean_ocr_text(text: str) -> str:
    """
    Repair OCR line-wrap artifacts in concatenated page text.

    The hyphen join has to run before the generic line join, otherwise
    'exam-\\nple' would become 'exam- ple'. Blank lines between paragraphs
    and pages are kept.
    """
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = _HYPHEN_WRAP.sub(r"\1\2", text)
    text = _LINE_WRAP.sub(r"\1 ", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = _SPACE_RUNS.sub(" ", text)
    return text.strip()


class TermCorrector:
    """
    Custom dictionary hook: replaces known misspellings of domain terms
    with their canonical spelling. Matches whole words, case-insensitively.
    """

    def __init__(self, corrections: Mapping[str, str]):
        self.corrections: Dict[str, str] = {k.lower(): v for k, v in corrections.items() if k}
        if self.corrections:
            # longest first so multi-word entries win over their prefixes
            alternatives = sorted(self.corrections, key=len, reverse=True)
            self._pattern: Optional[re.Pattern] = re.compile(
                r"(?<!\w)(?:" + "|".join(re.escape(a) for a in alternatives) + r")(?!\w)",
                re.IGNORECASE,
            )
        else:
            self._pattern = None

    @classmethod
    def from_file(cls, path: Path) -> "TermCorrector":
        corrections = load_term_corrections(path)
        logger.info("Loaded %d term corrections from %s", len(corrections), path)
        return cls(corrections)

    def __call__(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(lambda m: self.corrections[m.group(0).lower()], text)


def identity_hook(text: str) -> str:
    return text
