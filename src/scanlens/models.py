# scanlens/models.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import List, Optional, Any, Dict

from .exceptions import FormatError


class TaskKind(str, Enum):
    """Analysis tasks, in the order the analyzer runs them."""
    EXTRACT = "extract"
    SUMMARIZE = "summarize"
    RECONSTRUCT = "reconstruct"


@dataclass
class PageImage:
    """A single rasterized page waiting for OCR."""
    path: Path
    index: int


@dataclass
class Chunk:
    """A contiguous slice text[start:end] of a larger text."""
    text: str
    start: int
    end: int
    index: int


@dataclass
class TaskResult:
    """Output of one (task, chunk) invocation."""
    task: TaskKind
    chunk_index: int
    total_chunks: int
    text: str
    attempts: int = 1
    fell_back: bool = False


@dataclass
class AnalysisResult:
    """Represents the final, aggregated analysis for a single document."""
    extraction: List[str] = field(default_factory=list)
    # Always a single joined element once produced by the analyzer
    summary: List[str] = field(default_factory=list)
    reconstruction: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProgressEvent:
    """Observational progress signal. Never retained by the pipeline."""
    file_index: int
    progress: float
    status: str
    task: Optional[str] = None
    chunk: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Any) -> "ProgressEvent":
        """
        Validate and build an event from a decoded payload.
        Raises FormatError when a required key is missing or mistyped.
        """
        if not isinstance(payload, dict):
            raise FormatError(f"Progress payload must be a mapping, got {type(payload).__name__}")

        try:
            file_index = payload["file_index"]
            progress = payload["progress"]
            status = payload["status"]
        except KeyError as e:
            raise FormatError(f"Progress payload missing key, {e}") from e

        if isinstance(file_index, bool) or not isinstance(file_index, int):
            raise FormatError(f"file_index must be an int, got {file_index!r}")
        if isinstance(progress, bool) or not isinstance(progress, (int, float)):
            raise FormatError(f"progress must be a number, got {progress!r}")
        if not 0 <= progress <= 100:
            raise FormatError(f"progress out of range, {progress!r}")
        if not isinstance(status, str):
            raise FormatError(f"status must be a string, got {status!r}")

        task = payload.get("task")
        chunk = payload.get("chunk")
        for name, value in (("task", task), ("chunk", chunk)):
            if value is not None and not isinstance(value, str):
                raise FormatError(f"{name} must be a string or null, got {value!r}")

        return cls(file_index=file_index, progress=float(progress), status=status, task=task, chunk=chunk)


@dataclass
class FileOutcome:
    """What the file queue reports for each processed file."""
    file_index: int
    source: str
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
