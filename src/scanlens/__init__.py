# scanlens/__init__.py
from .config import AnalysisConfig
from .logger import PROGRESS
from .models import AnalysisResult, Chunk, PageImage, ProgressEvent, TaskKind, TaskResult

__all__ = [
    "AnalysisConfig",
    "AnalysisResult",
    "PROGRESS",
    "Chunk",
    "PageImage",
    "ProgressEvent",
    "TaskKind",
    "TaskResult",
]

__version__ = "0.1.0"
