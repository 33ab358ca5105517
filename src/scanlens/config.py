# scanlens/config.py
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
import tempfile

from .models import TaskKind


@dataclass
class AnalysisConfig:
    """Configuration for a scanlens processing run."""
    temp_dir: Path = Path(tempfile.gettempdir()) / "scanlens_temp"
    output_dir: Path = Path("scanlens_output")
    error_log_path: Optional[Path] = Path("scanlens_error_log.jsonl")

    # Rasterization
    pdf_engine: str = "pdftoppm"
    dpi: int = 150

    # OCR stage
    max_ocr_workers: int = 4
    ocr_worker_mode: str = "process"      # "process" or "thread"
    ocr_backend: Any = "scanlens.ocr_backends.tesseract_backend.TesseractOCREngine"
    ocr_backend_kwargs: Dict[str, Any] = field(default_factory=dict)
    binarize_threshold: int = 128
    ocr_progress_range: Tuple[int, int] = (30, 80)

    # LLM stage
    llm_backend: Any = "scanlens.llm_backends.openai_backend.OpenAIChatBackend"
    llm_backend_kwargs: Dict[str, Any] = field(default_factory=dict)
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 15000

    # Retry policy
    max_retries: int = 3
    retry_delay_seconds: float = 2.0
    min_response_chars: int = 50
    refusal_markers: List[str] = field(default_factory=lambda: ["sorry"])
    fallback_to_source: bool = True

    # Chunking
    reconstruct_chunk_size: int = 4000
    analysis_chunk_size: int = 15000
    chunk_overlap: int = 300

    term_dictionary_path: Optional[Path] = None

    log_queue: Optional[Any] = None

    def chunk_size_for(self, task: TaskKind) -> int:
        """Reconstruction trades more calls for higher per-call fidelity."""
        if TaskKind(task) is TaskKind.RECONSTRUCT:
            return self.reconstruct_chunk_size
        return self.analysis_chunk_size

    def chunk_overlap_for(self, task: TaskKind) -> int:
        if TaskKind(task) is TaskKind.RECONSTRUCT:
            return self.chunk_overlap
        return 0

    def to_dict(self):
        """Plain dict view with paths as strings, as logged by the CLI and read back by from_dict()."""
        # shallow, log_queue may be a manager proxy
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in d.items():
            if isinstance(value, Path):
                d[key] = str(value)
        return d

    @classmethod
    def from_dict(cls, config_dict: dict):
        d = dict(config_dict)

        # normalize path-like fields
        for key in ["temp_dir", "output_dir", "error_log_path", "term_dictionary_path"]:
            if key in d and isinstance(d[key], str):
                d[key] = Path(d[key])

        if isinstance(d.get("ocr_progress_range"), list):
            d["ocr_progress_range"] = tuple(d["ocr_progress_range"])

        # allow explicit None to mean use default
        for key in ["max_ocr_workers", "dpi", "model", "max_retries", "temp_dir", "output_dir"]:
            if d.get(key) is None:
                d.pop(key, None)

        return cls(**d)
