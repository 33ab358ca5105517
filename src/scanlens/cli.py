# src/scanlens/cli.py
from __future__ import annotations

import argparse
import ast
import importlib
import json
import logging
import multiprocessing as mp
import queue
import sys
from pathlib import Path
from typing import List, Optional, Union

from tqdm import tqdm

from .analyzer import DocumentAnalyzer
from .config import AnalysisConfig
from .file_queue import FileQueue
from .logger import configure_worker_logging, drain_events, setup_logging
from .models import FileOutcome
from .utils import append_jsonl, load_processed_ids, safe_fname

__all__ = ["collect_sources", "run_pipeline", "main"]

logger = logging.getLogger("scanlens")

RESULTS_FILENAME = "results.jsonl"

# Helper

def _parse_backend_kwargs(val) -> dict:
    """
    Accept several syntaxes for --ocr-backend-kwargs / --llm-backend-kwargs:
      1) JSON (double quotes)                      {"languages":["eng"],"psm":4}
      2) Python-literal dict with single quotes    {'languages': ['eng'], 'psm': 4}
      3) key=value pairs separated by ;            languages=eng;psm=4
    """
    if isinstance(val, dict):
        return dict(val)
    if not isinstance(val, str) or not val.strip():
        return {}

    s = val.strip()
    if len(s) >= 2 and s[0] in ("'", '"') and s[-1] == s[0]:
        s = s[1:-1].strip()

    try:
        parsed = json.loads(s)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    try:
        lit = ast.literal_eval(s)
        if isinstance(lit, dict):
            return lit
    except (ValueError, SyntaxError):
        pass

    out: dict = {}
    for part in s.split(";"):
        if "=" not in part:
            continue
        k, v = (x.strip().strip("\"'") for x in part.split("=", 1))
        if not k:
            continue
        if "," in v:
            out[k] = [x.strip() for x in v.split(",") if x.strip()]
        elif v.lower() in ("true", "false"):
            out[k] = v.lower() == "true"
        elif v.lstrip("-").isdigit():
            out[k] = int(v)
        else:
            out[k] = v
    if out:
        return out

    raise SystemExit(f"Invalid backend kwargs. Could not parse: {val!r}")


def _normalize_backend_alias(name: str) -> str:
    """
    Allow short aliases (case-insensitive).
    Returns a fully qualified dotted path 'module.Class'.
    """
    if not name:
        return name
    original = name.strip().strip('"\'')
    mapping = {
        "tess": "scanlens.ocr_backends.tesseract_backend.TesseractOCREngine",
        "tesseract": "scanlens.ocr_backends.tesseract_backend.TesseractOCREngine",
        "pytesseract": "scanlens.ocr_backends.tesseract_backend.TesseractOCREngine",
        "openai": "scanlens.llm_backends.openai_backend.OpenAIChatBackend",
    }
    return mapping.get(original.lower(), original)


def _preflight_backend_import(dotted: str) -> None:
    """
    Try to import the backend class now, so we can fail fast with a clear message
    instead of crashing inside worker processes later.
    """
    try:
        module_path, cls_name = dotted.rsplit(".", 1)
    except ValueError:
        raise SystemExit(f"Backend must be 'module.Class', got: {dotted!r}")

    try:
        mod = importlib.import_module(module_path)
    except ImportError as e:
        raise SystemExit(f"Cannot import backend module: {module_path!r} ({e})")

    if not hasattr(mod, cls_name):
        raise SystemExit(f"Backend class not found: {dotted}")


def collect_sources(input_path: Path, results_path: Path, ignore_keywords: List[str],
                    force_rerun: bool = False) -> List[Path]:
    """PDFs under input_path (a file or a directory), minus already processed or ignored ones."""
    logger.info("Collecting and filtering PDFs")
    processed = set() if force_rerun else load_processed_ids(results_path)
    if processed:
        logger.info("Found %d previously processed files to skip", len(processed))

    if not input_path.exists():
        logger.error("Input path does not exist, %s", input_path)
        return []

    candidates = [input_path] if input_path.is_file() else sorted(input_path.rglob("*"))
    ignore_lower = [k.lower() for k in ignore_keywords]

    sources: List[Path] = []
    for file_path in candidates:
        if not file_path.is_file() or file_path.suffix.lower() != ".pdf":
            continue
        if str(file_path) in processed:
            continue
        if any(k in file_path.name.lower() for k in ignore_lower):
            continue
        sources.append(file_path)

    logger.info("Selected %d files for processing", len(sources))
    return sources


def _write_outcome(config: AnalysisConfig, results_path: Path, outcome: FileOutcome) -> None:
    record = {"source": outcome.source, "file_index": outcome.file_index, "error": outcome.error}
    if outcome.ok:
        if outcome.source.startswith("<text"):
            stem = f"text-{outcome.file_index}"
        else:
            stem = safe_fname(Path(outcome.source).stem)
        json_path = config.output_dir / f"{stem}.json"
        md_path = config.output_dir / f"{stem}.md"
        json_path.write_text(
            json.dumps({"source": outcome.source, **outcome.result.to_dict()}, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        md_path.write_text(outcome.result.reconstruction + "\n", encoding="utf-8")
        record["json_path"] = str(json_path)
        record["markdown_path"] = str(md_path)
    append_jsonl(results_path, record)


def _flush_events(event_queue: queue.Queue, events_path: Optional[Path]) -> None:
    for event in drain_events(event_queue):
        append_jsonl(events_path, event.to_dict())


def run_pipeline(config: AnalysisConfig, sources: List[Union[Path, str]],
                 event_queue: Optional[queue.Queue] = None, events_path: Optional[Path] = None,
                 analyzer: Optional[DocumentAnalyzer] = None) -> int:
    """
    Analyze each source one file at a time and write results under config.output_dir.
    Returns the number of files that failed.
    """
    config.temp_dir.mkdir(parents=True, exist_ok=True)
    config.output_dir.mkdir(parents=True, exist_ok=True)
    results_path = config.output_dir / RESULTS_FILENAME

    analyzer = analyzer or DocumentAnalyzer(config)
    failures = 0
    pbar = tqdm(total=len(sources), desc="Analyzing files")

    def on_outcome(outcome: FileOutcome) -> None:
        nonlocal failures
        if not outcome.ok:
            failures += 1
        _write_outcome(config, results_path, outcome)
        if event_queue is not None:
            _flush_events(event_queue, events_path)
        pbar.update(1)

    file_queue = FileQueue(analyzer, on_outcome=on_outcome, error_log_path=config.error_log_path)
    file_queue.start()
    try:
        for file_index, source in enumerate(sources):
            file_queue.submit(source, file_index)
    finally:
        file_queue.stop(wait=True)
        pbar.close()

    logger.info("Processed %d files, %d failed", len(sources), failures)
    return failures


# -------------------------------
# CLI parsing
# -------------------------------

def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-o", "--output-dir", type=Path, required=True, help="Directory for results and logs")
    p.add_argument("--error-log-path", type=Path, help="Path to save the error log JSONL file")
    p.add_argument("--events-path", type=Path, help="Write progress events to this JSONL file")
    p.add_argument("-v", "--verbose", action="store_true", help="Echo debug logs to the console")

    llm_group = p.add_argument_group("Analysis")
    llm_group.add_argument("--model", type=str, help="Model identifier passed to the LLM backend")
    llm_group.add_argument("--llm-backend", type=str, default="openai", help="Dotted path to an LLM backend class")
    llm_group.add_argument("--llm-backend-kwargs", type=str, default="{}", help="Backend init kwargs as JSON or key=value pairs")
    llm_group.add_argument("--max-retries", type=int, help="Retries per chunk before falling back to the source text")
    llm_group.add_argument("--chunk-size", type=int, help="Chunk size for the reconstruction task")
    llm_group.add_argument("--analysis-chunk-size", type=int, help="Chunk size for the extract and summarize tasks")
    llm_group.add_argument("--chunk-overlap", type=int, help="Overlap between reconstruction chunks")
    llm_group.add_argument("--no-fallback", dest="fallback_to_source", action="store_false",
                           help="Fail the file instead of keeping source text when a chunk exhausts its retries")
    p.set_defaults(fallback_to_source=True)


def _build_run_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("run", help="OCR and analyze scanned PDFs")
    p.add_argument("-i", "--input", type=Path, required=True, help="A PDF file or a directory of PDFs")
    _add_common_args(p)
    p.add_argument("--ignore-keyword", action="append", dest="ignore_keywords",
                   help="Keyword in filename to ignore; can be used multiple times")
    p.add_argument("--force-rerun", action="store_true", help="Reprocess files already listed in results.jsonl")

    ocr_group = p.add_argument_group("OCR")
    ocr_group.add_argument("-w", "--workers", type=int, help="Maximum number of concurrent OCR workers")
    ocr_group.add_argument("--worker-mode", choices=["process", "thread"], default="process",
                           help="Run OCR workers as processes or threads")
    ocr_group.add_argument("-d", "--dpi", type=int, help="DPI to use for rendering PDF pages")
    ocr_group.add_argument("--pdf-engine", type=str, default="pdftoppm", choices=["pdftoppm", "pymupdf"],
                           help="Rasterizer used to turn PDF pages into images")
    ocr_group.add_argument("--ocr-backend", type=str, default="tesseract", help="Dotted path to an OCR backend class")
    ocr_group.add_argument("--ocr-backend-kwargs", type=str, default="{}", help="Backend init kwargs as JSON or key=value pairs")
    ocr_group.add_argument("--threshold", dest="binarize_threshold", type=int, help="Binarization threshold (0-255)")
    ocr_group.add_argument("--term-dictionary", dest="term_dictionary_path", type=Path,
                           help="File of 'wrong => right' term corrections applied after OCR")
    return p


def _build_analyze_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("analyze", help="Analyze already extracted text files")
    p.add_argument("-t", "--text", type=Path, nargs="+", required=True, help="UTF-8 text files to analyze")
    _add_common_args(p)
    return p


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="scanlens: OCR and LLM analysis for scanned PDFs")
    subparsers = parser.add_subparsers(dest="command")
    _build_run_parser(subparsers)
    _build_analyze_parser(subparsers)
    return parser.parse_args(argv)


def _config_from_args(args: argparse.Namespace, log_queue) -> AnalysisConfig:
    cfg_dict = {
        "output_dir": args.output_dir,
        "temp_dir": args.output_dir / ".tmp",
        "error_log_path": args.error_log_path or args.output_dir / "errors.jsonl",
        "model": args.model,
        "llm_backend": _normalize_backend_alias(args.llm_backend),
        "llm_backend_kwargs": _parse_backend_kwargs(args.llm_backend_kwargs),
        "max_retries": args.max_retries,
        "reconstruct_chunk_size": args.chunk_size,
        "analysis_chunk_size": args.analysis_chunk_size,
        "chunk_overlap": args.chunk_overlap,
        "fallback_to_source": args.fallback_to_source,
        "log_queue": log_queue,
    }
    if args.command == "run":
        cfg_dict.update({
            "max_ocr_workers": args.workers,
            "ocr_worker_mode": args.worker_mode,
            "dpi": args.dpi,
            "pdf_engine": args.pdf_engine,
            "ocr_backend": _normalize_backend_alias(args.ocr_backend),
            "ocr_backend_kwargs": _parse_backend_kwargs(args.ocr_backend_kwargs),
            "binarize_threshold": args.binarize_threshold,
            "term_dictionary_path": args.term_dictionary_path,
        })
    cfg_dict = {k: v for k, v in cfg_dict.items() if v is not None}
    return AnalysisConfig.from_dict(cfg_dict)


def _run_from_cli(args: argparse.Namespace) -> int:
    ctx = mp.get_context("spawn")
    manager = ctx.Manager()
    log_queue = manager.Queue(-1)
    event_queue: queue.Queue = queue.Queue()

    args.output_dir.mkdir(parents=True, exist_ok=True)
    listener = setup_logging(
        log_queue=log_queue,
        event_ui_queue=event_queue if args.events_path else None,
        level=logging.DEBUG if args.verbose else logging.INFO,
        file_path=args.output_dir / "scanlens.log",
        console=True,
    )
    listener.start()
    configure_worker_logging(log_queue)

    try:
        config = _config_from_args(args, log_queue)
        logger.debug("Effective config, %s", {k: v for k, v in config.to_dict().items() if k != "log_queue"})
        _preflight_backend_import(config.llm_backend)

        if args.command == "run":
            _preflight_backend_import(config.ocr_backend)
            sources: List[Union[Path, str]] = list(collect_sources(
                args.input, config.output_dir / RESULTS_FILENAME,
                args.ignore_keywords or [], args.force_rerun,
            ))
        else:
            sources = [p.read_text(encoding="utf-8") for p in args.text]

        if not sources:
            logger.info("No new files to process based on current settings, all tasks are complete")
            return 0

        failures = run_pipeline(config, sources, event_queue if args.events_path else None, args.events_path)
        return 1 if failures else 0
    finally:
        listener.stop()
        if args.events_path:
            # events still in flight when the last file finished
            _flush_events(event_queue, args.events_path)
        manager.shutdown()


def main(argv: Optional[List[str]] = None):
    args = _parse_args(argv)

    if args.command in ("run", "analyze"):
        sys.exit(_run_from_cli(args))

    print("Usage:\n  scanlens run -i <pdf or dir> -o <output_dir> [options]\n  scanlens analyze -t <text files> -o <output_dir> [options]")
    sys.exit(2)


if __name__ == "__main__":
    main()
