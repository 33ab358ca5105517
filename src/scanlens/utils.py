# src/scanlens/utils.py
from __future__ import annotations

import importlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional, Set

from slugify import slugify

logger = logging.getLogger("scanlens")


def import_object(target: Any):
    """
    Resolve a backend given either a class/callable or a dotted 'module.Class' path.
    """
    if not isinstance(target, str):
        return target
    mod_path, _, attr = target.rpartition(".")
    if not mod_path or not attr:
        raise ImportError(f"Invalid backend path, {target}")
    mod = importlib.import_module(mod_path)
    try:
        return getattr(mod, attr)
    except AttributeError as e:
        raise ImportError(f"Backend class not found, {target}") from e


# ----------------------------
# Results and dictionary utils
# ----------------------------

def load_processed_ids(results_path: Path) -> Set[str]:
    """
    Read JSONL results and collect already processed sources.
    Tolerates bad lines.
    """
    processed: Set[str] = set()
    if not results_path or not Path(results_path).exists():
        return processed
    try:
        with open(results_path, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    continue
                sp = rec.get("source") if isinstance(rec, dict) else None
                if isinstance(sp, str) and sp and not rec.get("error"):
                    processed.add(sp)
    except OSError as e:
        logger.warning("Failed to read processed ids from %s, %s", results_path, e)
    return processed


def load_term_corrections(fp: Path) -> Dict[str, str]:
    """
    Read a 'wrong => right' correction file, one pair per line.
    Blank lines and lines starting with '#' are ignored.
    """
    corrections: Dict[str, str] = {}
    with open(fp, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=>" not in line:
                logger.warning("Ignoring malformed term line %d in %s", lineno, fp)
                continue
            wrong, right = (part.strip() for part in line.split("=>", 1))
            if wrong and right:
                corrections[wrong] = right
    return corrections


def append_jsonl(path: Optional[Path], record: Dict[str, Any]) -> None:
    """Append one timestamped record to a JSONL log; never raises."""
    if not path:
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            entry = {"timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"), **record}
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
    except OSError:
        logger.exception("Failed to write JSONL record to %s", path)


def safe_fname(name: str, fallback: str = "file") -> str:
    """
    Create a filesystem safe name, preserve extension when present.
    """
    name = (name or "").strip() or fallback
    if "." in name:
        base, ext = name.rsplit(".", 1)
        return f"{slugify(base)[:100] or fallback}.{ext}"
    return slugify(name)[:100] or fallback
