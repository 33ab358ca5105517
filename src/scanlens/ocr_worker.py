# src/scanlens/ocr_worker.py
from __future__ import annotations

import logging
import os
import threading
from typing import Any, Optional

import numpy as np

from .logger import configure_worker_logging
from .utils import import_object

logger = logging.getLogger("scanlens")

# One engine instance per worker (process or thread)
_state = threading.local()


def initialize_ocr_worker(log_queue: Optional[Any], backend: Any, backend_kwargs: dict):
    """
    Called once in each OCR worker.
    Loads the backend class and creates the engine instance.

    Never raises; a failed initialization is reported by recognize() for every page.
    """
    if log_queue is not None:
        configure_worker_logging(log_queue)
    pid = os.getpid()
    logger.info("Initializing OCR worker, backend, %s, pid, %s", backend, pid)
    _state.engine = None
    _state.init_error = None
    try:
        EngineCls = import_object(backend)
        _state.engine = EngineCls(**(backend_kwargs or {}))
    except Exception as e:
        logger.exception("OCR backend initialization failed for %s", backend)
        _state.init_error = f"Cannot initialize OCR backend {backend}, {type(e).__name__}: {e}"
        return

    logger.info("OCR worker ready, pid, %s", pid)


def recognize(image: np.ndarray) -> str:
    """
    Run OCR on a single preprocessed page.
    Backends implement read_batch(List[np.ndarray]) -> List[str] or (List[str], float).
    """
    engine = getattr(_state, "engine", None)
    if engine is None:
        raise RuntimeError(getattr(_state, "init_error", None) or "OCR worker called before initialization")

    result = engine.read_batch([image])
    texts = result[0] if isinstance(result, tuple) and len(result) == 2 else result
    if len(texts) != 1:
        raise RuntimeError(f"Backend returned {len(texts)} items for 1 input")
    return texts[0] or ""

