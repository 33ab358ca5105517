# src/scanlens/logger.py

import logging
import sys
from pathlib import Path
from queue import Queue, Empty  # This is the thread-safe queue for the listener
from multiprocessing import Queue as MPQueue # The process-safe queue for workers
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from typing import Union, Optional, Iterator

from .exceptions import FormatError
from .models import ProgressEvent

# --- Custom Log Level for Progress ---
PROGRESS = 25
logging.addLevelName(PROGRESS, "PROGRESS")

def progress(self, msg, *args, **kwargs):
    if self.isEnabledFor(PROGRESS):
        self._log(PROGRESS, msg, args, **kwargs)

logging.Logger.progress = progress

logger = logging.getLogger("scanlens")

# --- Custom Handlers (for the Listener) ---
class UIEventHandler(logging.Handler):
    """Emits structured progress events to a queue."""
    def __init__(self, q: Queue):
        super().__init__()
        self.q = q
    def emit(self, record: logging.LogRecord):
        try:
            evt = {
                "file_index": getattr(record, "file_index", None),
                "progress": getattr(record, "pct", None),
                "status": record.getMessage(),
                "task": getattr(record, "task", None),
                "chunk": getattr(record, "chunk", None),
            }
            self.q.put(evt)
        except Exception:
            self.handleError(record)

# --- Custom Filters ---
class OnlyLevelFilter(logging.Filter):
    def __init__(self, levelno: int):
        super().__init__()
        self.levelno = levelno
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno == self.levelno

class ExcludeLevelFilter(logging.Filter):
    def __init__(self, levelno: int):
        super().__init__()
        self.levelno = levelno
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno != self.levelno

# --- Main Configuration Function ---
def setup_logging(
    log_queue: MPQueue,
    *,
    event_ui_queue: Optional[Queue] = None,
    level: int = logging.INFO,
    file_path: Optional[Union[str, Path]] = None,
    file_level: Optional[int] = None,
    console: bool = False,
) -> QueueListener:
    """
    Sets up the logging listener architecture.

    Args:
        log_queue: The process-safe queue that the main process and all workers log to.
        event_ui_queue: Thread-safe queue receiving progress event dicts.
        level: The base logging level for text and console outputs.
        file_path: Path to the persistent log file.
        file_level: The logging level for the file.
        console: Also echo non-progress records to stderr.

    Returns:
        A QueueListener instance. You must call .start() on it.
    """
    handlers = []

    # File handler
    if file_path:
        fp = Path(file_path)
        fp.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(fp, maxBytes=5*1024*1024, backupCount=2, encoding="utf-8")
        fh.setLevel(file_level if file_level is not None else level)
        fh.setFormatter(logging.Formatter("%(asctime)s | %(processName)-15s | %(levelname)-8s | %(message)s"))
        fh.addFilter(ExcludeLevelFilter(PROGRESS))
        handlers.append(fh)

    if console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(level)
        ch.setFormatter(logging.Formatter("%(levelname)-8s | %(message)s"))
        ch.addFilter(ExcludeLevelFilter(PROGRESS))
        handlers.append(ch)

    # Event queue handler
    if event_ui_queue:
        eh = UIEventHandler(event_ui_queue)
        eh.setLevel(PROGRESS)
        eh.addFilter(OnlyLevelFilter(PROGRESS))
        handlers.append(eh)

    # The listener pulls from the process-safe queue and pushes to the configured handlers.
    listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    return listener

def configure_worker_logging(log_queue: MPQueue):
    """
    Configures the logger for a worker process, or for the main process
    when it logs through the same queue.
    It removes all existing handlers and adds only a QueueHandler.
    """
    worker_logger = logging.getLogger("scanlens")
    worker_logger.setLevel(logging.DEBUG)

    # Remove any handlers that may have been inherited from the parent process
    worker_logger.handlers.clear()

    worker_logger.addHandler(QueueHandler(log_queue))

def drain_events(q: Queue) -> Iterator[ProgressEvent]:
    """
    Yield every progress event currently waiting in q without blocking.
    Malformed payloads are logged and skipped.
    """
    while True:
        try:
            payload = q.get_nowait()
        except Empty:
            return
        try:
            yield ProgressEvent.from_dict(payload)
        except FormatError as e:
            logger.warning("Skipping malformed progress event, %s", e)
