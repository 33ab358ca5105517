# src/scanlens/executor.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from .config import AnalysisConfig
from .exceptions import AnalysisError, LLMBackendError
from .llm_backends.base import BaseLLMBackend
from .models import TaskKind, TaskResult
from .prompts import build_prompt

logger = logging.getLogger("scanlens")


def check_response(response: str, min_chars: int, refusal_markers: Sequence[str]) -> None:
    """
    Reject completions that look like a refusal or are too short to be real output.

    This is a string heuristic, not a content check: any response containing a
    refusal marker (default "sorry") is treated as a refusal, even when the word
    legitimately appears in the document. The backend gives no structured
    refusal signal to use instead.
    """
    lowered = response.lower()
    for marker in refusal_markers:
        if marker.lower() in lowered:
            raise AnalysisError(f"Response contains refusal marker '{marker}'")
    if len(response) < min_chars:
        raise AnalysisError(f"Response too short, {len(response)} < {min_chars} characters")


class TaskExecutor:
    """
    Runs one analysis task on one chunk with bounded retries.

    Attempts are 1 + max_retries. Between attempts the executor waits
    retry_delay * (attempt + 1) seconds through the injected `sleep`.
    When every attempt fails the original chunk is returned unchanged,
    unless fallback_to_source is off, in which case AnalysisError is raised.
    """

    def __init__(self, backend: BaseLLMBackend, config: AnalysisConfig, sleep: Callable[[float], None] = time.sleep):
        self.backend = backend
        self.config = config
        self.sleep = sleep

    def execute(self, chunk: str, task: TaskKind, chunk_index: int, total_chunks: int,
                file_index: Optional[int] = None) -> TaskResult:
        task = TaskKind(task)
        cfg = self.config
        prompt = build_prompt(task, chunk, chunk_index, total_chunks)
        max_attempts = cfg.max_retries + 1
        where = f"{task.value} chunk {chunk_index + 1}/{total_chunks} (file {file_index})"

        retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_incrementing(start=cfg.retry_delay_seconds, increment=cfg.retry_delay_seconds),
            retry=retry_if_exception_type((LLMBackendError, AnalysisError)),
            sleep=self.sleep,
            after=lambda state: logger.error("Error in %s, %s", where, state.outcome.exception()),
            before_sleep=lambda state: logger.info(
                "Retrying %s in %.1fs (retry %d of %d)",
                where, state.next_action.sleep, state.attempt_number, cfg.max_retries,
            ),
        )
        try:
            for attempt in retrying:
                with attempt:
                    logger.info("Processing %s, %d characters, attempt %d",
                                where, len(chunk), attempt.retry_state.attempt_number)
                    response = self.backend.complete(
                        prompt, model=cfg.model, temperature=cfg.temperature, max_tokens=cfg.max_tokens
                    )
                    check_response(response, cfg.min_response_chars, cfg.refusal_markers)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            if not cfg.fallback_to_source:
                raise AnalysisError(f"Max retries reached for {where}, {last_error}") from last_error
            logger.warning("Max retries reached for %s. Using original text.", where)
            return TaskResult(task=task, chunk_index=chunk_index, total_chunks=total_chunks,
                              text=chunk, attempts=max_attempts, fell_back=True)

        logger.debug("Response length for %s, %d characters", where, len(response))
        return TaskResult(task=task, chunk_index=chunk_index, total_chunks=total_chunks,
                          text=response, attempts=attempt.retry_state.attempt_number)

    def run_task(self, chunk: str, task: TaskKind, chunk_index: int, total_chunks: int,
                 file_index: Optional[int] = None) -> str:
        return self.execute(chunk, task, chunk_index, total_chunks, file_index).text
