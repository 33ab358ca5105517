"""
Tests for the retrying task executor and prompt construction.
"""

import pytest

from conftest import FakeLLMBackend
from scanlens.config import AnalysisConfig
from scanlens.exceptions import AnalysisError, LLMBackendError
from scanlens.executor import TaskExecutor, check_response
from scanlens.models import TaskKind
from scanlens.prompts import build_prompt

GOOD = "This is a complete and sufficiently long model response for the chunk."


class ScriptedBackend(FakeLLMBackend):
    """Plays back a list of responses; exceptions in the list are raised."""

    def __init__(self, script):
        super().__init__()
        self.script = list(script)

    def complete(self, prompt, *, model, temperature, max_tokens):
        self.prompts.append(prompt)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item


class TestCheckResponse:

    def test_accepts_good_response(self):
        check_response(GOOD, 50, ["sorry"])

    def test_refusal_marker_case_insensitive(self):
        with pytest.raises(AnalysisError, match="refusal"):
            check_response("SORRY " + GOOD, 50, ["sorry"])

    def test_too_short(self):
        with pytest.raises(AnalysisError, match="too short"):
            check_response("tiny", 50, ["sorry"])


class TestTaskExecutor:
    """Bounded retries with injected sleep."""

    def test_refusal_falls_back_after_four_calls(self, sleeps):
        backend = ScriptedBackend(["Sorry, I cannot help."])
        executor = TaskExecutor(backend, AnalysisConfig(), sleep=sleeps.append)
        result = executor.execute("original chunk", TaskKind.EXTRACT, 0, 1)
        assert result.text == "original chunk"
        assert result.fell_back
        assert result.attempts == 4
        assert len(backend.prompts) == 4
        assert sleeps == [2.0, 4.0, 6.0]

    def test_success_first_try(self, sleeps):
        backend = ScriptedBackend([GOOD])
        result = TaskExecutor(backend, AnalysisConfig(), sleep=sleeps.append).execute("c", TaskKind.SUMMARIZE, 0, 1)
        assert result.text == GOOD
        assert result.attempts == 1
        assert not result.fell_back
        assert sleeps == []

    def test_success_after_retry(self, sleeps):
        backend = ScriptedBackend(["short", GOOD])
        result = TaskExecutor(backend, AnalysisConfig(), sleep=sleeps.append).execute("c", TaskKind.EXTRACT, 0, 1)
        assert result.text == GOOD
        assert result.attempts == 2
        assert sleeps == [2.0]

    def test_backend_error_is_retried(self, sleeps):
        backend = ScriptedBackend([LLMBackendError("rate limited"), LLMBackendError("rate limited"), GOOD])
        result = TaskExecutor(backend, AnalysisConfig(), sleep=sleeps.append).execute("c", TaskKind.RECONSTRUCT, 0, 1)
        assert result.text == GOOD
        assert sleeps == [2.0, 4.0]

    def test_other_exceptions_propagate(self, sleeps):
        backend = ScriptedBackend([KeyError("bug")])
        with pytest.raises(KeyError):
            TaskExecutor(backend, AnalysisConfig(), sleep=sleeps.append).execute("c", TaskKind.EXTRACT, 0, 1)

    def test_no_fallback_raises(self, sleeps):
        config = AnalysisConfig(fallback_to_source=False, max_retries=1, retry_delay_seconds=0.5)
        backend = ScriptedBackend(["sorry"])
        with pytest.raises(AnalysisError, match="Max retries"):
            TaskExecutor(backend, config, sleep=sleeps.append).execute("c", TaskKind.EXTRACT, 0, 1)
        assert len(backend.prompts) == 2
        assert sleeps == [0.5]

    def test_zero_retries(self, sleeps):
        config = AnalysisConfig(max_retries=0)
        backend = ScriptedBackend(["sorry"])
        assert TaskExecutor(backend, config, sleep=sleeps.append).run_task("c", TaskKind.EXTRACT, 0, 1) == "c"
        assert len(backend.prompts) == 1
        assert sleeps == []

    def test_backoff_follows_configured_delay(self, sleeps):
        config = AnalysisConfig(max_retries=2, retry_delay_seconds=1.5)
        backend = ScriptedBackend(["sorry"])
        result = TaskExecutor(backend, config, sleep=sleeps.append).execute("c", TaskKind.EXTRACT, 0, 1)
        assert result.fell_back
        assert result.attempts == 3
        assert sleeps == [1.5, 3.0]

    def test_prompt_carries_chunk_and_part(self, sleeps):
        backend = ScriptedBackend([GOOD])
        TaskExecutor(backend, AnalysisConfig(), sleep=sleeps.append).run_task("THE CHUNK", TaskKind.EXTRACT, 2, 5)
        assert "part 3 of 5" in backend.prompts[0]
        assert backend.prompts[0].endswith("THE CHUNK")


class TestBuildPrompt:

    @pytest.mark.parametrize("task", list(TaskKind))
    def test_every_task_has_template(self, task):
        prompt = build_prompt(task, "body", 0, 1)
        assert "part 1 of 1" in prompt
        assert "body" in prompt

    def test_accepts_task_value(self):
        assert build_prompt("summarize", "x", 0, 2).startswith("Provide a brief summary")

    def test_unknown_task(self):
        with pytest.raises(ValueError):
            build_prompt("translate", "x", 0, 1)
