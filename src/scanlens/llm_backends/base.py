# scanlens/llm_backends/base.py
from abc import ABC, abstractmethod

class BaseLLMBackend(ABC):
    @abstractmethod
    def complete(self, prompt: str, *, model: str, temperature: float, max_tokens: int) -> str:
        """
        Return the completion text for a single user prompt.
        Transport, quota and rate-limit failures raise LLMBackendError.
        """
        pass
