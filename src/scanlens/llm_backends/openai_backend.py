# scanlens/llm_backends/openai_backend.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import openai

from ..exceptions import LLMBackendError
from .base import BaseLLMBackend

logger = logging.getLogger("scanlens")


class OpenAIChatBackend(BaseLLMBackend):
    """
    Chat Completions adapter.

    Kwargs supported (all optional):
      - api_key: defaults to the OPENAI_API_KEY environment variable
      - base_url: alternative OpenAI-compatible endpoint
      - max_retries: SDK-level transport retries (default 0, the executor retries)
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, max_retries: int = 0, **kwargs: Dict[str, Any]):
        try:
            self.client = openai.OpenAI(api_key=api_key, base_url=base_url, max_retries=max_retries, **kwargs)
        except openai.OpenAIError as e:
            # raised when no API key is configured
            raise LLMBackendError(f"Cannot create OpenAI client, {e}") from e

    def complete(self, prompt: str, *, model: str, temperature: float, max_tokens: int) -> str:
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            raise LLMBackendError(f"{type(e).__name__}, {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
