"""
Streaming LLM client wrapper using Google Gemini.

Rationale:
- Use google-generativeai SDK for robust Gemini access.
- Keep interface tiny: stream(system_prompt, user_prompt) -> async iterator of text fragments.
- Settings are passed in at construction; nothing is configured globally at import time.
- No retries / no fallback.
"""

import os
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol

import google.generativeai as genai

logger = logging.getLogger(__name__)


class CompletionSource(Protocol):
    def stream(self, system_prompt: str, user_prompt: str) -> AsyncIterator[Optional[str]]:
        ...


@dataclass(frozen=True)
class LLMSettings:
    api_key: str
    model_name: str
    temperature: float = 0.2  # Low temperature for more deterministic JSON
    top_p: float = 0.95
    max_output_tokens: int = 4096

    @classmethod
    def from_env(cls) -> "LLMSettings":
        """
        Build settings from environment variables (after main.py loads .env).
        """
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("LLM_API_KEY")
        model_name = os.getenv("GEMINI_MODEL")

        if not api_key:
            raise RuntimeError("GEMINI_API_KEY or LLM_API_KEY must be set in environment")

        if not model_name:
            raise RuntimeError("GEMINI_MODEL must be set in environment")

        return cls(
            api_key=api_key,
            model_name=model_name,
            temperature=float(os.getenv("LLM_TEMPERATURE", cls.temperature)),
            top_p=float(os.getenv("LLM_TOP_P", cls.top_p)),
            max_output_tokens=int(os.getenv("LLM_MAX_TOKENS", cls.max_output_tokens)),
        )


def _chunk_text(chunk) -> Optional[str]:
    # response.text raises ValueError when a chunk carries no text part
    # (safety block or a bare finish reason)
    try:
        return chunk.text
    except ValueError:
        if chunk.candidates:
            logger.warning(f"Gemini chunk without text. Finish reason: {chunk.candidates[0].finish_reason}")
        return None


class GeminiCompletionSource:
    """Gemini-backed completion source yielding partial-content fragments."""

    def __init__(self, settings: Optional[LLMSettings] = None):
        self._settings = settings

    @property
    def settings(self) -> LLMSettings:
        # Resolved on first stream(), after main.py has loaded .env
        if self._settings is None:
            self._settings = LLMSettings.from_env()
        return self._settings

    async def stream(self, system_prompt: str, user_prompt: str) -> AsyncIterator[Optional[str]]:
        genai.configure(api_key=self.settings.api_key)

        # Initialize model with system instruction
        model = genai.GenerativeModel(
            model_name=self.settings.model_name,
            system_instruction=system_prompt,
        )

        config = genai.GenerationConfig(
            max_output_tokens=self.settings.max_output_tokens,
            temperature=self.settings.temperature,
            top_p=self.settings.top_p,
        )

        logger.info(f"Streaming completion from {self.settings.model_name} ({len(user_prompt)} prompt chars)")
        response = await model.generate_content_async(
            user_prompt,
            generation_config=config,
            stream=True,
        )
        async for chunk in response:
            yield _chunk_text(chunk)
