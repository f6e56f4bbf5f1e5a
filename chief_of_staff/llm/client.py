"""Language-model client — system-instructed text generation with model fallback."""

from __future__ import annotations

import logging
import os

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

logger = logging.getLogger(__name__)

# Tried in order until one answers.  Sonnet for drafting quality, Haiku as the
# cheap fallback when Sonnet is overloaded or unavailable on the account.
DEFAULT_MODELS: tuple[str, ...] = ("claude-sonnet-4-6", "claude-haiku-4-5-20251001")
_MAX_TOKENS = 2048


class LLMError(Exception):
    """Raised when every configured model failed to produce a response."""


def models_from_env() -> list[str]:
    """Read LLM_MODELS (comma-separated); fall back to DEFAULT_MODELS."""
    raw = os.environ.get("LLM_MODELS", "")
    models = [m.strip() for m in raw.split(",") if m.strip()]
    return models or list(DEFAULT_MODELS)


class LLMClient:
    """Thin wrapper over AsyncAnthropic that returns plain text.

    The reply is not guaranteed to be structured; callers that expect JSON must
    extract and validate it themselves.

    Usage::

        llm = LLMClient()
        text = await llm.generate_with_system("You are terse.", "Say hi")
    """

    def __init__(
        self,
        api_key: str | None = None,
        models: list[str] | None = None,
        max_tokens: int = _MAX_TOKENS,
    ) -> None:
        self._client = AsyncAnthropic(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        )
        self._models = models or models_from_env()
        self._max_tokens = max_tokens

    async def generate_with_system(self, system_instruction: str, prompt: str) -> str:
        """Generate a reply to prompt under system_instruction.

        Raises:
            LLMError: if every model raised or returned no text.  The last
                underlying error is chained as ``__cause__``.
        """
        last_error: Exception | None = None
        for model in self._models:
            try:
                response = await self._client.messages.create(
                    model=model,
                    max_tokens=self._max_tokens,
                    system=system_instruction,
                    messages=[{"role": "user", "content": prompt}],
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning("Model %s failed: %s", model, exc)
                last_error = exc
                continue

            text = "".join(
                block.text for block in response.content if isinstance(block, TextBlock)
            )
            if text.strip():
                logger.debug("Model %s answered (%d chars)", model, len(text))
                return text

            logger.warning(
                "Model %s returned no text (stop_reason=%r)", model, response.stop_reason
            )
            last_error = LLMError(f"Model {model!r} returned an empty response")

        raise LLMError(
            f"All models failed ({', '.join(self._models)}): {last_error}"
        ) from last_error
