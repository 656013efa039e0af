"""Async wrapper around an OpenAI-compatible chat-completions endpoint.

The insight pipeline only needs `generate(prompt) -> text`; everything about
the transport stays here. Failures surface as GenerationError with a short
message that can be shown to the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from careahead.config import Config
from careahead.exceptions import ConfigurationError, GenerationError

logger = logging.getLogger(__name__)

# Keep HTTP error bodies short in user-facing messages
MAX_ERROR_DETAIL = 200


@dataclass(slots=True)
class LLM:
    """Lightweight wrapper around chat completions to minimise boilerplate."""

    client: AsyncOpenAI
    model: str
    temperature: float = 0.4
    max_tokens: int = 2048

    async def __call__(self, prompt: str) -> str:
        logger.debug("Requesting completion from %s (%d prompt chars)", self.model, len(prompt))
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except APIStatusError as e:
            detail = str(e.message)[:MAX_ERROR_DETAIL]
            raise GenerationError(
                f"Language model HTTP {e.status_code}: {detail}", status_code=e.status_code, cause=e
            ) from e
        except APIConnectionError as e:
            raise GenerationError("Could not reach the language model. Check your connection.", cause=e) from e
        except APIError as e:
            raise GenerationError(f"Language model request failed: {e.message}", cause=e) from e

        content = resp.choices[0].message.content if resp.choices else None
        text = (content or "").strip()
        if not text:
            raise GenerationError("The language model returned an empty response")
        return text


def make_llm(config: Config) -> LLM:
    """Build the client from injected configuration; credentials are never defaulted."""
    if not config.api_key:
        raise ConfigurationError("Missing language model API key")
    client = AsyncOpenAI(base_url=config.base_url, api_key=config.api_key, timeout=config.timeout)
    return LLM(
        client=client,
        model=config.model_id,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
