"""OpenAI chat completion adapter.

Implements the core LanguageModelPort with a single system + user turn.
"""

from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from core.config import ExtractionConfig

LOGGER = logging.getLogger(__name__)


class OpenAIChatModel:
    """Low-temperature chat completions used for job extraction."""

    def __init__(self, api_key: str, config: ExtractionConfig, client: Optional[AsyncOpenAI] = None) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._config = config

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )
        if not response.choices:
            return ""
        content = response.choices[0].message.content or ""
        LOGGER.debug("Model replied with %s characters", len(content))
        return content.strip()
