"""
OpenAI client wrapper for insight generation.

Provides a single async chat-completion call over any OpenAI-compatible
endpoint.
"""

import logging
import os
from typing import Optional

from openai import AsyncOpenAI

from insight_engine.core.config import LLMConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a business analytics assistant. "
    "Always answer with the JSON object the user asks for."
)


class LLMConfigurationError(Exception):
    """Raised when the LLM client cannot be configured (e.g. no API key)."""
    pass


class LLMClient:
    """
    Async chat client for insight prompts.

    Usage:
        client = LLMClient(settings.llm)
        text = await client.chat_completion(prompt)
    """

    def __init__(self, config: Optional[LLMConfig] = None, client: Optional[AsyncOpenAI] = None):
        """
        Initialize the client.

        Args:
            config: Model, sampling and endpoint settings
            client: Pre-built AsyncOpenAI client (takes precedence, mainly for tests)
        """
        self.config = config or LLMConfig()

        if client is not None:
            self.client = client
        else:
            api_key = self.config.api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise LLMConfigurationError(
                    "OpenAI API key not provided. Set INSIGHT_LLM__API_KEY or "
                    "OPENAI_API_KEY, or pass an api_key in the LLM config."
                )
            self.client = AsyncOpenAI(api_key=api_key, base_url=self.config.base_url)

        logger.info(f"LLM client initialized with model: {self.config.model}")

    async def chat_completion(self, prompt: str) -> str:
        """Send one user prompt and return the response text."""
        response = await self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        content = response.choices[0].message.content or ""
        logger.debug(f"LLM response: {len(content)} chars")
        return content
