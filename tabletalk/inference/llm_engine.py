"""
LLM Inference Engine

Thin wrapper around an OpenAI-compatible chat-completions endpoint
(Groq by default). Maps a prompt string to raw completion text.
"""

import logging
from typing import Optional

import openai

from tabletalk.config import LLMConfig
from tabletalk.core.errors import ExternalServiceError
from tabletalk.inference.prompts import PromptTemplates

logger = logging.getLogger(__name__)


class LLMEngine:
    """
    LLM collaborator used by the SQL generator.

    Failures are surfaced as ExternalServiceError and never retried.
    """

    def __init__(self, config: LLMConfig):
        """
        Initialize the LLM engine.

        Args:
            config: LLM configuration
        """
        self.config = config
        self._client: Optional[openai.OpenAI] = None

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def client(self) -> openai.OpenAI:
        """Create the client lazily so a missing key only fails on use."""
        if self._client is None:
            if not self.config.api_key:
                raise ExternalServiceError(
                    f"No API key configured for provider '{self.config.provider}' "
                    f"(set GROQ_API_KEY or OPENAI_API_KEY)"
                )
            self._client = openai.OpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=0,
            )
            logger.info(f"Initialized {self.config.provider} client with model: {self.config.model}")
        return self._client

    def complete(self, prompt: str, system_prompt: str = None) -> str:
        """
        Send a prompt and return the completion text.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt override

        Returns:
            Raw completion text

        Raises:
            ExternalServiceError: on any client, network or response failure
        """
        system = system_prompt or PromptTemplates.SYSTEM_PROMPT
        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except openai.OpenAIError as e:
            logger.error(f"LLM call failed: {e}")
            raise ExternalServiceError(f"LLM call failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"Malformed LLM response: {e}") from e

        if not content or not content.strip():
            raise ExternalServiceError("LLM returned an empty completion")
        return content.strip()
