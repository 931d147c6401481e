"""
Text-generation provider adapters.
OpenAI chat completions behind the narrow TextProvider contract.
"""

from typing import Optional

import openai
from loguru import logger
from openai import OpenAI

from shared.config import Settings, get_settings
from shared.exceptions import ProviderPermanentError, ProviderTransientError
from shared.ports import Generation
from shared.models import TokenUsage

TRANSIENT_STATUS_CODES = {408, 409, 429}


def classify_openai_error(error: Exception) -> Exception:
    """Map an openai SDK exception onto the engine's transient/permanent errors."""
    if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError)):
        return ProviderTransientError(f"Provider unreachable: {error}")

    if isinstance(error, openai.RateLimitError):
        # 429 is also used for an exhausted billing quota, which won't recover by waiting
        if getattr(error, "code", None) == "insufficient_quota":
            return ProviderPermanentError(f"Provider quota exhausted: {error}")
        return ProviderTransientError(f"Provider rate limited: {error}")

    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ProviderPermanentError(f"Provider rejected credentials: {error}")

    if isinstance(error, openai.APIStatusError):
        if error.status_code >= 500 or error.status_code in TRANSIENT_STATUS_CODES:
            return ProviderTransientError(f"Provider error {error.status_code}: {error}")
        return ProviderPermanentError(f"Provider error {error.status_code}: {error}")

    return ProviderPermanentError(f"Unexpected provider failure: {error}")


class OpenAIProvider:
    """Generates rewrites with the OpenAI chat completions API."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            # Retries are handled by the orchestrator's policy
            self._client = OpenAI(
                api_key=self.settings.openai_api_key.get_secret_value(),
                timeout=self.settings.openai_timeout,
                max_retries=0,
            )
        return self._client

    def generate(self, prompt: str, context: str) -> Generation:
        try:
            response = self.client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": context},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.settings.openai_temperature,
                max_tokens=200,
            )
        except openai.OpenAIError as e:
            mapped = classify_openai_error(e)
            logger.debug(f"OpenAI call failed ({type(mapped).__name__}): {e}")
            raise mapped from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderTransientError("Empty response from provider")

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return Generation(text=content.strip(), usage=usage)
