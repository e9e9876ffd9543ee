"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
Supports both text completion and vision analysis.  When a custom base URL
is configured (TogetherAI, Groq, Fireworks, ...) the client points at that
URL instead of the default OpenAI endpoint.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.utils.errors import (
    ContextWindowExceededError,
    LLMError,
    ProviderUnavailableError,
    is_context_window_error,
)
from src.utils.image_utils import to_data_url

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible API.

    Uses ``gpt-4o-mini`` for text and ``gpt-4o`` for vision by default.
    Either can be overridden through settings or the constructor.
    """

    def __init__(
        self,
        settings: Settings,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key
        self._base_url = base_url if base_url is not None else settings.openai_base_url

        client_kwargs: dict = {
            "api_key": self._api_key or "not-configured",
            "timeout": openai.Timeout(settings.llm_timeout_seconds, connect=5.0),
        }
        if self._base_url:
            client_kwargs["base_url"] = self._base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = model or settings.openai_text_model or "gpt-4o-mini"
        self._vision_model = settings.openai_vision_model or "gpt-4o"
        # Custom endpoints only get vision when a vision model is named.
        self._has_vision = bool(settings.openai_vision_model) or not self._base_url
        self._provider_label = "openai-compatible" if self._base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion via the chat completions API."""
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} timed out after {self._settings.llm_timeout_seconds:g}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIConnectionError as exc:
            raise ProviderUnavailableError(
                message=f"Failed to connect to {self._provider_label}. Check the network connection and endpoint URL.",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            if is_context_window_error(exc):
                raise ContextWindowExceededError(
                    message=f"{self._provider_label} context window exceeded: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Read an image with the configured vision model."""
        if not self._has_vision:
            raise NotImplementedError(
                f"Vision is not enabled for {self._provider_label}; set OPENAI_VISION_MODEL"
            )
        try:
            response = await self._client.chat.completions.create(
                model=self._vision_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": to_data_url(image_bytes)}},
                        ],
                    }
                ],
                max_tokens=4000,
            )
        except openai.APIConnectionError as exc:
            raise ProviderUnavailableError(
                message=f"Failed to connect to {self._provider_label}. Check the network connection and endpoint URL.",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message=f"{self._provider_label} vision returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_vision_extract",
            model=self._vision_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def supports_vision(self) -> bool:
        return self._has_vision

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """List models to confirm the key is accepted without paying for inference."""
        if not self.is_available():
            return False
        try:
            await self._client.models.list()
            return True
        except openai.APIError:
            return False

    def get_provider_name(self) -> str:
        return self._provider_label
