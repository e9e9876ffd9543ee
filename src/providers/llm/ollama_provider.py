"""Ollama LLM provider adapter.

Wraps a local Ollama server via its OpenAI-compatible ``/v1`` endpoint,
reusing the ``openai`` client.  Lets the pipeline run fully offline; the
trade-off is smaller context windows, which is why prompt limits for
``ollama`` are tighter in ``config/config.yaml``.

Setup: install Ollama, ``ollama pull llama3`` (and ``llava`` for images),
then set ``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

import httpx
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

OLLAMA_CONNECTION_HINT = (
    "Failed to connect to Ollama. Ensure Ollama is running and "
    'OLLAMA_ORIGINS="*" is set.'
)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(
        self,
        settings: Settings,
        model: str | None = None,
        base_url: str | None = None,
        vision_model: str = "llava",
    ) -> None:
        self._settings = settings
        self._base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # Ollama ignores the key but the SDK requires a non-empty one.
            api_key="ollama",
            timeout=openai.Timeout(settings.llm_timeout_seconds, connect=5.0),
        )
        self._text_model = model or settings.ollama_model
        self._vision_model = vision_model

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
        """Generate a text completion via Ollama's OpenAI-compatible API."""
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
        except openai.APIConnectionError as exc:
            raise ProviderUnavailableError(
                message=OLLAMA_CONNECTION_HINT,
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            if is_context_window_error(exc):
                raise ContextWindowExceededError(
                    message=f"Ollama context window exceeded: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            raise LLMError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_completion", model=self._text_model)
        return content

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Read an image with the local vision model."""
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
                message=OLLAMA_CONNECTION_HINT,
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"Ollama vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message="Ollama vision returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_vision_extract", model=self._vision_model)
        return content

    def supports_vision(self) -> bool:
        return True

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    async def validate_credentials(self) -> bool:
        """Check the server answers on its native ``/api/tags`` endpoint."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"
