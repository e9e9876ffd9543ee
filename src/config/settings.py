"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first) environment variables, then the
``.env`` file in the working directory, then the defaults below.  Field
``openai_api_key`` maps to ``OPENAI_API_KEY`` and so on.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.provider import ProviderConfig, ProviderName


class Settings(BaseSettings):
    """Contextual pipeline settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === AI providers ===
    # Empty string = "not configured".
    default_provider: ProviderName = ProviderName.OPENAI
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, Groq, ...)
    openai_text_model: str = ""
    openai_vision_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    llm_timeout_seconds: float = 60.0

    # === Pipeline ===
    max_text_length: int = 100_000
    chunk_target_size: int = 300
    chunking_delay_seconds: float = 0.8

    # === Graph view ===
    graph_top_n: int = 5

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the provider names that are configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append(ProviderName.OPENAI.value)
        if self.anthropic_api_key:
            providers.append(ProviderName.ANTHROPIC.value)
        if self.ollama_base_url:
            providers.append(ProviderName.OLLAMA.value)
        return providers

    def default_provider_config(self) -> ProviderConfig:
        """Build the routing config for :attr:`default_provider`."""
        if self.default_provider == ProviderName.OLLAMA:
            return ProviderConfig(
                provider=ProviderName.OLLAMA,
                endpoint=self.ollama_base_url,
                model_name=self.ollama_model,
            )
        if self.default_provider == ProviderName.ANTHROPIC:
            return ProviderConfig(provider=ProviderName.ANTHROPIC, model_name=self.anthropic_model)
        return ProviderConfig(
            provider=ProviderName.OPENAI,
            endpoint=self.openai_base_url,
            model_name=self.openai_text_model,
        )
