"""LLM provider adapters.

Three concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4o-mini / gpt-4o (also any OpenAI-compatible API)
    - AnthropicLLMProvider -- Claude (vision + text)
    - OllamaLLMProvider    -- local models via an Ollama server

``src.main.build_llm_provider`` picks one from a ProviderConfig.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider", "OllamaLLMProvider"]
