"""Document capability implementations (normalize, enrich, summarize, graph)."""

from src.providers.capabilities.llm_capabilities import LLMDocumentCapabilities

__all__ = ["LLMDocumentCapabilities"]
