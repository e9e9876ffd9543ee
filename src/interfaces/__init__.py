"""Public interface definitions for the pipeline's external seams.

Every AI backend, document container and layout engine is reached only
through the abstract base classes defined here.  Concrete adapters are
built once at startup (``src/main.py``) and injected, so business logic
never imports ``openai`` or ``fitz`` directly and tests can pass fakes.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementations
    -----------------------------------------------------------------
    ILLMProvider               ->  OpenAILLMProvider, AnthropicLLMProvider,
                                   OllamaLLMProvider       (src/providers/llm/)
    IDocumentCapabilities      ->  LLMDocumentCapabilities (src/providers/capabilities/)
    ITextExtractor             ->  PDFTextExtractor, EPUBTextExtractor
                                                           (src/providers/extraction/)
    IForceSimulation           ->  ForceSimulation         (src/graph/layout.py)
"""

from src.interfaces.document_capabilities import IDocumentCapabilities
from src.interfaces.force_simulation import ForceFn, IForceSimulation
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_extractor import ITextExtractor

__all__ = [
    "ForceFn",
    "IDocumentCapabilities",
    "IForceSimulation",
    "ILLMProvider",
    "ITextExtractor",
]
