"""Utility modules for the contextual document pipeline.

- **errors** -- exception hierarchy rooted at ContextPipelineError, one
  subclass per entry of the pipeline's error taxonomy.
- **logging** -- structlog setup with a console/JSON dual renderer.
"""

from src.utils.errors import (
    ConfigurationError,
    ContextPipelineError,
    ContextWindowExceededError,
    EmptyDocumentError,
    ExtractionError,
    GraphGenerationError,
    InputTooLargeError,
    LLMError,
    PipelineError,
    ProviderUnavailableError,
)
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "ContextPipelineError",
    "ContextWindowExceededError",
    "EmptyDocumentError",
    "ExtractionError",
    "GraphGenerationError",
    "InputTooLargeError",
    "LLMError",
    "PipelineError",
    "ProviderUnavailableError",
    "configure_logging",
    "get_logger",
]
