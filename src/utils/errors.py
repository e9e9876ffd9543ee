"""Custom exception hierarchy for the contextual document pipeline.

All application exceptions inherit from :class:`ContextPipelineError`, which
carries an optional ``provider_name`` so error handlers can tell which
external backend (e.g. "openai", "ollama", "pymupdf") caused the failure.

The hierarchy mirrors the pipeline's error taxonomy:

    ContextPipelineError  (base)
    +-- InputTooLargeError          (rejected before any stage transition)
    +-- ExtractionError             (PDF / EPUB container unreadable)
    +-- EmptyDocumentError          (normalization produced nothing usable)
    +-- LLMError                    (any model call failure)
    |   +-- ContextWindowExceededError
    +-- ProviderUnavailableError    (backend down / unreachable)
    +-- GraphGenerationError        (isolated to the "generate graph" action)
    +-- PipelineError               (orchestration / invalid transitions)
    +-- ConfigurationError          (unknown provider, missing credentials)

Per-chunk enrichment failures and malformed capability payloads are *not*
exceptions at the pipeline level: the former are recorded on the chunk, the
latter are replaced with neutral defaults.
"""

from __future__ import annotations


class ContextPipelineError(Exception):
    """Base exception for all pipeline errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[ollama] Connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input / extraction errors
# ---------------------------------------------------------------------------

class InputTooLargeError(ContextPipelineError):
    """Raised when plain-text input exceeds the configured safety ceiling."""

    def __init__(
        self,
        message: str = "Input text exceeds the maximum allowed length",
        provider_name: str | None = None,
        *,
        length: int = 0,
        limit: int = 0,
    ) -> None:
        self.length = length
        self.limit = limit
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(ContextPipelineError):
    """Raised when a binary container (PDF, EPUB) cannot be read."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyDocumentError(ContextPipelineError):
    """Raised when normalization yields no usable text."""

    def __init__(
        self,
        message: str = "No readable text was found in the document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Model / provider errors
# ---------------------------------------------------------------------------

class LLMError(ContextPipelineError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ContextWindowExceededError(LLMError):
    """Raised when the prompt does not fit the model's context window."""

    def __init__(
        self,
        message: str = "Model context window exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(ContextPipelineError):
    """Raised when the configured backend cannot be reached."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GraphGenerationError(ContextPipelineError):
    """Raised when the knowledge-graph action fails.

    Never affects chunk data that has already been produced.
    """

    def __init__(
        self,
        message: str = "Failed to generate Knowledge Graph",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(ContextPipelineError):
    """Raised when pipeline orchestration fails (invalid state transition, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(ContextPipelineError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------

# Substrings that OpenAI-compatible servers, Anthropic and Ollama use when a
# prompt is too long for the model.
_CONTEXT_WINDOW_MARKERS = (
    "context_length_exceeded",
    "maximum context length",
    "context window",
    "prompt is too long",
    "too many tokens",
)


def is_context_window_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* looks like a context-window overflow."""
    code = getattr(exc, "code", None)
    if code == "context_length_exceeded":
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _CONTEXT_WINDOW_MARKERS)
