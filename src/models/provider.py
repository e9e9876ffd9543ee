"""Provider routing configuration.

The core never interprets these values; they only select which
:class:`~src.interfaces.document_capabilities.IDocumentCapabilities`
implementation serves a run.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ProviderName(str, Enum):  # noqa: UP042
    """Closed set of AI backends."""

    OPENAI = "openai"        # cloud, OpenAI-compatible
    ANTHROPIC = "anthropic"  # cloud
    OLLAMA = "ollama"        # local


class ProviderConfig(BaseModel):
    """Which backend to use, where it lives, and which model to ask for.

    Empty ``endpoint`` / ``model_name`` mean "use the settings default".
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderName = ProviderName.OPENAI
    endpoint: str = ""
    model_name: str = ""
