"""Unit tests for settings, the YAML loader, errors and the domain models."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from src.config.loader import load_config, provider_limits
from src.config.settings import Settings
from src.models.document import (
    ENRICHMENT_FAILED,
    Chunk,
    ChunkSequence,
    DocumentState,
    Enrichment,
    InputKind,
    detect_input_kind,
)
from src.models.pipeline import ALLOWED_TRANSITIONS, PipelineStage
from src.models.provider import ProviderConfig, ProviderName
from src.utils.errors import (
    ContextPipelineError,
    ContextWindowExceededError,
    LLMError,
    is_context_window_error,
)

# ======================================================================
# Settings
# ======================================================================


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings(_env_file=None)

        assert s.max_text_length == 100_000
        assert s.chunk_target_size == 300
        assert s.default_provider == ProviderName.OPENAI

    def test_available_providers(self) -> None:
        s = Settings(_env_file=None, openai_api_key="", anthropic_api_key="k", ollama_base_url="http://x")
        assert s.get_available_llm_providers() == ["anthropic", "ollama"]

    def test_default_provider_config_for_ollama(self) -> None:
        s = Settings(_env_file=None, default_provider="ollama", ollama_model="mistral")

        config = s.default_provider_config()

        assert config == ProviderConfig(
            provider=ProviderName.OLLAMA,
            endpoint="http://localhost:11434",
            model_name="mistral",
        )

    def test_unknown_provider_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_provider="gemini")


# ======================================================================
# Config loader
# ======================================================================


class TestLoadConfig:
    def test_repo_config_has_prompt_limits(self) -> None:
        config = load_config(settings=Settings(_env_file=None))

        assert config["prompt_limits"]["ollama"]["graph_chunk_limit"] == 15
        assert config["layout"]["centroids"]["person"] == [-150, -100]

    def test_env_values_are_merged(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("pipeline:\n  extra: kept\n", encoding="utf-8")

        config = load_config(path, settings=Settings(_env_file=None, chunk_target_size=123))

        assert config["pipeline"]["extra"] == "kept"
        assert config["pipeline"]["chunk_target_size"] == 123

    def test_missing_file_yields_env_only(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "absent.yaml", settings=Settings(_env_file=None))

        assert "prompt_limits" not in config
        assert config["graph"]["top_n"] == 5

    def test_provider_limits_fall_back_to_default(self) -> None:
        config = {
            "prompt_limits": {
                "default": {"summary_char_limit": 10000, "graph_text_preview": 200},
                "ollama": {"summary_char_limit": 4000},
            }
        }

        assert provider_limits(config, "ollama") == {"summary_char_limit": 4000, "graph_text_preview": 200}
        assert provider_limits(config, "openai") == {"summary_char_limit": 10000, "graph_text_preview": 200}
        assert provider_limits({}, "openai") == {}


# ======================================================================
# Errors
# ======================================================================


class TestErrors:
    def test_str_prefixes_provider(self) -> None:
        assert str(LLMError(message="boom", provider_name="ollama")) == "[ollama] boom"
        assert str(LLMError(message="boom")) == "boom"

    def test_hierarchy(self) -> None:
        exc = ContextWindowExceededError()
        assert isinstance(exc, LLMError)
        assert isinstance(exc, ContextPipelineError)

    @pytest.mark.parametrize(
        "message",
        [
            "This model's maximum context length is 4096 tokens",
            "prompt is too long: 210000 tokens",
            "Error: context window exceeded",
        ],
    )
    def test_context_window_detection_by_message(self, message: str) -> None:
        assert is_context_window_error(RuntimeError(message))

    def test_context_window_detection_by_code(self) -> None:
        assert is_context_window_error(SimpleNamespace(code="context_length_exceeded"))

    def test_other_errors_are_not_context_window(self) -> None:
        assert not is_context_window_error(RuntimeError("rate limit exceeded"))


# ======================================================================
# Models
# ======================================================================


class TestDocumentModels:
    def test_with_chunk_bumps_version_and_keeps_original(self) -> None:
        seq = ChunkSequence.of([Chunk(id="a", original_text="x"), Chunk(id="b", original_text="y")])

        updated = seq.with_chunk(Chunk(id="b", original_text="y", summary="s"))

        assert updated.version == 1
        assert updated.get("b").summary == "s"
        assert seq.get("b").summary is None
        assert [c.id for c in updated.chunks] == ["a", "b"]

    def test_with_unknown_chunk_raises(self) -> None:
        with pytest.raises(KeyError):
            ChunkSequence().with_chunk(Chunk(id="z", original_text=""))

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(ValueError):
            ChunkSequence.of([Chunk(id="a", original_text="x"), Chunk(id="a", original_text="y")])

    def test_models_are_frozen(self) -> None:
        with pytest.raises(ValidationError):
            DocumentState().parsed_text = "mutated"

    def test_failed_and_neutral_markers_differ(self) -> None:
        failed = Chunk(id="a", original_text="x", enriched_context=ENRICHMENT_FAILED)
        neutral = Chunk(id="b", original_text="y", enriched_context=Enrichment.neutral().context)

        assert failed.enrichment_failed and not failed.is_enriched
        assert neutral.is_enriched and not neutral.enrichment_failed

    def test_chunk_serializes_camel_case(self) -> None:
        data = Chunk(id="a", original_text="x", enriched_context="c").model_dump(by_alias=True, exclude_none=True)
        assert data == {"id": "a", "originalText": "x", "enrichedContext": "c"}

    def test_chunk_accepts_camel_case(self) -> None:
        assert Chunk.model_validate({"id": "a", "originalText": "x"}).original_text == "x"


class TestPipelineStage:
    def test_in_run_transitions(self) -> None:
        assert PipelineStage.CHUNKING in ALLOWED_TRANSITIONS[PipelineStage.PARSING]
        assert PipelineStage.COMPLETE not in ALLOWED_TRANSITIONS[PipelineStage.PARSING]
        assert ALLOWED_TRANSITIONS[PipelineStage.COMPLETE] == frozenset()

    def test_active_stages(self) -> None:
        assert PipelineStage.ENRICHING.is_active
        assert not PipelineStage.ERROR.is_active


class TestDetectInputKind:
    @pytest.mark.parametrize(
        ("filename", "content_type", "expected"),
        [
            ("report.pdf", None, InputKind.PDF),
            ("book.EPUB", None, InputKind.EPUB),
            ("notes.md", None, InputKind.TEXT),
            ("scan.jpeg", None, InputKind.IMAGE),
            ("upload", "image/webp", InputKind.IMAGE),
            ("upload.bin", "application/pdf", InputKind.PDF),
            ("notes.txt", "text/plain; charset=utf-8", InputKind.TEXT),
            ("archive.zip", "application/zip", None),
            (None, None, None),
        ],
    )
    def test_detection(self, filename, content_type, expected) -> None:
        assert detect_input_kind(filename, content_type) == expected

    def test_container_kinds(self) -> None:
        assert InputKind.PDF.is_container and InputKind.EPUB.is_container
        assert not InputKind.IMAGE.is_container
