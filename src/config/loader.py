"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

The YAML file carries tunables that are not secrets: per-provider prompt
limits and the layout centroids.  Environment-backed values from
:class:`Settings` are deep-merged on top.
"""

from pathlib import Path

import yaml

from src.config.settings import Settings

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


def load_config(path: str | Path | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML file.  Defaults to ``config/config.yaml`` at
            the repository root.  A missing file yields an empty base.
        settings: Settings instance to merge; a fresh one is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "default_provider": settings.default_provider.value,
            "available_providers": settings.get_available_llm_providers(),
        },
        "pipeline": {
            "max_text_length": settings.max_text_length,
            "chunk_target_size": settings.chunk_target_size,
            "chunking_delay_seconds": settings.chunking_delay_seconds,
        },
        "graph": {
            "top_n": settings.graph_top_n,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def provider_limits(config: dict, provider: str) -> dict:
    """Return the prompt limits for *provider*, falling back to ``default``."""
    limits = config.get("prompt_limits", {})
    merged = dict(limits.get("default", {}))
    merged.update(limits.get(provider, {}))
    return merged


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
