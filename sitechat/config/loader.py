"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  - Static defaults checked into the repo
#   2. .env file           - Local developer overrides (not committed)
#   3. Environment vars    - Set at deploy time
#   4. Explicit overrides  - Keyword arguments (tests, CLI flags)
#
# YAML sections (``retrieval:``, ``indexing:``...) are only a grouping
# device: the keys inside them are Settings field names.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from sitechat.config.settings import Settings


def load_settings(path: str = "config/config.yaml", **overrides: Any) -> Settings:
    """Build a :class:`Settings` from YAML defaults, the environment and overrides.

    Args:
        path: Path to the YAML configuration file.  A missing file is not
              an error; the Settings defaults apply.
        **overrides: Field values that win over every other source.

    Returns:
        Fully resolved Settings instance.
    """
    yaml_values = _flatten_sections(_read_yaml(path))

    # Fields present in model_fields_set came from the environment or .env
    # and therefore outrank the YAML defaults.
    env_settings = Settings()
    merged: dict[str, Any] = {}
    _deep_merge(merged, yaml_values)
    _deep_merge(
        merged,
        {name: getattr(env_settings, name) for name in env_settings.model_fields_set},
    )
    _deep_merge(merged, overrides)
    return Settings(**merged)


def _read_yaml(path: str) -> dict:
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _flatten_sections(raw: dict) -> dict[str, Any]:
    """Lift ``section: {field: value}`` pairs to ``{field: value}``."""
    known = set(Settings.model_fields)
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, dict) and key not in known:
            flat.update({k: v for k, v in value.items() if k in known})
        elif key in known:
            flat[key] = value
    return flat


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
