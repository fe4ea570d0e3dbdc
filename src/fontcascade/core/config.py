"""Defaults applied to freshly created styles, loadable from YAML."""

from __future__ import annotations

from collections.abc import Mapping
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
import yaml

from fontcascade.core.exceptions import ConfigurationError


CONFIG_ENV_VAR = "FONTCASCADE_CONFIG"


class FontScalesConfig(BaseModel):
    """Percentage scales applied to primary-like and fallback fonts."""

    model_config = ConfigDict(extra="forbid")

    active: float = Field(default=100, gt=0)
    fallback: float = Field(default=100, gt=0)


class CascadeSettings(BaseModel):
    """Style-level defaults used when a style is created from scratch."""

    model_config = ConfigDict(extra="forbid")

    primary_style_id: str = "primary"
    base_font_size: float = Field(default=16, gt=0)
    weight: int = Field(default=400, ge=1, le=1000)
    line_height: float | Literal["normal"] = "normal"
    letter_spacing: float = 0
    fallback_line_height: float | Literal["normal"] = "normal"
    fallback_letter_spacing: float | None = None
    font_scales: FontScalesConfig = Field(default_factory=FontScalesConfig)
    fallback_family: str = "sans-serif"
    missing_color: str = "#ff0000"
    missing_bg_color: str = "#ffffff"
    primary_font_name: str = "Primary"


def _parse_settings_payload(raw: Any) -> CascadeSettings:
    if raw is None:
        return CascadeSettings()
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"Cascade settings must be a mapping, got {type(raw).__name__}."
        )
    payload = raw.get("fontcascade", raw)
    try:
        return CascadeSettings.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid cascade settings: {exc}") from exc


def load_settings(source: str | Path | Mapping[str, Any] | None = None) -> CascadeSettings:
    """Load settings from a mapping or a YAML file.

    A top-level ``fontcascade`` key is accepted so the settings can live in a
    shared project configuration file.
    """
    if source is None or isinstance(source, Mapping):
        return _parse_settings_payload(source)

    path = Path(source).expanduser()
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Unable to read cascade settings from '{path}'.") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed YAML in '{path}'.") from exc
    return _parse_settings_payload(raw)


def settings_from_env(environ: Mapping[str, str] | None = None) -> CascadeSettings:
    """Return settings from the file named by ``FONTCASCADE_CONFIG`` or defaults."""
    env = os.environ if environ is None else environ
    location = env.get(CONFIG_ENV_VAR)
    if not location:
        return CascadeSettings()
    return load_settings(location)


__all__ = [
    "CONFIG_ENV_VAR",
    "CascadeSettings",
    "FontScalesConfig",
    "load_settings",
    "settings_from_env",
]
