"""Shared plumbing for the cascade engine: diagnostics, errors, and settings."""

from fontcascade.core.config import CascadeSettings, load_settings, settings_from_env
from fontcascade.core.diagnostics import (
    DiagnosticEmitter,
    LoggingEmitter,
    NullEmitter,
    RecordingEmitter,
)
from fontcascade.core.exceptions import (
    ConfigurationError,
    FontCascadeError,
    FontLoadError,
    SnapshotFormatError,
)


__all__ = [
    "CascadeSettings",
    "ConfigurationError",
    "DiagnosticEmitter",
    "FontCascadeError",
    "FontLoadError",
    "LoggingEmitter",
    "NullEmitter",
    "RecordingEmitter",
    "SnapshotFormatError",
    "load_settings",
    "settings_from_env",
]
