"""Per-language font cascades: forking, resolution, and fallback stacks."""

from __future__ import annotations

from fontcascade.core import (
    CascadeSettings,
    DiagnosticEmitter,
    FontCascadeError,
    FontLoadError,
    SnapshotFormatError,
    load_settings,
)
from fontcascade.fonts import (
    SYSTEM_FONT_ID,
    EffectiveSettings,
    Font,
    FontRole,
    FontScope,
    StackEntry,
    Style,
    StyleStore,
    build_stack,
    effective_settings,
)
from fontcascade.version import get_version


__version__ = get_version()

__all__ = [
    "SYSTEM_FONT_ID",
    "CascadeSettings",
    "DiagnosticEmitter",
    "EffectiveSettings",
    "Font",
    "FontCascadeError",
    "FontLoadError",
    "FontRole",
    "FontScope",
    "SnapshotFormatError",
    "StackEntry",
    "Style",
    "StyleStore",
    "__version__",
    "build_stack",
    "effective_settings",
    "get_version",
    "load_settings",
]
