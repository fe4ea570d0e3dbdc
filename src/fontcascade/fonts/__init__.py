"""Per-language font cascade façade.

Architecture
: A `Style` is an immutable bundle of fonts, global typographic defaults, and
  two override maps keyed by language: primary stand-ins and nested fallback
  mappings. `StyleStore` holds every style and swaps in whole new values.
: Reducers in `forking` and `library` compute the next style. Language-scoped
  edits fork a clone the first time a language needs its own copy of a font,
  and later edits land on that clone in place.
: `sharing` answers which font a language uses in place of another, and
  `resolver` folds a font's settings over its parent and the style defaults.
: `stack` orders the fallback fonts a language sees after its primary font,
  ending with the system sentinel.
: `persistence` exports snapshots, validates imported ones, and rehydrates
  glyph coverage through the fontTools-backed `loader`.

Goal
: Let each language specialise fonts and metrics without ever leaking an edit
  into another language's view.
"""

from fontcascade.fonts.forking import (
    add_language_specific_fallback_font,
    add_language_specific_primary_font,
    assign_font_to_languages,
    map_language_to_font,
    split_font,
    unmap_font,
    unmap_language,
    update_scoped_setting,
)
from fontcascade.fonts.library import (
    add_fallback_font,
    create_style,
    remove_fallback_font,
    reorder_fonts,
    swap_primary_font,
)
from fontcascade.fonts.loader import CmapGlyphProvider, LoadedFont, load_font_resource
from fontcascade.fonts.logging import FontPipelineLogger
from fontcascade.fonts.models import (
    SYSTEM_FONT_ID,
    CloneOrigin,
    Font,
    FontMetadata,
    FontRole,
    FontScales,
    FontScope,
    FontSettings,
    FontStatus,
    RootOrigin,
    Style,
    SystemFallbackOverride,
)
from fontcascade.fonts.persistence import (
    deserialize_store,
    deserialize_style,
    rehydrate,
    serialize_store,
    serialize_style,
    validate_style,
)
from fontcascade.fonts.resolver import EffectiveSettings, effective_settings
from fontcascade.fonts.sharing import MappingKind, MappingState, mapping_state, resolve_mapping
from fontcascade.fonts.stack import CoverageReport, StackEntry, build_stack, coverage_report
from fontcascade.fonts.store import StyleStore


__all__ = [
    "SYSTEM_FONT_ID",
    "CloneOrigin",
    "CmapGlyphProvider",
    "CoverageReport",
    "EffectiveSettings",
    "Font",
    "FontMetadata",
    "FontPipelineLogger",
    "FontRole",
    "FontScales",
    "FontScope",
    "FontSettings",
    "FontStatus",
    "LoadedFont",
    "MappingKind",
    "MappingState",
    "RootOrigin",
    "StackEntry",
    "Style",
    "StyleStore",
    "SystemFallbackOverride",
    "add_fallback_font",
    "add_language_specific_fallback_font",
    "add_language_specific_primary_font",
    "assign_font_to_languages",
    "build_stack",
    "coverage_report",
    "create_style",
    "deserialize_store",
    "deserialize_style",
    "effective_settings",
    "load_font_resource",
    "map_language_to_font",
    "mapping_state",
    "rehydrate",
    "remove_fallback_font",
    "reorder_fonts",
    "resolve_mapping",
    "serialize_store",
    "serialize_style",
    "split_font",
    "swap_primary_font",
    "unmap_font",
    "unmap_language",
    "update_scoped_setting",
    "validate_style",
]
