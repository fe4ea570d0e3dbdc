"""Fallback stack assembly and glyph-coverage walks."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fontcascade.fonts.models import (
    SYSTEM_FONT_ID,
    Font,
    FontRole,
    FontScope,
    GlyphProvider,
    Style,
)
from fontcascade.fonts.resolver import EffectiveSettings, effective_settings, is_hidden
from fontcascade.fonts.utils import format_range, merge_ranges, normalize_family


@dataclass(frozen=True, slots=True)
class StackEntry:
    """One font tried, in order, after the primary font."""

    font_id: str
    family_alias: str
    glyph_provider: GlyphProvider | None
    settings: EffectiveSettings

    @property
    def is_system(self) -> bool:
        return self.font_id == SYSTEM_FONT_ID

    def covers(self, char: str) -> bool:
        """Fonts without glyph data are trusted to cover everything."""
        if self.glyph_provider is None:
            return True
        return self.glyph_provider.has_glyph(char)


@dataclass(slots=True)
class CoverageReport:
    """Which stack entry renders each character of a sample text."""

    language: str
    assignments: dict[str, list[int]] = field(default_factory=dict)
    uncovered: list[int] = field(default_factory=list)

    def summary(self) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for font_id, codepoints in self.assignments.items():
            ranges = merge_ranges(codepoints)
            rows.append(
                {
                    "font_id": font_id,
                    "count": len(set(codepoints)),
                    "ranges": [format_range(start, end) for start, end in ranges],
                }
            )
        return rows


def claimed_font_ids(style: Style) -> set[str]:
    """Fonts referenced by any override map, as source or as target."""
    claimed: set[str] = set(style.primary_font_overrides.values())
    for entry in style.fallback_font_overrides.values():
        if isinstance(entry, str):
            claimed.add(entry)
        elif isinstance(entry, Mapping):
            claimed.update(entry.keys())
            claimed.update(entry.values())
    claimed.discard(SYSTEM_FONT_ID)
    return claimed


def general_fallback_fonts(style: Style) -> list[Font]:
    """Global fallbacks every language gets unless it overrides them."""
    primary = style.primary_font
    primary_key = normalize_family(primary.signature) if primary is not None else ""
    claimed = claimed_font_ids(style)
    general: list[Font] = []
    for font in style.fonts:
        if font.role is not FontRole.FALLBACK or font.is_primary_override:
            continue
        if is_hidden(style, font) or font.is_clone or font.scope is not FontScope.GLOBAL:
            continue
        if primary is not None and font.id == primary.id:
            continue
        if primary_key and normalize_family(font.signature) == primary_key:
            continue
        if font.id in claimed:
            continue
        general.append(font)
    return general


def family_alias(style: Style, font: Font) -> str:
    if font.is_system and font.name:
        return font.name
    return f"FallbackFont-{style.id}-{font.id}"


def _entry(style: Style, font: Font) -> StackEntry | None:
    settings = effective_settings(style, font.id)
    if settings is None:
        return None
    return StackEntry(
        font_id=font.id,
        family_alias=family_alias(style, font),
        glyph_provider=font.glyph_provider,
        settings=settings,
    )


def system_entry(style: Style, language: str) -> StackEntry:
    """Sentinel entry standing for whatever the platform falls back to."""
    override = style.system_fallback_overrides.get(language)
    family = style.fallback_family
    if override is not None:
        if override.family:
            family = override.family
        elif override.adjusts_metrics:
            family = f"SystemFallback-{style.id}-{language}"

    values: dict[str, Any] = {
        "scale": style.font_scales.fallback,
        "line_height": style.fallback_line_height,
        "letter_spacing": (
            style.fallback_letter_spacing if style.fallback_letter_spacing is not None else 0
        ),
    }
    if override is not None:
        explicit = override.explicit()
        explicit.pop("family", None)
        values.update(explicit)
    settings = EffectiveSettings(
        font_id=SYSTEM_FONT_ID,
        base_font_size=style.base_font_size,
        weight=style.weight,
        font_scales=style.font_scales,
        **values,
    )
    return StackEntry(
        font_id=SYSTEM_FONT_ID, family_alias=family, glyph_provider=None, settings=settings
    )


def _mapped_ids(style: Style, language: str) -> list[str] | None:
    entry = style.fallback_font_overrides.get(language)
    if entry is None:
        return None
    if isinstance(entry, str):
        return [entry]
    return list(entry.values())


def build_stack(style: Style, language: str) -> list[StackEntry]:
    """Ordered fallback entries for ``language``, ending with the system sentinel.

    Fonts mapped for the language come first, then the general fallbacks not
    claimed by any override, then the sentinel unless its family is already
    present.
    """
    sentinel = system_entry(style, language)
    mapped = _mapped_ids(style, language)
    if mapped == [SYSTEM_FONT_ID]:
        return [sentinel]

    stack: list[StackEntry] = []
    included: set[str] = set()
    if mapped:
        for font_id in mapped:
            font = style.font(font_id)
            if font is None or is_hidden(style, font) or font_id in included:
                continue
            entry = _entry(style, font)
            if entry is not None:
                stack.append(entry)
                included.add(font_id)

    for font in general_fallback_fonts(style):
        if font.id in included:
            continue
        entry = _entry(style, font)
        if entry is not None:
            stack.append(entry)
            included.add(font.id)

    families = {entry.family_alias for entry in stack}
    if sentinel.family_alias not in families and style.fallback_family not in families:
        stack.append(sentinel)
    return stack


def _renders(font: Font, char: str) -> bool:
    return font.glyph_provider is None or font.glyph_provider.has_glyph(char)


def primary_for_language(style: Style, language: str) -> Font | None:
    """Font standing in for the primary when rendering ``language``."""
    override = style.font(style.primary_font_overrides.get(language))
    if override is not None:
        return override
    return style.primary_font


def font_for_char(style: Style, language: str, char: str) -> str | None:
    """Return the id of the first font that renders ``char`` for ``language``."""
    primary = primary_for_language(style, language)
    if primary is not None and _renders(primary, char):
        return primary.id
    for entry in build_stack(style, language):
        if entry.covers(char):
            return entry.font_id
    return None


def coverage_report(style: Style, language: str, text: Iterable[str]) -> CoverageReport:
    """Walk ``text`` through the cascade and group characters by font."""
    report = CoverageReport(language=language)
    primary = primary_for_language(style, language)
    stack = build_stack(style, language)
    for char in text:
        if char.isspace():
            continue
        chosen: str | None = None
        if primary is not None and _renders(primary, char):
            chosen = primary.id
        else:
            for entry in stack:
                if entry.covers(char):
                    chosen = entry.font_id
                    break
        if chosen is None:
            report.uncovered.append(ord(char))
        else:
            report.assignments.setdefault(chosen, []).append(ord(char))
    return report


__all__ = [
    "CoverageReport",
    "StackEntry",
    "build_stack",
    "claimed_font_ids",
    "coverage_report",
    "family_alias",
    "font_for_char",
    "general_fallback_fonts",
    "primary_for_language",
    "system_entry",
]
