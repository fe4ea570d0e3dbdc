"""Shared helpers for font handling."""

from __future__ import annotations

from collections.abc import Iterable
import uuid

from slugify import slugify

from fontcascade.fonts.models import SETTING_FIELDS


PROPERTY_ALIASES: dict[str, str] = {
    "weight": "weight_override",
    "weightOverride": "weight_override",
    "lineHeight": "line_height",
    "letterSpacing": "letter_spacing",
    "fontSizeAdjust": "font_size_adjust",
    "sizeAdjust": "font_size_adjust",
    "ascentOverride": "ascent_override",
    "descentOverride": "descent_override",
    "lineGapOverride": "line_gap_override",
}


def normalize_family(name: str | None) -> str:
    """Return a normalised font family key suitable for lookups.

    File extensions are dropped so ``Inter-Regular.ttf`` and ``Inter Regular``
    collapse onto the same key.
    """
    if not name:
        return ""
    stem = name.strip()
    lowered = stem.casefold()
    for extension in (".ttf", ".otf", ".woff2", ".woff", ".ttc"):
        if lowered.endswith(extension):
            stem = stem[: -len(extension)]
            break
    return "".join(ch for ch in stem.casefold() if ch not in {" ", "-", "_"})


def normalize_property(name: str) -> str:
    """Map a property name or one of its aliases onto a settings field."""
    resolved = PROPERTY_ALIASES.get(name, name)
    if resolved not in SETTING_FIELDS:
        raise ValueError(f"Unknown font setting '{name}'.")
    return resolved


def new_font_id(language: str | None = None, *, prefix: str = "font") -> str:
    """Return a fresh opaque font identifier, tagged with the language slug."""
    token = uuid.uuid4().hex[:8]
    if language:
        return f"lang-{slugify(language, separator='-')}-{token}"
    return f"{prefix}-{token}"


def dedupe_preserve_order(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def merge_ranges(codepoints: Iterable[int]) -> tuple[tuple[int, int], ...]:
    """Collapse codepoints into sorted, contiguous ``(start, end)`` ranges."""
    merged: list[list[int]] = []
    for codepoint in sorted(set(codepoints)):
        if not merged or codepoint > merged[-1][1] + 1:
            merged.append([codepoint, codepoint])
        else:
            merged[-1][1] = codepoint
    return tuple((start, end) for start, end in merged)


def format_range(start: int, end: int) -> str:
    if start == end:
        return f"U+{start:04X}"
    return f"U+{start:04X}-U+{end:04X}"


__all__ = [
    "PROPERTY_ALIASES",
    "dedupe_preserve_order",
    "format_range",
    "merge_ranges",
    "new_font_id",
    "normalize_family",
    "normalize_property",
]
