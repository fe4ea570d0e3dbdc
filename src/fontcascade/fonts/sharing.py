"""Identity and sharing analysis over a style's override maps.

Answers three questions the fork manager and the cleanup rules depend on:
which font a language currently uses in place of another, whether that
mapping is also used by some other language, and which independently
sourced font a clone ultimately descends from.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum

from fontcascade.fonts.models import SYSTEM_FONT_ID, Font, FontScope, Style
from fontcascade.fonts.utils import normalize_family


class MappingKind(str, Enum):
    """How a language relates to one of the style's fonts."""

    UNMAPPED = "unmapped"
    SOFT_LINKED = "soft_linked"
    FORKED = "forked"
    REMAPPED = "remapped"


@dataclass(frozen=True, slots=True)
class MappingState:
    """Explicit mapping tag for a ``(language, original font)`` pair."""

    kind: MappingKind
    font_id: str | None = None

    @property
    def needs_fork(self) -> bool:
        return self.kind in {MappingKind.UNMAPPED, MappingKind.SOFT_LINKED}


UNMAPPED = MappingState(MappingKind.UNMAPPED)


def iter_override_targets(
    style: Style, *, exclude_language: str | None = None
) -> Iterator[tuple[str, str]]:
    """Yield ``(language, font_id)`` for every override value in the style."""
    for language, font_id in style.primary_font_overrides.items():
        if language != exclude_language:
            yield language, font_id
    for language, entry in style.fallback_font_overrides.items():
        if language == exclude_language:
            continue
        if isinstance(entry, str):
            if entry != SYSTEM_FONT_ID:
                yield language, entry
        else:
            for font_id in entry.values():
                yield language, font_id


def referenced_font_ids(style: Style, *, exclude_language: str | None = None) -> set[str]:
    targets = iter_override_targets(style, exclude_language=exclude_language)
    return {font_id for _, font_id in targets}


def languages_using(style: Style, font_id: str) -> list[str]:
    """Return the languages whose overrides point at ``font_id``, in map order."""
    languages: list[str] = []
    for language, target in iter_override_targets(style):
        if target == font_id and language not in languages:
            languages.append(language)
    return languages


def is_shared(style: Style, font_id: str, language: str) -> bool:
    """True when a language other than ``language`` maps to ``font_id``."""
    return font_id in referenced_font_ids(style, exclude_language=language)


def uses_primary_map(style: Style, original_id: str) -> bool:
    font = style.font(original_id)
    return font is not None and font.is_primary_like


def _raw_mapping(style: Style, language: str, original_id: str) -> str | None:
    if uses_primary_map(style, original_id):
        return style.primary_font_overrides.get(language)
    entry = style.fallback_font_overrides.get(language)
    if entry is None:
        return None
    if isinstance(entry, str):
        # Legacy flat form: one font stands in for the whole fallback chain.
        return None if entry == SYSTEM_FONT_ID else entry
    if not isinstance(entry, Mapping):
        return None
    return entry.get(original_id)


def resolve_mapping(style: Style, language: str, original_id: str) -> str:
    """Return the font ``language`` uses in place of ``original_id``."""
    target = _raw_mapping(style, language, original_id)
    if target is None or not style.has_font(target):
        return original_id
    return target


def mapping_state(style: Style, language: str, original_id: str) -> MappingState:
    """Classify the mapping of ``original_id`` for ``language``.

    A self-referencing entry is a soft link, except when the font is an
    independent upload made for that language: then it is a hard mapping.
    Dangling targets count as unmapped.
    """
    target = _raw_mapping(style, language, original_id)
    font = style.font(target)
    if target is None or font is None:
        return UNMAPPED
    if target == original_id:
        if not font.is_clone and font.scope is FontScope.LANGUAGE_SPECIFIC:
            return MappingState(MappingKind.REMAPPED, target)
        return MappingState(MappingKind.SOFT_LINKED, target)
    if font.is_clone:
        return MappingState(MappingKind.FORKED, target)
    return MappingState(MappingKind.REMAPPED, target)


def is_root_mapped(style: Style, font_id: str) -> bool:
    """True when a language uses the independently sourced ``font_id`` directly."""
    font = style.font(font_id)
    if font is None or font.is_clone:
        return False
    return font_id in referenced_font_ids(style)


def is_language_mapped(style: Style, language: str) -> bool:
    return language in style.primary_font_overrides or language in style.fallback_font_overrides


def _legacy_ancestor(style: Style, font: Font) -> Font | None:
    # Clones saved before parent links existed: match by file/name signature.
    key = normalize_family(font.signature)
    if not key:
        return None
    candidates = [
        candidate
        for candidate in style.fonts
        if not candidate.is_clone and normalize_family(candidate.signature) == key
    ]
    for candidate in candidates:
        if candidate.is_global_primary:
            return candidate
    return candidates[0] if candidates else None


def parent_font(style: Style, font: Font) -> Font | None:
    """Return the font ``font`` inherits from, one hop up."""
    if not font.is_clone:
        return None
    if font.parent_id is not None:
        parent = style.font(font.parent_id)
        if parent is not None and parent.id != font.id:
            return parent
    return _legacy_ancestor(style, font)


def ultimate_ancestor(style: Style, font_id: str) -> Font | None:
    """Follow parent links to the independently sourced font."""
    current = style.font(font_id)
    visited: set[str] = set()
    while current is not None and current.is_clone and current.id not in visited:
        visited.add(current.id)
        parent = parent_font(style, current)
        if parent is None:
            break
        current = parent
    return current


def shares_primary_identity(style: Style, font: Font) -> bool:
    primary = style.primary_font
    if primary is None:
        return False
    key = normalize_family(font.signature)
    return bool(key) and key == normalize_family(primary.signature)


__all__ = [
    "UNMAPPED",
    "MappingKind",
    "MappingState",
    "is_language_mapped",
    "is_root_mapped",
    "is_shared",
    "iter_override_targets",
    "languages_using",
    "mapping_state",
    "parent_font",
    "referenced_font_ids",
    "resolve_mapping",
    "shares_primary_identity",
    "ultimate_ancestor",
    "uses_primary_map",
]
