"""Copy-on-write forking of fonts for language-scoped edits.

Every function here is a reducer: it takes a :class:`Style` and returns the
next one, leaving the input untouched. Edits made for one language never leak
into another language's view: when the font a language sees is inherited,
soft-linked, or shared, a language-specific clone is created and the
language's override entry is redirected to it. Only a font already owned by
that single language is edited in place.

Removing mappings goes through a single release rule: a font that nothing
references anymore is deleted when it is a derived clone, promoted to a
global fallback when it was sourced independently, and left alone otherwise.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
import logging
from typing import Any

from fontcascade.core.diagnostics import DiagnosticEmitter, NullEmitter
from fontcascade.fonts.models import (
    ROOT,
    SYSTEM_FONT_ID,
    CloneOrigin,
    Font,
    FontRole,
    FontScope,
    FontSettings,
    Style,
)
from fontcascade.fonts.sharing import (
    MappingKind,
    MappingState,
    is_shared,
    mapping_state,
    parent_font,
    referenced_font_ids,
    shares_primary_identity,
    ultimate_ancestor,
    uses_primary_map,
)
from fontcascade.fonts.utils import dedupe_preserve_order, new_font_id, normalize_property


logger = logging.getLogger(__name__)


def _emitter(emitter: DiagnosticEmitter | None) -> DiagnosticEmitter:
    return emitter if emitter is not None else NullEmitter()


def with_configured_language(style: Style, language: str) -> Style:
    if language in style.configured_languages:
        return style
    return replace(style, configured_languages=(*style.configured_languages, language))


def _mapping_key(style: Style, language: str, font_id: str) -> tuple[bool, str] | None:
    """Locate the entry through which ``language`` reaches ``font_id``.

    Returns ``(uses_primary_map, original_id)`` or ``None`` when the language
    does not reference the font.
    """
    if style.primary_font_overrides.get(language) == font_id:
        primary = style.primary_font
        return True, primary.id if primary is not None else font_id
    entry = style.fallback_font_overrides.get(language)
    if isinstance(entry, str) and entry == font_id:
        return False, font_id
    if isinstance(entry, Mapping):
        for original_id, target in entry.items():
            if target == font_id:
                return False, original_id
    return None


def _redirect(
    style: Style, language: str, original_id: str, new_id: str, *, primary: bool
) -> Style:
    if primary:
        overrides = dict(style.primary_font_overrides)
        overrides[language] = new_id
        return replace(style, primary_font_overrides=overrides)

    fallback = dict(style.fallback_font_overrides)
    entry = fallback.get(language)
    if isinstance(entry, Mapping):
        nested = dict(entry)
    elif isinstance(entry, str) and entry != SYSTEM_FONT_ID:
        # Legacy flat form becomes an explicit self-link before adding the redirect.
        nested = {entry: entry}
    else:
        nested = {}
    nested[original_id] = new_id
    fallback[language] = nested
    return replace(style, fallback_font_overrides=fallback)


def _drop_references(style: Style, font_id: str) -> Style:
    primary = {
        language: target
        for language, target in style.primary_font_overrides.items()
        if target != font_id
    }
    fallback: dict[str, Any] = {}
    for language, entry in style.fallback_font_overrides.items():
        if isinstance(entry, str):
            if entry != font_id:
                fallback[language] = entry
            continue
        nested = {original: target for original, target in entry.items() if target != font_id}
        if nested or not entry:
            fallback[language] = nested
    return replace(style, primary_font_overrides=primary, fallback_font_overrides=fallback)


def drop_language_entries(
    style: Style, language: str, *, primary: bool = True, fallback: bool = True
) -> Style:
    next_primary = dict(style.primary_font_overrides)
    next_fallback = dict(style.fallback_font_overrides)
    if primary:
        next_primary.pop(language, None)
    if fallback:
        next_fallback.pop(language, None)
    return replace(
        style, primary_font_overrides=next_primary, fallback_font_overrides=next_fallback
    )


def _is_derived(style: Style, font: Font) -> bool:
    if not font.is_clone:
        return False
    if shares_primary_identity(style, font):
        return True
    return parent_font(style, font) is not None


def release_font(
    style: Style, font_id: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Delete or promote ``font_id`` once no override entry references it."""
    font = style.font(font_id)
    if font is None or font.is_global_primary:
        return style
    if font_id in referenced_font_ids(style):
        return style

    diagnostics = _emitter(emitter)
    if _is_derived(style, font):
        logger.debug("Deleting orphaned clone %s", font_id)
        diagnostics.event("font_deleted", {"font_id": font_id})
        return style.without_fonts([font_id])
    if font.is_clone or font.scope is FontScope.LANGUAGE_SPECIFIC:
        logger.debug("Promoting %s to a global fallback", font_id)
        diagnostics.event("font_promoted", {"font_id": font_id})
        promoted = replace(
            font,
            origin=ROOT,
            scope=FontScope.GLOBAL,
            role=FontRole.FALLBACK,
            is_primary_override=False,
        )
        return style.with_font(promoted)
    return style


def _release_language(
    style: Style,
    language: str,
    *,
    keep: Iterable[str] = (),
    primary: bool = True,
    fallback: bool = True,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    previous: list[str] = []
    if primary and language in style.primary_font_overrides:
        previous.append(style.primary_font_overrides[language])
    if fallback:
        entry = style.fallback_font_overrides.get(language)
        if isinstance(entry, str):
            previous.append(entry)
        elif isinstance(entry, Mapping):
            previous.extend(entry.values())
    style = drop_language_entries(style, language, primary=primary, fallback=fallback)
    kept = set(keep)
    for font_id in dedupe_preserve_order(previous):
        if font_id in kept or font_id == SYSTEM_FONT_ID:
            continue
        style = release_font(style, font_id, emitter=emitter)
    return style


def _fork(
    style: Style,
    original_id: str,
    language: str,
    updates: Mapping[str, Any],
    *,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    original = style.font(original_id)
    if original is None:
        logger.warning("Cannot edit unknown font '%s' for '%s'", original_id, language)
        _emitter(emitter).warning(f"Font '{original_id}' does not exist in style '{style.id}'.")
        return style

    if original.is_clone:
        # Editing a specialisation directly: never re-clone through its parent.
        state = MappingState(MappingKind.FORKED, original_id)
        located = _mapping_key(style, language, original_id)
        if located is None:
            ancestor = ultimate_ancestor(style, original_id) or original
            key_primary, key = original.is_primary_override, ancestor.id
        else:
            key_primary, key = located
    else:
        state = mapping_state(style, language, original_id)
        key_primary, key = uses_primary_map(style, original_id), original_id

    target_id = state.font_id or original_id
    target = style.font(target_id) or original
    shared = is_shared(style, target_id, language)

    if not (state.needs_fork or shared):
        logger.debug("Editing %s in place for %s: %s", target_id, language, dict(updates))
        settings = target.settings
        for name, value in updates.items():
            settings = settings.with_value(name, value)
        return style.with_font(replace(target, settings=settings))

    if shared and not state.needs_fork:
        _emitter(emitter).event(
            "shared_mapping_conflict",
            {"language": language, "font_id": target_id, "original_id": original_id},
        )

    ancestor = ultimate_ancestor(style, target_id) or original
    settings = target.settings if target.is_clone else FontSettings()
    for name, value in updates.items():
        settings = settings.with_value(name, value)

    clone = Font(
        id=new_font_id(language),
        origin=CloneOrigin(parent_id=ancestor.id),
        role=FontRole.FALLBACK,
        scope=FontScope.LANGUAGE_SPECIFIC,
        is_primary_override=key_primary or target.is_primary_like,
        file_name=target.file_name,
        name=target.name,
        settings=settings,
        metadata=target.metadata,
        glyph_provider=target.glyph_provider,
        status=target.status,
    )
    logger.debug("Forked %s into %s for %s", target_id, clone.id, language)
    style = replace(style, fonts=(*style.fonts, clone))
    style = _redirect(style, language, key, clone.id, primary=key_primary)
    return with_configured_language(style, language)


def update_scoped_setting(
    style: Style,
    original_id: str,
    language: str,
    prop: str,
    value: Any,
    *,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    """Set ``prop`` on the font ``language`` uses in place of ``original_id``.

    Forks when the language has no specialisation yet, is only soft-linked, or
    shares its specialisation with another language.
    """
    name = normalize_property(prop)
    return _fork(style, original_id, language, {name: value}, emitter=emitter)


def split_font(
    style: Style,
    original_id: str,
    language: str,
    *,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    """Give ``language`` its own specialisation of ``original_id`` without editing it."""
    font = style.font(original_id)
    if font is not None and not font.is_clone:
        state = mapping_state(style, language, original_id)
        if state.kind is MappingKind.FORKED and not is_shared(
            style, state.font_id or original_id, language
        ):
            return style
    return _fork(style, original_id, language, {}, emitter=emitter)


def unmap_font(
    style: Style, font_id: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Remove every override entry targeting ``font_id``, then release the font."""
    style = _drop_references(style, font_id)
    return release_font(style, font_id, emitter=emitter)


def map_language_to_font(
    style: Style,
    language: str,
    font_id: str,
    *,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    """Point ``language`` at ``font_id``, replacing whatever it used before.

    ``font_id`` may be :data:`SYSTEM_FONT_ID` to restrict the language to the
    system fallback.
    """
    if font_id == SYSTEM_FONT_ID:
        style = _release_language(style, language, primary=False, emitter=emitter)
        fallback = dict(style.fallback_font_overrides)
        fallback[language] = SYSTEM_FONT_ID
        style = replace(style, fallback_font_overrides=fallback)
        return with_configured_language(style, language)

    target = style.font(font_id)
    if target is None:
        logger.warning("Target font not found: %s", font_id)
        _emitter(emitter).warning(f"Cannot map '{language}' to missing font '{font_id}'.")
        return style

    primary_like = target.is_primary_like
    style = _release_language(
        style,
        language,
        keep=[font_id],
        primary=primary_like,
        fallback=not primary_like,
        emitter=emitter,
    )
    if primary_like:
        if not target.is_global_primary:
            primary = dict(style.primary_font_overrides)
            primary[language] = font_id
            style = replace(style, primary_font_overrides=primary)
    else:
        fallback = dict(style.fallback_font_overrides)
        fallback[language] = {font_id: font_id}
        style = replace(style, fallback_font_overrides=fallback)
    return with_configured_language(style, language)


def assign_font_to_languages(
    style: Style,
    font_id: str,
    languages: Iterable[str],
    *,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    """Map several languages onto the same font; later edits fork per language."""
    if style.font(font_id) is None and font_id != SYSTEM_FONT_ID:
        logger.warning("Target font not found: %s", font_id)
        return style
    for language in dedupe_preserve_order(languages):
        style = map_language_to_font(style, language, font_id, emitter=emitter)
    return style


def unmap_language(
    style: Style, language: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Clear every mapping of ``language`` and release the fonts it used."""
    style = _release_language(style, language, emitter=emitter)
    if language not in style.primary_languages:
        style = replace(
            style,
            configured_languages=tuple(
                item for item in style.configured_languages if item != language
            ),
        )
    return style


def clear_primary_override(
    style: Style, language: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    return _release_language(style, language, fallback=False, emitter=emitter)


def clear_fallback_override(
    style: Style, language: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    return _release_language(style, language, primary=False, emitter=emitter)


def add_language_specific_primary_font(
    style: Style,
    language: str,
    *,
    source_id: str | None = None,
    only_if_missing: bool = False,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    """Create a primary stand-in for ``language``, cloned from ``source_id``."""
    existing = style.primary_font_overrides.get(language)
    if only_if_missing and style.has_font(existing):
        return with_configured_language(style, language)

    source = style.font(source_id) if source_id is not None else style.primary_font
    if source is None:
        logger.warning("No font to clone for the %s primary override", language)
        _emitter(emitter).warning(f"No source font available for '{language}'.")
        return style

    ancestor = ultimate_ancestor(style, source.id) or source
    clone = Font(
        id=new_font_id(language),
        origin=CloneOrigin(parent_id=ancestor.id),
        role=FontRole.FALLBACK,
        scope=FontScope.LANGUAGE_SPECIFIC,
        is_primary_override=True,
        file_name=source.file_name,
        name=source.name,
        settings=source.settings if source.is_clone else FontSettings(),
        metadata=source.metadata,
        glyph_provider=source.glyph_provider,
        status=source.status,
    )
    style = _release_language(style, language, fallback=False, emitter=emitter)
    style = replace(style, fonts=(*style.fonts, clone))
    style = _redirect(style, language, ancestor.id, clone.id, primary=True)
    return with_configured_language(style, language)


def add_language_specific_fallback_font(
    style: Style,
    language: str,
    font: Font,
    *,
    emitter: DiagnosticEmitter | None = None,
) -> Style:
    """Insert an upload made for ``language`` only and map it directly."""
    if style.has_font(font.id):
        _emitter(emitter).warning(f"Font id '{font.id}' already exists in '{style.id}'.")
        return style
    record = replace(
        font,
        origin=ROOT,
        role=FontRole.FALLBACK,
        scope=FontScope.LANGUAGE_SPECIFIC,
        is_primary_override=False,
    )
    style = replace(style, fonts=(*style.fonts, record))
    style = _redirect(style, language, record.id, record.id, primary=False)
    return with_configured_language(style, language)


__all__ = [
    "add_language_specific_fallback_font",
    "add_language_specific_primary_font",
    "assign_font_to_languages",
    "clear_fallback_override",
    "clear_primary_override",
    "drop_language_entries",
    "map_language_to_font",
    "release_font",
    "split_font",
    "unmap_font",
    "unmap_language",
    "update_scoped_setting",
    "with_configured_language",
]
