"""Global font list management: primary font, fallbacks, defaults, and languages."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import fields, replace
import logging
from typing import Any

from fontcascade.core.config import CascadeSettings
from fontcascade.core.diagnostics import DiagnosticEmitter, NullEmitter
from fontcascade.fonts.forking import (
    drop_language_entries,
    release_font,
    with_configured_language,
)
from fontcascade.fonts.models import (
    ROLE_SCOPED_FIELDS,
    ROOT,
    CloneOrigin,
    Font,
    FontMetadata,
    FontRole,
    FontScales,
    FontScope,
    FontStatus,
    GlyphProvider,
    Style,
    SystemFallbackOverride,
)
from fontcascade.fonts.resolver import is_hidden
from fontcascade.fonts.sharing import iter_override_targets
from fontcascade.fonts.utils import (
    PROPERTY_ALIASES,
    dedupe_preserve_order,
    normalize_family,
    normalize_property,
)


logger = logging.getLogger(__name__)

PRIMARY_FONT_ID = "primary"

STYLE_DEFAULT_FIELDS = frozenset(
    {
        "base_font_size",
        "weight",
        "line_height",
        "letter_spacing",
        "fallback_line_height",
        "fallback_letter_spacing",
        "fallback_family",
        "missing_color",
        "missing_bg_color",
    }
)

SYSTEM_OVERRIDE_FIELDS = frozenset(item.name for item in fields(SystemFallbackOverride))


def create_style(style_id: str, settings: CascadeSettings | None = None) -> Style:
    """Return an empty style holding a placeholder global primary font."""
    config = settings or CascadeSettings()
    primary = Font(id=PRIMARY_FONT_ID, role=FontRole.PRIMARY, name=config.primary_font_name)
    return Style(
        id=style_id,
        fonts=(primary,),
        base_font_size=config.base_font_size,
        weight=config.weight,
        line_height=config.line_height,
        letter_spacing=config.letter_spacing,
        fallback_line_height=config.fallback_line_height,
        fallback_letter_spacing=config.fallback_letter_spacing,
        font_scales=FontScales(
            active=config.font_scales.active, fallback=config.font_scales.fallback
        ),
        fallback_family=config.fallback_family,
        missing_color=config.missing_color,
        missing_bg_color=config.missing_bg_color,
    )


def _emitter(emitter: DiagnosticEmitter | None) -> DiagnosticEmitter:
    return emitter if emitter is not None else NullEmitter()


def load_primary_font(
    style: Style,
    *,
    file_name: str | None,
    name: str | None = None,
    metadata: FontMetadata | None = None,
    glyph_provider: GlyphProvider | None = None,
    status: FontStatus = FontStatus.READY,
) -> Style:
    """Attach a new resource to the global primary font, keeping its id and color."""
    current = style.primary_font
    if current is None:
        record = Font(
            id=PRIMARY_FONT_ID,
            role=FontRole.PRIMARY,
            file_name=file_name,
            name=name or file_name,
            metadata=metadata or FontMetadata(),
            glyph_provider=glyph_provider,
            status=status,
        )
        return replace(style, fonts=(record, *style.fonts))

    record = replace(
        current,
        file_name=file_name,
        name=name or file_name,
        metadata=metadata or FontMetadata(),
        glyph_provider=glyph_provider,
        status=status,
    )
    logger.debug("Loaded primary font %s into %s", record.signature, style.id)
    return style.with_font(record)


def find_identity_collision(style: Style, font: Font) -> Font | None:
    """Return the existing root font sharing ``font``'s signature, if any."""
    key = normalize_family(font.signature)
    for existing in style.fonts:
        if existing.id == font.id:
            return existing
        if existing.is_clone or not key:
            continue
        if normalize_family(existing.signature) == key:
            return existing
    return None


def add_fallback_font(
    style: Style, font: Font, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Add a global fallback; duplicates of an existing font are skipped."""
    collision = find_identity_collision(style, font)
    if collision is not None:
        message = f"Duplicate font '{font.signature or font.id}' not added to '{style.id}'."
        logger.warning(message)
        diagnostics = _emitter(emitter)
        diagnostics.warning(message)
        diagnostics.event(
            "identity_collision",
            {"signature": font.signature or font.id, "existing": collision.id},
        )
        return style

    record = replace(
        font,
        origin=ROOT,
        role=FontRole.FALLBACK,
        scope=FontScope.GLOBAL,
        is_primary_override=False,
    )
    fonts = list(style.fonts)
    if not record.is_system:
        # Uploaded fonts go before the first system-name fallback.
        for index, existing in enumerate(fonts):
            if existing.role is FontRole.FALLBACK and not existing.is_clone and existing.is_system:
                fonts.insert(index, record)
                break
        else:
            fonts.append(record)
    else:
        fonts.append(record)
    return replace(style, fonts=tuple(fonts))


def add_fallback_fonts(
    style: Style, fonts: Iterable[Font], *, emitter: DiagnosticEmitter | None = None
) -> Style:
    for font in fonts:
        style = add_fallback_font(style, font, emitter=emitter)
    return style


def _related(target: Font, candidate: Font) -> bool:
    if candidate.id == target.id:
        return True
    if target.file_name:
        return candidate.file_name == target.file_name
    if candidate.file_name:
        return False
    return normalize_family(candidate.name) == normalize_family(target.name)


def remove_fallback_font(
    style: Style, font_id: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Remove a fallback and every record of the same underlying font."""
    target = style.font(font_id)
    if target is None:
        return style
    if target.is_global_primary:
        _emitter(emitter).warning("The global primary font cannot be removed.")
        return style

    removed = {
        font.id for font in style.fonts if _related(target, font) and not font.is_global_primary
    }
    primary = {
        language: value
        for language, value in style.primary_font_overrides.items()
        if value not in removed
    }
    fallback: dict[str, Any] = {}
    for language, entry in style.fallback_font_overrides.items():
        if isinstance(entry, str):
            if entry not in removed:
                fallback[language] = entry
            continue
        nested = {
            original: value
            for original, value in entry.items()
            if original not in removed and value not in removed
        }
        if nested or not entry:
            fallback[language] = nested

    survivors = set(style.font_ids) - removed
    orphaned = [
        font.id
        for font in style.fonts
        if font.id in survivors and font.is_clone and font.parent_id in removed
    ]
    logger.debug("Removing %s from %s", sorted(removed), style.id)
    style = replace(
        style.without_fonts(removed),
        primary_font_overrides=primary,
        fallback_font_overrides=fallback,
    )
    for clone_id in orphaned:
        style = release_font(style, clone_id, emitter=emitter)
    return style


def swap_primary_font(
    style: Style, font_id: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Make ``font_id`` the global primary and migrate dependent records.

    Role-dependent settings are cleared on both fonts, their colors are
    swapped, primary stand-ins are re-pointed at the new primary, and fallback
    overrides keyed by the new primary move to the primary override map.
    Where a language already has a stand-in, the displaced clone is released.
    """
    old = style.primary_font
    new = style.font(font_id)
    if new is None or new.is_clone:
        _emitter(emitter).warning(f"Font '{font_id}' cannot become the primary font.")
        return style
    if old is not None and old.id == new.id:
        return style

    new_settings = new.settings.without(ROLE_SCOPED_FIELDS)
    promoted = replace(
        new,
        role=FontRole.PRIMARY,
        scope=FontScope.GLOBAL,
        is_primary_override=False,
        settings=new_settings.with_value("color", old.settings.color if old else None),
    )
    fonts: list[Font] = [promoted]
    for font in style.fonts:
        if font.id == new.id:
            continue
        if old is not None and font.id == old.id:
            demoted_settings = font.settings.without(ROLE_SCOPED_FIELDS)
            font = replace(
                font,
                role=FontRole.FALLBACK,
                settings=demoted_settings.with_value("color", new.settings.color),
            )
        elif font.is_primary_override and old is not None and font.parent_id == old.id:
            font = replace(
                font,
                origin=CloneOrigin(parent_id=promoted.id),
                file_name=promoted.file_name,
                name=promoted.name,
                metadata=promoted.metadata,
                glyph_provider=promoted.glyph_provider,
                status=promoted.status,
            )
        fonts.append(font)
    style = replace(style, fonts=tuple(fonts))

    primary = dict(style.primary_font_overrides)
    fallback: dict[str, Any] = {}
    stand_ins: list[str] = []
    dropped: list[str] = []
    for language, entry in style.fallback_font_overrides.items():
        if not isinstance(entry, Mapping) or promoted.id not in entry:
            fallback[language] = entry
            continue
        nested = dict(entry)
        target = nested.pop(promoted.id)
        if target != promoted.id and language not in primary:
            primary[language] = target
            stand_ins.append(target)
        elif target != promoted.id:
            dropped.append(target)
        fallback[language] = nested
    style = replace(style, primary_font_overrides=primary, fallback_font_overrides=fallback)
    for stand_in in dedupe_preserve_order(stand_ins):
        font = style.font(stand_in)
        if font is not None:
            style = style.with_font(replace(font, is_primary_override=True))
    for font_id in dedupe_preserve_order(dropped):
        style = release_font(style, font_id, emitter=emitter)
    logger.debug("Primary font of %s is now %s", style.id, promoted.id)
    return style


def reorder_fonts(
    style: Style, old_index: int, new_index: int, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Move a font in the global list; landing on index 0 swaps the primary."""
    count = len(style.fonts)
    if old_index == new_index or not (0 <= old_index < count and 0 <= new_index < count):
        return style
    fonts = list(style.fonts)
    moved = fonts.pop(old_index)
    fonts.insert(new_index, moved)
    style = replace(style, fonts=tuple(fonts))

    first = fonts[0]
    primary = style.primary_font
    if primary is not None and first.id != primary.id:
        return swap_primary_font(style, first.id, emitter=emitter)
    return style


def toggle_font_visibility(style: Style, font_id: str) -> Style:
    font = style.font(font_id)
    if font is None:
        return style
    return style.with_font(font.with_setting("hidden", not is_hidden(style, font)))


def toggle_font_scope(style: Style, font_id: str) -> Style:
    """Flip an independently sourced fallback between global and language-specific."""
    font = style.font(font_id)
    if font is None or font.is_clone or font.is_global_primary:
        return style
    scope = (
        FontScope.GLOBAL
        if font.scope is FontScope.LANGUAGE_SPECIFIC
        else FontScope.LANGUAGE_SPECIFIC
    )
    return style.with_font(replace(font, scope=scope))


def update_font_property(style: Style, font_id: str, prop: str, value: Any) -> Style:
    """Edit a font record directly, for every language that sees it."""
    name = normalize_property(prop)
    font = style.font(font_id)
    if font is None:
        logger.warning("Font not found for property update: %s", font_id)
        return style
    return style.with_font(font.with_setting(name, value))


def update_font_weight(style: Style, font_id: str, weight: int) -> Style:
    """Primary weight is a style default; other fonts carry an override."""
    font = style.font(font_id)
    if font is None:
        logger.warning("Font not found for weight update: %s", font_id)
        return style
    if font.is_global_primary:
        return replace(style, weight=weight)
    return style.with_font(font.with_setting("weight_override", weight))


def recolor_identity(style: Style, signature: str | None, color: str) -> Style:
    """Set ``color`` on every record representing the font named ``signature``."""
    key = normalize_family(signature)
    if not key:
        return style
    return replace(
        style,
        fonts=tuple(
            font.with_setting("color", color)
            if normalize_family(font.signature) == key
            else font
            for font in style.fonts
        ),
    )


def update_defaults(style: Style, **changes: Any) -> Style:
    """Update style-level defaults such as ``line_height`` or ``fallback_family``."""
    unknown = set(changes) - STYLE_DEFAULT_FIELDS
    if unknown:
        raise ValueError(f"Unknown style defaults: {', '.join(sorted(unknown))}")
    return replace(style, **changes)


def set_font_scales(
    style: Style, *, active: float | None = None, fallback: float | None = None
) -> Style:
    scales = style.font_scales
    return replace(
        style,
        font_scales=FontScales(
            active=scales.active if active is None else active,
            fallback=scales.fallback if fallback is None else fallback,
        ),
    )


def _system_field(prop: str) -> str:
    if prop in {"family", "fontFamily"}:
        return "family"
    name = PROPERTY_ALIASES.get(prop, prop)
    if name not in SYSTEM_OVERRIDE_FIELDS:
        raise ValueError(f"Unknown system fallback setting '{prop}'.")
    return name


def update_system_fallback_override(
    style: Style, language: str, prop: str, value: Any
) -> Style:
    """Tweak the system sentinel for one language; ``None`` clears the field."""
    name = _system_field(prop)
    current = style.system_fallback_overrides.get(language, SystemFallbackOverride())
    updated = replace(current, **{name: value})
    overrides = dict(style.system_fallback_overrides)
    if updated.is_empty():
        overrides.pop(language, None)
    else:
        overrides[language] = updated
    return replace(style, system_fallback_overrides=overrides)


def reset_system_fallback_override(style: Style, language: str) -> Style:
    if language not in style.system_fallback_overrides:
        return style
    overrides = dict(style.system_fallback_overrides)
    del overrides[language]
    return replace(style, system_fallback_overrides=overrides)


def add_configured_language(style: Style, language: str) -> Style:
    return with_configured_language(style, language)


def remove_configured_language(
    style: Style, language: str, *, emitter: DiagnosticEmitter | None = None
) -> Style:
    """Forget ``language`` entirely: its mappings, its fonts, and its flags."""
    previous = [font_id for lang, font_id in iter_override_targets(style) if lang == language]
    style = drop_language_entries(style, language)
    for font_id in dedupe_preserve_order(previous):
        style = release_font(style, font_id, emitter=emitter)
    return replace(
        style,
        configured_languages=tuple(
            item for item in style.configured_languages if item != language
        ),
        primary_languages=tuple(item for item in style.primary_languages if item != language),
        system_fallback_overrides={
            key: value
            for key, value in style.system_fallback_overrides.items()
            if key != language
        },
    )


def toggle_primary_language(style: Style, language: str) -> Style:
    if language in style.primary_languages:
        return replace(
            style,
            primary_languages=tuple(item for item in style.primary_languages if item != language),
        )
    style = with_configured_language(style, language)
    return replace(style, primary_languages=(*style.primary_languages, language))


def mapped_language_ids(style: Style) -> list[str]:
    """Languages carrying at least one primary or fallback override."""
    return dedupe_preserve_order(
        [*style.primary_font_overrides, *style.fallback_font_overrides]
    )


__all__ = [
    "PRIMARY_FONT_ID",
    "add_configured_language",
    "add_fallback_font",
    "add_fallback_fonts",
    "create_style",
    "find_identity_collision",
    "load_primary_font",
    "mapped_language_ids",
    "recolor_identity",
    "remove_configured_language",
    "remove_fallback_font",
    "reorder_fonts",
    "reset_system_fallback_override",
    "set_font_scales",
    "swap_primary_font",
    "toggle_font_scope",
    "toggle_font_visibility",
    "toggle_primary_language",
    "update_defaults",
    "update_font_property",
    "update_font_weight",
    "update_system_fallback_override",
]
