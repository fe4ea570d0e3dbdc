"""Atomic store for named styles with memoised read-side computations."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
import logging
from typing import Any

from fontcascade.core.config import CascadeSettings
from fontcascade.core.diagnostics import DiagnosticEmitter, LoggingEmitter
from fontcascade.fonts import forking, library
from fontcascade.fonts.models import Font, FontMetadata, FontStatus, GlyphProvider, Style
from fontcascade.fonts.resolver import EffectiveSettings, effective_settings, language_settings
from fontcascade.fonts.sharing import resolve_mapping
from fontcascade.fonts.stack import StackEntry, build_stack


logger = logging.getLogger(__name__)

StyleListener = Callable[[str, Style | None], None]
StyleUpdater = Callable[[Style], Style]


class StyleStore:
    """Holds every style and applies updates as whole-style replacements.

    Readers only ever see complete :class:`Style` values: an updater receives
    the current style and returns the next one, which is swapped in at once.
    Effective settings and stacks are memoised per revision.
    """

    def __init__(
        self,
        styles: Iterable[Style] | None = None,
        *,
        active_style_id: str | None = None,
        settings: CascadeSettings | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._settings = settings or CascadeSettings()
        self._emitter: DiagnosticEmitter = emitter or LoggingEmitter()
        self._styles: dict[str, Style] = {}
        for style in styles or ():
            self._styles[style.id] = style
        if not self._styles:
            default = library.create_style(self._settings.primary_style_id, self._settings)
            self._styles[default.id] = default
        if active_style_id is not None and active_style_id in self._styles:
            self._active_style_id = active_style_id
        else:
            self._active_style_id = next(iter(self._styles))
        self._revision = 0
        self._listeners: list[StyleListener] = []
        self._settings_cache: dict[tuple[str, str], EffectiveSettings | None] = {}
        self._stack_cache: dict[tuple[str, str], tuple[StackEntry, ...]] = {}

    # ------------------------------------------------------------------ state

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def settings(self) -> CascadeSettings:
        return self._settings

    @property
    def emitter(self) -> DiagnosticEmitter:
        return self._emitter

    @property
    def style_ids(self) -> tuple[str, ...]:
        return tuple(self._styles)

    @property
    def styles(self) -> Mapping[str, Style]:
        return dict(self._styles)

    @property
    def active_style_id(self) -> str:
        return self._active_style_id

    @active_style_id.setter
    def active_style_id(self, style_id: str) -> None:
        if style_id not in self._styles:
            raise KeyError(f"Unknown style '{style_id}'.")
        self._active_style_id = style_id

    def get_style(self, style_id: str | None = None) -> Style:
        key = style_id or self._active_style_id
        try:
            return self._styles[key]
        except KeyError:
            raise KeyError(f"Unknown style '{key}'.") from None

    def subscribe(self, listener: StyleListener) -> Callable[[], None]:
        """Register ``listener`` for committed changes; returns an unsubscribe hook.

        Listeners receive the style id and the new style, or ``None`` when the
        style was removed.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _commit(self, changed: Mapping[str, Style | None]) -> None:
        for style_id, style in changed.items():
            if style is None:
                self._styles.pop(style_id, None)
            else:
                self._styles[style_id] = style
        self._revision += 1
        self._settings_cache.clear()
        self._stack_cache.clear()
        for style_id, style in changed.items():
            for listener in list(self._listeners):
                listener(style_id, style)

    def replace_style(self, updater: StyleUpdater, style_id: str | None = None) -> Style:
        """Apply ``updater`` to one style and swap the result in atomically."""
        key = style_id or self._active_style_id
        current = self.get_style(key)
        updated = updater(current)
        if not isinstance(updated, Style):
            raise TypeError(f"Style updater returned {type(updated).__name__}, not Style.")
        if updated.id != key:
            raise ValueError(f"Style updater renamed '{key}' to '{updated.id}'.")
        if updated is current:
            return current
        self._commit({key: updated})
        return updated

    def replace_all(self, updater: StyleUpdater) -> None:
        """Apply ``updater`` to every style and commit all results together."""
        changed: dict[str, Style] = {}
        for style_id, style in self._styles.items():
            updated = updater(style)
            if updated is not style:
                changed[style_id] = updated
        if changed:
            self._commit(changed)

    def add_style(self, style: Style | str, *, copy_from: str | None = None) -> Style:
        if isinstance(style, str):
            if copy_from is not None:
                style = replace(self.get_style(copy_from), id=style)
            else:
                style = library.create_style(style, self._settings)
        if style.id in self._styles:
            raise ValueError(f"Style '{style.id}' already exists.")
        self._commit({style.id: style})
        return style

    def remove_style(self, style_id: str) -> None:
        if style_id not in self._styles:
            return
        if len(self._styles) == 1:
            raise ValueError("The last remaining style cannot be removed.")
        if self._active_style_id == style_id:
            self._active_style_id = next(key for key in self._styles if key != style_id)
        self._commit({style_id: None})

    # ------------------------------------------------------------- read side

    def effective_settings(
        self, font_id: str, style_id: str | None = None
    ) -> EffectiveSettings | None:
        style = self.get_style(style_id)
        key = (style.id, font_id)
        if key not in self._settings_cache:
            self._settings_cache[key] = effective_settings(style, font_id)
        return self._settings_cache[key]

    def language_settings(
        self, original_id: str, language: str, style_id: str | None = None
    ) -> EffectiveSettings | None:
        return language_settings(self.get_style(style_id), original_id, language)

    def resolve_mapping(self, language: str, original_id: str, style_id: str | None = None) -> str:
        return resolve_mapping(self.get_style(style_id), language, original_id)

    def build_stack(self, language: str, style_id: str | None = None) -> list[StackEntry]:
        style = self.get_style(style_id)
        key = (style.id, language)
        if key not in self._stack_cache:
            self._stack_cache[key] = tuple(build_stack(style, language))
        return list(self._stack_cache[key])

    # ---------------------------------------------------------- fork manager

    def update_scoped_setting(
        self,
        original_id: str,
        language: str,
        prop: str,
        value: Any,
        *,
        style_id: str | None = None,
    ) -> Style:
        return self.replace_style(
            lambda style: forking.update_scoped_setting(
                style, original_id, language, prop, value, emitter=self._emitter
            ),
            style_id,
        )

    def split_font(self, original_id: str, language: str, *, style_id: str | None = None) -> str:
        """Fork ``original_id`` for ``language`` and return the id now in use."""
        style = self.replace_style(
            lambda current: forking.split_font(
                current, original_id, language, emitter=self._emitter
            ),
            style_id,
        )
        font = style.font(original_id)
        if font is not None and font.is_clone:
            return original_id
        return resolve_mapping(style, language, original_id)

    def unmap_font(self, font_id: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: forking.unmap_font(style, font_id, emitter=self._emitter), style_id
        )

    def map_language_to_font(
        self, language: str, font_id: str, *, style_id: str | None = None
    ) -> Style:
        return self.replace_style(
            lambda style: forking.map_language_to_font(
                style, language, font_id, emitter=self._emitter
            ),
            style_id,
        )

    def assign_font_to_languages(
        self, font_id: str, languages: Iterable[str], *, style_id: str | None = None
    ) -> Style:
        targets = list(languages)
        return self.replace_style(
            lambda style: forking.assign_font_to_languages(
                style, font_id, targets, emitter=self._emitter
            ),
            style_id,
        )

    def unmap_language(self, language: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: forking.unmap_language(style, language, emitter=self._emitter),
            style_id,
        )

    def clear_primary_override(self, language: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: forking.clear_primary_override(style, language, emitter=self._emitter),
            style_id,
        )

    def clear_fallback_override(self, language: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: forking.clear_fallback_override(style, language, emitter=self._emitter),
            style_id,
        )

    def add_language_specific_primary_font(
        self,
        language: str,
        *,
        source_id: str | None = None,
        only_if_missing: bool = False,
        style_id: str | None = None,
    ) -> str | None:
        """Create a primary stand-in for ``language`` and return its id."""
        style = self.replace_style(
            lambda current: forking.add_language_specific_primary_font(
                current,
                language,
                source_id=source_id,
                only_if_missing=only_if_missing,
                emitter=self._emitter,
            ),
            style_id,
        )
        return style.primary_font_overrides.get(language)

    def add_language_specific_fallback_font(
        self, language: str, font: Font, *, style_id: str | None = None
    ) -> Style:
        return self.replace_style(
            lambda style: forking.add_language_specific_fallback_font(
                style, language, font, emitter=self._emitter
            ),
            style_id,
        )

    # ---------------------------------------------------------- font library

    def load_primary_font(
        self,
        *,
        file_name: str | None,
        name: str | None = None,
        metadata: FontMetadata | None = None,
        glyph_provider: GlyphProvider | None = None,
        status: FontStatus = FontStatus.READY,
        style_id: str | None = None,
    ) -> Style:
        return self.replace_style(
            lambda style: library.load_primary_font(
                style,
                file_name=file_name,
                name=name,
                metadata=metadata,
                glyph_provider=glyph_provider,
                status=status,
            ),
            style_id,
        )

    def add_fallback_font(self, font: Font, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.add_fallback_font(style, font, emitter=self._emitter), style_id
        )

    def add_fallback_fonts(self, fonts: Iterable[Font], *, style_id: str | None = None) -> Style:
        batch = list(fonts)
        return self.replace_style(
            lambda style: library.add_fallback_fonts(style, batch, emitter=self._emitter),
            style_id,
        )

    def remove_fallback_font(self, font_id: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.remove_fallback_font(style, font_id, emitter=self._emitter),
            style_id,
        )

    def reorder_fonts(
        self, old_index: int, new_index: int, *, style_id: str | None = None
    ) -> Style:
        return self.replace_style(
            lambda style: library.reorder_fonts(
                style, old_index, new_index, emitter=self._emitter
            ),
            style_id,
        )

    def swap_primary_font(self, font_id: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.swap_primary_font(style, font_id, emitter=self._emitter),
            style_id,
        )

    def toggle_font_visibility(self, font_id: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.toggle_font_visibility(style, font_id), style_id
        )

    def toggle_font_scope(self, font_id: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.toggle_font_scope(style, font_id), style_id
        )

    def update_font_property(
        self, font_id: str, prop: str, value: Any, *, style_id: str | None = None
    ) -> Style:
        return self.replace_style(
            lambda style: library.update_font_property(style, font_id, prop, value), style_id
        )

    def update_font_weight(
        self, font_id: str, weight: int, *, style_id: str | None = None
    ) -> Style:
        return self.replace_style(
            lambda style: library.update_font_weight(style, font_id, weight), style_id
        )

    def update_font_color(self, font_id: str, color: str, *, style_id: str | None = None) -> None:
        """Recolor every record of the same underlying font, in every style."""
        font = self.get_style(style_id).font(font_id)
        if font is None:
            logger.warning("Font not found for color update: %s", font_id)
            return
        if font.signature is None:
            self.update_font_property(font_id, "color", color, style_id=style_id)
            return
        signature = font.signature
        self.replace_all(lambda style: library.recolor_identity(style, signature, color))

    def update_defaults(self, *, style_id: str | None = None, **changes: Any) -> Style:
        return self.replace_style(
            lambda style: library.update_defaults(style, **changes), style_id
        )

    def set_font_scales(
        self,
        *,
        active: float | None = None,
        fallback: float | None = None,
        style_id: str | None = None,
    ) -> Style:
        return self.replace_style(
            lambda style: library.set_font_scales(style, active=active, fallback=fallback),
            style_id,
        )

    def update_system_fallback_override(
        self, language: str, prop: str, value: Any, *, style_id: str | None = None
    ) -> Style:
        return self.replace_style(
            lambda style: library.update_system_fallback_override(style, language, prop, value),
            style_id,
        )

    def reset_system_fallback_override(
        self, language: str, *, style_id: str | None = None
    ) -> Style:
        return self.replace_style(
            lambda style: library.reset_system_fallback_override(style, language), style_id
        )

    # ------------------------------------------------------------- languages

    def add_configured_language(self, language: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.add_configured_language(style, language), style_id
        )

    def remove_configured_language(self, language: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.remove_configured_language(
                style, language, emitter=self._emitter
            ),
            style_id,
        )

    def toggle_primary_language(self, language: str, *, style_id: str | None = None) -> Style:
        return self.replace_style(
            lambda style: library.toggle_primary_language(style, language), style_id
        )

    def mapped_language_ids(self, style_id: str | None = None) -> list[str]:
        return library.mapped_language_ids(self.get_style(style_id))


__all__ = ["StyleListener", "StyleStore", "StyleUpdater"]
