"""Resolve the effective typographic settings of a font inside a style."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fontcascade.fonts.models import Font, FontScales, LineHeight, Style
from fontcascade.fonts.sharing import parent_font, resolve_mapping


@dataclass(frozen=True, slots=True)
class EffectiveSettings:
    """Fully resolved settings; ``None`` metrics defer to the renderer."""

    font_id: str
    base_font_size: float
    scale: float
    line_height: LineHeight
    letter_spacing: float
    weight: int
    font_scales: FontScales
    font_size_adjust: float | None = None
    ascent_override: float | None = None
    descent_override: float | None = None
    line_gap_override: float | None = None
    color: str | None = None
    hidden: bool = False

    @property
    def font_size(self) -> float:
        """Rendered size in the style's units."""
        return self.base_font_size * self.scale / 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "fontId": self.font_id,
            "baseFontSize": self.base_font_size,
            "scale": self.scale,
            "lineHeight": self.line_height,
            "letterSpacing": self.letter_spacing,
            "weight": self.weight,
            "fontSizeAdjust": self.font_size_adjust,
            "ascentOverride": self.ascent_override,
            "descentOverride": self.descent_override,
            "lineGapOverride": self.line_gap_override,
            "color": self.color,
            "hidden": self.hidden,
            "fontScales": {
                "active": self.font_scales.active,
                "fallback": self.font_scales.fallback,
            },
        }


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _primary_settings(style: Style, font: Font) -> EffectiveSettings:
    own = font.settings
    return EffectiveSettings(
        font_id=font.id,
        base_font_size=style.base_font_size,
        scale=100,
        line_height=style.line_height,
        letter_spacing=style.letter_spacing,
        weight=style.weight,
        font_scales=style.font_scales,
        font_size_adjust=own.font_size_adjust,
        ascent_override=own.ascent_override,
        descent_override=own.descent_override,
        line_gap_override=own.line_gap_override,
        color=own.color,
        hidden=font.hidden,
    )


def effective_settings(style: Style, font_id: str) -> EffectiveSettings | None:
    """Return the resolved settings for ``font_id`` or ``None`` when absent.

    Each field resolves from the font's own value, then its parent's value,
    then the style default. Primary stand-ins borrow the primary defaults,
    plain fallbacks the fallback defaults.
    """
    font = style.font(font_id)
    if font is None:
        return None
    if font.is_global_primary:
        return _primary_settings(style, font)

    own = font.settings
    parent = parent_font(style, font)
    inherited = parent.settings if parent is not None else None

    def pick(name: str, default: Any = None) -> Any:
        return _first(
            own.get(name),
            inherited.get(name) if inherited is not None else None,
            default,
        )

    if font.is_primary_like:
        line_height = style.line_height
        letter_spacing = style.letter_spacing
        scale = style.font_scales.active
    else:
        line_height = style.fallback_line_height
        letter_spacing = _first(style.fallback_letter_spacing, 0)
        scale = style.font_scales.fallback

    return EffectiveSettings(
        font_id=font.id,
        base_font_size=style.base_font_size,
        scale=pick("scale", scale),
        line_height=pick("line_height", line_height),
        letter_spacing=pick("letter_spacing", letter_spacing),
        weight=pick("weight_override", style.weight),
        font_scales=style.font_scales,
        font_size_adjust=pick("font_size_adjust"),
        ascent_override=pick("ascent_override"),
        descent_override=pick("descent_override"),
        line_gap_override=pick("line_gap_override"),
        color=pick("color"),
        hidden=bool(pick("hidden")),
    )


def is_hidden(style: Style, font: Font) -> bool:
    """Own visibility flag first, then the one inherited from the parent."""
    if font.settings.hidden is not None:
        return font.settings.hidden
    parent = parent_font(style, font)
    return parent is not None and parent.hidden


def language_settings(style: Style, original_id: str, language: str) -> EffectiveSettings | None:
    """Settings ``language`` observes for ``original_id`` after following its mapping."""
    return effective_settings(style, resolve_mapping(style, language, original_id))


__all__ = ["EffectiveSettings", "effective_settings", "is_hidden", "language_settings"]
