"""Immutable records describing fonts, styles, and their override maps."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Protocol, runtime_checkable


SYSTEM_FONT_ID = "system"
"""Identifier of the system sentinel; as an override value it means "system only"."""

LineHeight = float | str


class FontRole(str, Enum):
    """Part a font plays in the cascade."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class FontScope(str, Enum):
    """Visibility of a font across languages."""

    GLOBAL = "global"
    LANGUAGE_SPECIFIC = "language_specific"


class FontStatus(str, Enum):
    """Outcome of the last attempt to attach glyph coverage to a font."""

    READY = "ready"
    DEGRADED = "degraded"


@runtime_checkable
class GlyphProvider(Protocol):
    """Glyph coverage capability attached to a loaded font."""

    def has_glyph(self, char: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class RootOrigin:
    """Font sourced independently: the primary font, an upload, or a system name."""


@dataclass(frozen=True, slots=True)
class CloneOrigin:
    """Font forked from another record.

    ``parent_id`` may be ``None`` for records written before parent links
    existed; those are matched to their ancestor by file/name signature.
    """

    parent_id: str | None = None


FontOrigin = RootOrigin | CloneOrigin
ROOT = RootOrigin()


@dataclass(frozen=True, slots=True)
class FontSettings:
    """Per-font overrides; ``None`` means inherit."""

    scale: float | None = None
    line_height: LineHeight | None = None
    letter_spacing: float | None = None
    weight_override: int | None = None
    font_size_adjust: float | None = None
    ascent_override: float | None = None
    descent_override: float | None = None
    line_gap_override: float | None = None
    color: str | None = None
    hidden: bool | None = None

    def get(self, name: str) -> Any:
        return getattr(self, name)

    def with_value(self, name: str, value: Any) -> FontSettings:
        return replace(self, **{name: value})

    def without(self, names: Iterable[str]) -> FontSettings:
        return replace(self, **{name: None for name in names})

    def explicit(self) -> dict[str, Any]:
        """Return only the fields carrying an explicit value."""
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


SETTING_FIELDS: tuple[str, ...] = tuple(item.name for item in fields(FontSettings))

ROLE_SCOPED_FIELDS: tuple[str, ...] = (
    "scale",
    "line_height",
    "letter_spacing",
    "weight_override",
    "font_size_adjust",
    "ascent_override",
    "descent_override",
    "line_gap_override",
)
"""Settings whose meaning depends on the role and are cleared when it changes."""


@dataclass(frozen=True, slots=True)
class FontMetadata:
    """Facts reported by the font-loading collaborator."""

    is_variable: bool = False
    weight_axis_range: tuple[float, float] | None = None
    static_weight: int | None = None


@dataclass(frozen=True, slots=True)
class Font:
    """A single font record inside a style."""

    id: str
    origin: FontOrigin = ROOT
    role: FontRole = FontRole.FALLBACK
    scope: FontScope = FontScope.GLOBAL
    is_primary_override: bool = False
    file_name: str | None = None
    name: str | None = None
    settings: FontSettings = field(default_factory=FontSettings)
    metadata: FontMetadata = field(default_factory=FontMetadata)
    glyph_provider: GlyphProvider | None = field(default=None, compare=False, repr=False)
    status: FontStatus = field(default=FontStatus.READY, compare=False)

    @property
    def is_clone(self) -> bool:
        return isinstance(self.origin, CloneOrigin)

    @property
    def parent_id(self) -> str | None:
        if isinstance(self.origin, CloneOrigin):
            return self.origin.parent_id
        return None

    @property
    def is_global_primary(self) -> bool:
        return self.role is FontRole.PRIMARY and not self.is_clone

    @property
    def is_primary_like(self) -> bool:
        """Primary font or a language stand-in for it."""
        return self.role is FontRole.PRIMARY or self.is_primary_override

    @property
    def hidden(self) -> bool:
        return bool(self.settings.hidden)

    @property
    def signature(self) -> str | None:
        """File or display name identifying the underlying font."""
        return self.file_name or self.name

    @property
    def is_system(self) -> bool:
        """Font registered by name only, with no binary resource."""
        return self.file_name is None

    def with_setting(self, name: str, value: Any) -> Font:
        return replace(self, settings=self.settings.with_value(name, value))


@dataclass(frozen=True, slots=True)
class FontScales:
    """Percentage scales for primary-like and fallback fonts."""

    active: float = 100
    fallback: float = 100


@dataclass(frozen=True, slots=True)
class SystemFallbackOverride:
    """Per-language tweaks applied to the system sentinel entry."""

    family: str | None = None
    scale: float | None = None
    line_height: LineHeight | None = None
    letter_spacing: float | None = None
    font_size_adjust: float | None = None
    ascent_override: float | None = None
    descent_override: float | None = None
    line_gap_override: float | None = None

    @property
    def adjusts_metrics(self) -> bool:
        """True when the sentinel needs its own family alias."""
        return any(
            value is not None
            for value in (
                self.scale,
                self.ascent_override,
                self.descent_override,
                self.line_gap_override,
            )
        )

    def explicit(self) -> dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }

    def is_empty(self) -> bool:
        return not self.explicit()


FallbackOverride = str | Mapping[str, str]


@dataclass(frozen=True, slots=True)
class Style:
    """Named bundle of fonts, global defaults, and per-language override maps.

    Instances are never mutated; reducers build the next value with
    :func:`dataclasses.replace` and fresh containers.
    """

    id: str
    fonts: tuple[Font, ...] = ()
    base_font_size: float = 16
    weight: int = 400
    line_height: LineHeight = "normal"
    letter_spacing: float = 0
    fallback_line_height: LineHeight = "normal"
    fallback_letter_spacing: float | None = None
    font_scales: FontScales = field(default_factory=FontScales)
    fallback_family: str = "sans-serif"
    missing_color: str = "#ff0000"
    missing_bg_color: str = "#ffffff"
    primary_font_overrides: Mapping[str, str] = field(default_factory=dict)
    fallback_font_overrides: Mapping[str, FallbackOverride] = field(default_factory=dict)
    system_fallback_overrides: Mapping[str, SystemFallbackOverride] = field(
        default_factory=dict
    )
    configured_languages: tuple[str, ...] = ()
    primary_languages: tuple[str, ...] = ()

    def font(self, font_id: str | None) -> Font | None:
        if font_id is None:
            return None
        for font in self.fonts:
            if font.id == font_id:
                return font
        return None

    def has_font(self, font_id: str | None) -> bool:
        return self.font(font_id) is not None

    @property
    def primary_font(self) -> Font | None:
        for font in self.fonts:
            if font.is_global_primary:
                return font
        return None

    @property
    def font_ids(self) -> tuple[str, ...]:
        return tuple(font.id for font in self.fonts)

    def with_font(self, font: Font) -> Style:
        """Return a copy where the record sharing ``font.id`` is replaced."""
        return replace(
            self,
            fonts=tuple(font if existing.id == font.id else existing for existing in self.fonts),
        )

    def without_fonts(self, font_ids: Iterable[str]) -> Style:
        dropped = set(font_ids)
        return replace(self, fonts=tuple(font for font in self.fonts if font.id not in dropped))


__all__ = [
    "ROLE_SCOPED_FIELDS",
    "ROOT",
    "SETTING_FIELDS",
    "SYSTEM_FONT_ID",
    "CloneOrigin",
    "FallbackOverride",
    "Font",
    "FontMetadata",
    "FontOrigin",
    "FontRole",
    "FontScales",
    "FontScope",
    "FontSettings",
    "FontStatus",
    "GlyphProvider",
    "LineHeight",
    "RootOrigin",
    "Style",
    "SystemFallbackOverride",
]
