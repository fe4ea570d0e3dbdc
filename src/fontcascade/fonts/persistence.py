"""Snapshot export, import, rehydration, and the configuration validation pass.

Snapshots are JSON-compatible dictionaries wrapped in a small envelope::

    {"metadata": {"version": 1, "appName": "fontcascade", "exportedAt": "..."},
     "data": {"activeStyleId": "...", "styles": {...}}}

Glyph providers are never written; :func:`rehydrate` re-attaches them from a
``file name -> bytes`` mapping. Older payloads without the envelope, and font
records carrying the historical ``type``/``isClone``/``isLangSpecific`` flags,
are still accepted.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
import yaml

from fontcascade.core.config import CascadeSettings
from fontcascade.core.diagnostics import DiagnosticEmitter, NullEmitter
from fontcascade.core.exceptions import FontLoadError, SnapshotFormatError, exception_hint
from fontcascade.fonts.loader import LoadedFont, load_font_resource
from fontcascade.fonts.logging import FontPipelineLogger
from fontcascade.fonts.models import (
    ROOT,
    SYSTEM_FONT_ID,
    CloneOrigin,
    Font,
    FontMetadata,
    FontRole,
    FontScales,
    FontScope,
    FontSettings,
    FontStatus,
    Style,
    SystemFallbackOverride,
)
from fontcascade.fonts.store import StyleStore


logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
APP_NAME = "fontcascade"
YAML_SUFFIXES = {".yaml", ".yml"}

FontLoader = Callable[[bytes, str | None], LoadedFont]


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FontSnapshot(_SnapshotModel):
    """Flat, camelCase representation of one font record."""

    id: str
    origin: Literal["root", "clone"] | None = None
    parent_id: str | None = None
    role: FontRole | None = None
    scope: FontScope | None = None
    is_primary_override: bool = False
    file_name: str | None = None
    name: str | None = None
    scale: float | None = None
    line_height: float | str | None = None
    letter_spacing: float | None = None
    weight_override: int | None = None
    font_size_adjust: float | None = None
    ascent_override: float | None = None
    descent_override: float | None = None
    line_gap_override: float | None = None
    color: str | None = None
    hidden: bool | None = None
    is_variable: bool = False
    weight_axis_range: tuple[float, float] | None = None
    static_weight: int | None = None

    # Historical flags, read but never written.
    legacy_type: str | None = Field(default=None, alias="type")
    is_clone: bool | None = None
    is_lang_specific: bool | None = None

    @classmethod
    def from_font(cls, font: Font) -> FontSnapshot:
        return cls(
            id=font.id,
            origin="clone" if font.is_clone else "root",
            parent_id=font.parent_id,
            role=font.role,
            scope=font.scope,
            is_primary_override=font.is_primary_override,
            file_name=font.file_name,
            name=font.name,
            is_variable=font.metadata.is_variable,
            weight_axis_range=font.metadata.weight_axis_range,
            static_weight=font.metadata.static_weight,
            **font.settings.explicit(),
        )

    def to_font(self) -> Font:
        clone = self.origin == "clone" if self.origin else bool(self.is_clone)
        role_name = self.role.value if self.role is not None else (self.legacy_type or "")
        role = FontRole.PRIMARY if role_name == FontRole.PRIMARY.value else FontRole.FALLBACK
        is_primary_override = self.is_primary_override
        if clone and role is FontRole.PRIMARY:
            # Older exports tagged primary stand-ins with the primary role.
            role = FontRole.FALLBACK
            is_primary_override = True
        scope = self.scope
        if scope is None:
            scope = FontScope.LANGUAGE_SPECIFIC if self.is_lang_specific else FontScope.GLOBAL
        return Font(
            id=self.id,
            origin=CloneOrigin(parent_id=self.parent_id) if clone else ROOT,
            role=role,
            scope=scope,
            is_primary_override=is_primary_override,
            file_name=self.file_name,
            name=self.name,
            settings=FontSettings(
                scale=self.scale,
                line_height=self.line_height,
                letter_spacing=self.letter_spacing,
                weight_override=self.weight_override,
                font_size_adjust=self.font_size_adjust,
                ascent_override=self.ascent_override,
                descent_override=self.descent_override,
                line_gap_override=self.line_gap_override,
                color=self.color,
                hidden=self.hidden,
            ),
            metadata=FontMetadata(
                is_variable=self.is_variable,
                weight_axis_range=self.weight_axis_range,
                static_weight=self.static_weight,
            ),
        )


class FontScalesSnapshot(_SnapshotModel):
    active: float = 100
    fallback: float = 100


class SystemFallbackSnapshot(_SnapshotModel):
    family: str | None = Field(
        default=None, validation_alias=AliasChoices("family", "fontFamily")
    )
    scale: float | None = None
    line_height: float | str | None = None
    letter_spacing: float | None = None
    font_size_adjust: float | None = None
    ascent_override: float | None = None
    descent_override: float | None = None
    line_gap_override: float | None = None


class StyleSnapshot(_SnapshotModel):
    """Serializable form of a :class:`Style`."""

    id: str | None = None
    fonts: list[FontSnapshot] = Field(default_factory=list)
    base_font_size: float = 16
    weight: int = 400
    line_height: float | str = "normal"
    letter_spacing: float = 0
    fallback_line_height: float | str = "normal"
    fallback_letter_spacing: float | None = None
    font_scales: FontScalesSnapshot = Field(default_factory=FontScalesSnapshot)
    fallback_family: str = Field(
        default="sans-serif",
        validation_alias=AliasChoices("fallbackFamily", "fallbackFont", "fallback_family"),
        serialization_alias="fallbackFamily",
    )
    missing_color: str = "#ff0000"
    missing_bg_color: str = "#ffffff"
    primary_font_overrides: dict[str, str] = Field(default_factory=dict)
    fallback_font_overrides: dict[str, str | dict[str, str]] = Field(default_factory=dict)
    system_fallback_overrides: dict[str, SystemFallbackSnapshot] = Field(default_factory=dict)
    configured_languages: list[str] = Field(default_factory=list)
    primary_languages: list[str] = Field(default_factory=list)

    @classmethod
    def from_style(cls, style: Style) -> StyleSnapshot:
        return cls(
            id=style.id,
            fonts=[FontSnapshot.from_font(font) for font in style.fonts],
            base_font_size=style.base_font_size,
            weight=style.weight,
            line_height=style.line_height,
            letter_spacing=style.letter_spacing,
            fallback_line_height=style.fallback_line_height,
            fallback_letter_spacing=style.fallback_letter_spacing,
            font_scales=FontScalesSnapshot(
                active=style.font_scales.active, fallback=style.font_scales.fallback
            ),
            fallback_family=style.fallback_family,
            missing_color=style.missing_color,
            missing_bg_color=style.missing_bg_color,
            primary_font_overrides=dict(style.primary_font_overrides),
            fallback_font_overrides={
                language: entry if isinstance(entry, str) else dict(entry)
                for language, entry in style.fallback_font_overrides.items()
            },
            system_fallback_overrides={
                language: SystemFallbackSnapshot(**override.explicit())
                for language, override in style.system_fallback_overrides.items()
            },
            configured_languages=list(style.configured_languages),
            primary_languages=list(style.primary_languages),
        )

    def to_style(self, style_id: str | None = None) -> Style:
        identifier = self.id or style_id
        if not identifier:
            raise SnapshotFormatError("Style snapshot is missing an id.")
        return Style(
            id=identifier,
            fonts=tuple(font.to_font() for font in self.fonts),
            base_font_size=self.base_font_size,
            weight=self.weight,
            line_height=self.line_height,
            letter_spacing=self.letter_spacing,
            fallback_line_height=self.fallback_line_height,
            fallback_letter_spacing=self.fallback_letter_spacing,
            font_scales=FontScales(
                active=self.font_scales.active, fallback=self.font_scales.fallback
            ),
            fallback_family=self.fallback_family,
            missing_color=self.missing_color,
            missing_bg_color=self.missing_bg_color,
            primary_font_overrides=dict(self.primary_font_overrides),
            fallback_font_overrides={
                language: entry if isinstance(entry, str) else dict(entry)
                for language, entry in self.fallback_font_overrides.items()
            },
            system_fallback_overrides={
                language: SystemFallbackOverride(**override.model_dump())
                for language, override in self.system_fallback_overrides.items()
            },
            configured_languages=tuple(self.configured_languages),
            primary_languages=tuple(self.primary_languages),
        )


class StoreSnapshot(_SnapshotModel):
    active_style_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("activeStyleId", "activeFontStyleId", "active_style_id"),
        serialization_alias="activeStyleId",
    )
    styles: dict[str, StyleSnapshot] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("styles", "fontStyles"),
        serialization_alias="styles",
    )


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def normalize_snapshot(payload: Any) -> dict[str, Any] | None:
    """Return the store payload inside ``payload``, or ``None`` if unrecognised."""
    if not isinstance(payload, Mapping):
        return None
    metadata = payload.get("metadata")
    data = payload.get("data")
    if isinstance(metadata, Mapping) and isinstance(data, Mapping):
        version = metadata.get("version")
        if not isinstance(version, int) or not 1 <= version <= SNAPSHOT_VERSION:
            return None
        return dict(data)
    if "styles" in payload or "fontStyles" in payload:
        return dict(payload)
    return None


def serialize_style(style: Style) -> dict[str, Any]:
    return _dump(StyleSnapshot.from_style(style))


def deserialize_style(payload: Mapping[str, Any], *, style_id: str | None = None) -> Style:
    """Build a :class:`Style` from its serialized form; glyph providers stay empty."""
    if not isinstance(payload, Mapping):
        raise SnapshotFormatError(
            f"Style snapshot must be a mapping, got {type(payload).__name__}."
        )
    try:
        snapshot = StyleSnapshot.model_validate(dict(payload))
    except ValidationError as exc:
        raise SnapshotFormatError(f"Invalid style snapshot: {exc}") from exc
    return snapshot.to_style(style_id)


def serialize_store(store: StyleStore, *, exported_at: datetime | None = None) -> dict[str, Any]:
    """Wrap every style of ``store`` in a versioned envelope."""
    timestamp = exported_at or datetime.now(timezone.utc)
    snapshot = StoreSnapshot(
        active_style_id=store.active_style_id,
        styles={
            style_id: StyleSnapshot.from_style(style)
            for style_id, style in store.styles.items()
        },
    )
    return {
        "metadata": {
            "version": SNAPSHOT_VERSION,
            "appName": APP_NAME,
            "exportedAt": timestamp.isoformat(),
        },
        "data": _dump(snapshot),
    }


def rehydrate(
    style: Style,
    resources: Mapping[str, bytes],
    *,
    loader: FontLoader = load_font_resource,
    emitter: DiagnosticEmitter | None = None,
    pipeline: FontPipelineLogger | None = None,
) -> Style:
    """Re-attach glyph providers by loading each font's resource.

    Fonts whose resource is missing or unreadable stay in the style with a
    degraded status and no glyph provider.
    """
    diagnostics = emitter or NullEmitter()
    progress_logger = pipeline or FontPipelineLogger(quiet=True)
    outcomes: dict[str, LoadedFont | FontLoadError] = {}
    pending = [font for font in style.fonts if font.file_name]

    fonts: list[Font] = []
    with progress_logger.progress("Loading fonts", total=len(pending)) as advance:
        for font in style.fonts:
            file_name = font.file_name
            if not file_name:
                fonts.append(font)
                continue
            if file_name not in outcomes:
                data = resources.get(file_name)
                if data is None:
                    outcomes[file_name] = FontLoadError(
                        "Font resource is missing.", file_name=file_name
                    )
                else:
                    try:
                        outcomes[file_name] = loader(data, file_name)
                    except FontLoadError as exc:
                        outcomes[file_name] = exc
            outcome = outcomes[file_name]
            if isinstance(outcome, FontLoadError):
                diagnostics.warning(
                    f"Font '{font.id}' could not be loaded from '{file_name}'.", outcome
                )
                diagnostics.event(
                    "font_load_failure",
                    {
                        "font_id": font.id,
                        "file_name": file_name,
                        "reason": exception_hint(outcome),
                    },
                )
                fonts.append(replace(font, glyph_provider=None, status=FontStatus.DEGRADED))
            else:
                fonts.append(
                    replace(
                        font,
                        glyph_provider=outcome.glyph_provider,
                        metadata=outcome.metadata,
                        status=FontStatus.READY,
                    )
                )
            advance()

    progress_logger.debug("Rehydrated %s font(s) for %s", len(pending), style.id)
    return replace(style, fonts=tuple(fonts))


def _drop_dangling(style: Style, diagnostics: DiagnosticEmitter) -> Style:
    known = set(style.font_ids)

    def _report(language: str, target: str, kind: str) -> None:
        logger.debug("Dropping dangling %s override %s -> %s", kind, language, target)
        diagnostics.event(
            "dangling_override", {"language": language, "target": target, "map": kind}
        )

    primary: dict[str, str] = {}
    for language, target in style.primary_font_overrides.items():
        if target in known:
            primary[language] = target
        else:
            _report(language, target, "primary")

    fallback: dict[str, Any] = {}
    for language, entry in style.fallback_font_overrides.items():
        if isinstance(entry, str):
            if entry == SYSTEM_FONT_ID or entry in known:
                fallback[language] = entry
            else:
                _report(language, entry, "fallback")
            continue
        nested: dict[str, str] = {}
        for original, target in entry.items():
            if target in known:
                nested[original] = target
            else:
                _report(language, target, "fallback")
        fallback[language] = nested

    if primary == dict(style.primary_font_overrides) and fallback == dict(
        style.fallback_font_overrides
    ):
        return style
    return replace(style, primary_font_overrides=primary, fallback_font_overrides=fallback)


def _override_references(style: Style) -> set[str]:
    referenced = set(style.primary_font_overrides.values())
    for entry in style.fallback_font_overrides.values():
        if isinstance(entry, str):
            referenced.add(entry)
        else:
            referenced.update(entry.keys())
            referenced.update(entry.values())
    return referenced


def validate_style(style: Style, *, emitter: DiagnosticEmitter | None = None) -> Style:
    """Repair a deserialized style; running it twice changes nothing more.

    Override values pointing at missing fonts are dropped (a nested map left
    empty is kept as ``{}``), language-specific fonts no override mentions are
    removed, and only the first global primary keeps the primary role.
    """
    diagnostics = emitter or NullEmitter()
    style = _drop_dangling(style, diagnostics)

    referenced = _override_references(style)
    unused = [
        font.id
        for font in style.fonts
        if font.scope is FontScope.LANGUAGE_SPECIFIC and font.id not in referenced
    ]
    if unused:
        logger.debug("Removing unreferenced language fonts %s from %s", unused, style.id)
        style = style.without_fonts(unused)

    primaries = [font for font in style.fonts if font.is_global_primary]
    for extra in primaries[1:]:
        diagnostics.warning(f"Font '{extra.id}' demoted: '{primaries[0].id}' is the primary.")
        style = style.with_font(replace(extra, role=FontRole.FALLBACK))
    return style


def validate_store(store: StyleStore) -> StyleStore:
    store.replace_all(lambda style: validate_style(style, emitter=store.emitter))
    return store


def deserialize_store(
    payload: Any,
    *,
    resources: Mapping[str, bytes] | None = None,
    loader: FontLoader = load_font_resource,
    settings: CascadeSettings | None = None,
    emitter: DiagnosticEmitter | None = None,
    pipeline: FontPipelineLogger | None = None,
) -> StyleStore:
    """Rebuild a validated store from a snapshot, rehydrating when ``resources`` is given."""
    data = normalize_snapshot(payload)
    if data is None:
        raise SnapshotFormatError("Unrecognised or unsupported snapshot payload.")
    try:
        snapshot = StoreSnapshot.model_validate(data)
    except ValidationError as exc:
        raise SnapshotFormatError(f"Invalid snapshot: {exc}") from exc

    diagnostics = emitter or NullEmitter()
    styles: list[Style] = []
    for style_id, style_snapshot in snapshot.styles.items():
        style = validate_style(style_snapshot.to_style(style_id), emitter=diagnostics)
        if resources is not None:
            style = rehydrate(
                style, resources, loader=loader, emitter=diagnostics, pipeline=pipeline
            )
        styles.append(style)
    return StyleStore(
        styles,
        active_style_id=snapshot.active_style_id,
        settings=settings,
        emitter=emitter,
    )


def write_snapshot(path: str | Path, payload: Mapping[str, Any]) -> Path:
    """Write ``payload`` as YAML for ``.yaml``/``.yml`` paths and JSON otherwise."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.suffix.lower() in YAML_SUFFIXES:
        text = yaml.safe_dump(dict(payload), sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(payload, indent=2, ensure_ascii=False)
    target.write_text(text, encoding="utf-8")
    return target


def read_snapshot(path: str | Path) -> Any:
    source = Path(path)
    try:
        raw = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotFormatError(f"Unable to read snapshot '{source}'.") from exc
    try:
        if source.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(raw)
        return json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise SnapshotFormatError(f"Malformed snapshot '{source}'.") from exc


def save_store(store: StyleStore, path: str | Path) -> Path:
    return write_snapshot(path, serialize_store(store))


def load_store(
    path: str | Path,
    *,
    resources: Mapping[str, bytes] | None = None,
    loader: FontLoader = load_font_resource,
    settings: CascadeSettings | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> StyleStore:
    return deserialize_store(
        read_snapshot(path),
        resources=resources,
        loader=loader,
        settings=settings,
        emitter=emitter,
    )


__all__ = [
    "APP_NAME",
    "SNAPSHOT_VERSION",
    "FontLoader",
    "FontSnapshot",
    "StoreSnapshot",
    "StyleSnapshot",
    "deserialize_store",
    "deserialize_style",
    "load_store",
    "normalize_snapshot",
    "read_snapshot",
    "rehydrate",
    "save_store",
    "serialize_store",
    "serialize_style",
    "validate_store",
    "validate_style",
    "write_snapshot",
]
