from dataclasses import replace
from datetime import datetime, timezone
import json

import pytest

from fontcascade.core.diagnostics import RecordingEmitter
from fontcascade.core.exceptions import FontLoadError, SnapshotFormatError
from fontcascade.fonts.forking import add_language_specific_fallback_font, update_scoped_setting
from fontcascade.fonts.loader import CmapGlyphProvider, LoadedFont
from fontcascade.fonts.models import (
    SYSTEM_FONT_ID,
    CloneOrigin,
    Font,
    FontMetadata,
    FontRole,
    FontScope,
    FontStatus,
    Style,
    SystemFallbackOverride,
)
from fontcascade.fonts.persistence import (
    deserialize_store,
    deserialize_style,
    load_store,
    normalize_snapshot,
    read_snapshot,
    rehydrate,
    save_store,
    serialize_store,
    serialize_style,
    validate_style,
)
from fontcascade.fonts.store import StyleStore


def _fake_loader(data: bytes, file_name: str | None = None) -> LoadedFont:
    if data == b"broken":
        raise FontLoadError("bad table", file_name=file_name)
    return LoadedFont(
        glyph_provider=CmapGlyphProvider.from_codepoints(data),
        metadata=FontMetadata(),
    )


@pytest.fixture
def rich_style(shared_style: Style) -> Style:
    style = update_scoped_setting(shared_style, "F1", "fr", "scale", 120)
    style = update_scoped_setting(style, "P", "ja", "lineHeight", 1.8)
    style = add_language_specific_fallback_font(
        style, "vi", Font(id="V", file_name="Viet.ttf", name="Viet")
    )
    return replace(
        style,
        fallback_font_overrides={**style.fallback_font_overrides, "zh": SYSTEM_FONT_ID},
        system_fallback_overrides={"ko": SystemFallbackOverride(family="Batang", scale=95)},
        primary_languages=("fr",),
    )


def test_serialized_style_is_json_compatible(rich_style: Style) -> None:
    payload = serialize_style(rich_style)

    assert json.loads(json.dumps(payload)) == payload
    fonts = {font["id"]: font for font in payload["fonts"]}
    clone_id = rich_style.fallback_font_overrides["fr"]["F1"]
    assert fonts[clone_id]["origin"] == "clone"
    assert fonts[clone_id]["parentId"] == "F1"
    assert fonts[clone_id]["scale"] == 120
    assert fonts["V"]["scope"] == "language_specific"
    assert "glyphProvider" not in fonts["P"]
    assert payload["fallbackFamily"] == "sans-serif"
    assert payload["systemFallbackOverrides"] == {"ko": {"family": "Batang", "scale": 95}}


def test_round_trip_preserves_fonts_and_maps(rich_style: Style) -> None:
    resources = {"Primary.ttf": b"ab", "Fallback.ttf": b"cd", "Viet.ttf": b"ef"}

    restored = validate_style(deserialize_style(serialize_style(rich_style)))
    restored = rehydrate(restored, resources, loader=_fake_loader)

    assert restored == rich_style
    assert restored.fonts == rich_style.fonts
    assert restored.fallback_font_overrides == rich_style.fallback_font_overrides
    assert restored.primary_font_overrides == rich_style.primary_font_overrides
    assert restored.font("F1").glyph_provider.has_glyph("d")
    assert restored.font("F2").glyph_provider is None


def test_rehydrate_degrades_unloadable_fonts(style: Style) -> None:
    emitter = RecordingEmitter()

    restored = rehydrate(
        style, {"Primary.ttf": b"broken"}, loader=_fake_loader, emitter=emitter
    )

    assert restored.font("P").status is FontStatus.DEGRADED
    assert restored.font("P").glyph_provider is None
    assert restored.font("F1").status is FontStatus.DEGRADED
    assert restored.font("F2").status is FontStatus.READY
    failures = emitter.consume_events("font_load_failure")
    assert [failure["font_id"] for failure in failures] == ["P", "F1"]
    assert "bad table" in failures[0]["reason"]
    assert len(emitter.warnings) == 2


def test_validation_drops_dangling_entry(style: Style) -> None:
    style = replace(style, fallback_font_overrides={"he": {"F9": "GHOST"}})
    emitter = RecordingEmitter()

    result = validate_style(style, emitter=emitter)

    assert result.fallback_font_overrides == {"he": {}}
    assert result.fonts == style.fonts
    assert result.primary_font_overrides == {}
    assert emitter.consume_events("dangling_override") == [
        {"language": "he", "target": "GHOST", "map": "fallback"}
    ]


def test_validation_is_idempotent(rich_style: Style) -> None:
    orphan = Font(
        id="orphan",
        origin=CloneOrigin(parent_id="F1"),
        scope=FontScope.LANGUAGE_SPECIFIC,
        file_name="Fallback.ttf",
    )
    broken = replace(
        rich_style,
        fonts=(*rich_style.fonts, orphan),
        primary_font_overrides={**rich_style.primary_font_overrides, "he": "GHOST"},
        fallback_font_overrides={**rich_style.fallback_font_overrides, "ru": "GHOST"},
    )

    once = validate_style(broken)
    twice = validate_style(once)

    assert once.font("orphan") is None
    assert "he" not in once.primary_font_overrides
    assert "ru" not in once.fallback_font_overrides
    assert twice == once
    assert twice.fallback_font_overrides == once.fallback_font_overrides


def test_validation_keeps_a_single_primary(style: Style) -> None:
    extra = Font(id="P2", role=FontRole.PRIMARY, file_name="Other.ttf")
    style = replace(style, fonts=(*style.fonts, extra))

    result = validate_style(style)

    assert result.primary_font.id == "P"
    assert result.font("P2").role is FontRole.FALLBACK


def test_store_round_trip_through_files(tmp_path, rich_style: Style) -> None:
    store = StyleStore([rich_style, Style(id="print")], active_style_id="print")

    for name in ("snapshot.json", "snapshot.yaml"):
        path = save_store(store, tmp_path / name)
        loaded = load_store(path)

        assert loaded.style_ids == ("default", "print")
        assert loaded.active_style_id == "print"
        assert loaded.get_style("default") == rich_style


def test_envelope_metadata(style: Style) -> None:
    stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)

    payload = serialize_store(StyleStore([style]), exported_at=stamp)

    assert payload["metadata"] == {
        "version": 1,
        "appName": "fontcascade",
        "exportedAt": "2024-05-01T00:00:00+00:00",
    }
    assert payload["data"]["activeStyleId"] == "default"
    assert normalize_snapshot(payload) == payload["data"]


def test_legacy_payload_is_accepted() -> None:
    payload = {
        "activeFontStyleId": "old",
        "fontStyles": {
            "old": {
                "fallbackFont": "serif",
                "fonts": [
                    {"id": "p", "type": "primary", "fileName": "Main.ttf"},
                    {
                        "id": "pc",
                        "type": "primary",
                        "isClone": True,
                        "isLangSpecific": True,
                        "fileName": "Main.ttf",
                    },
                    {"id": "f", "type": "fallback", "name": "Arial"},
                ],
                "primaryFontOverrides": {"ar": "pc"},
            }
        },
    }

    store = deserialize_store(payload)

    style = store.get_style("old")
    assert store.active_style_id == "old"
    assert style.fallback_family == "serif"
    assert style.primary_font.id == "p"
    stand_in = style.font("pc")
    assert stand_in.is_clone
    assert stand_in.is_primary_override
    assert stand_in.role is FontRole.FALLBACK
    assert stand_in.scope is FontScope.LANGUAGE_SPECIFIC


def test_deserialize_store_rehydrates_when_resources_given(style: Style) -> None:
    payload = serialize_store(StyleStore([style]))

    store = deserialize_store(payload, resources={"Primary.ttf": b"a"}, loader=_fake_loader)

    restored = store.get_style()
    assert restored.font("P").status is FontStatus.READY
    assert restored.font("F1").status is FontStatus.DEGRADED


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"unrelated": True},
        {"metadata": {"version": 99}, "data": {"styles": {}}},
    ],
)
def test_unrecognised_snapshots_are_rejected(payload) -> None:
    with pytest.raises(SnapshotFormatError):
        deserialize_store(payload)


def test_invalid_style_payload_is_rejected() -> None:
    with pytest.raises(SnapshotFormatError):
        deserialize_style({"id": "s", "fonts": [{"name": "no id"}]})


def test_malformed_snapshot_file(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SnapshotFormatError):
        read_snapshot(path)
    with pytest.raises(SnapshotFormatError):
        read_snapshot(tmp_path / "missing.json")
