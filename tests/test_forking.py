from dataclasses import replace

import pytest

from fontcascade.core.diagnostics import RecordingEmitter
from fontcascade.fonts.forking import (
    add_language_specific_fallback_font,
    add_language_specific_primary_font,
    assign_font_to_languages,
    clear_fallback_override,
    clear_primary_override,
    map_language_to_font,
    release_font,
    split_font,
    unmap_font,
    unmap_language,
    update_scoped_setting,
)
from fontcascade.fonts.library import toggle_font_visibility, update_font_property
from fontcascade.fonts.models import (
    SYSTEM_FONT_ID,
    CloneOrigin,
    Font,
    FontRole,
    FontScope,
    FontSettings,
    Style,
)
from fontcascade.fonts.resolver import effective_settings, language_settings
from fontcascade.fonts.stack import build_stack


def test_scoped_edit_forks_soft_linked_language(shared_style: Style) -> None:
    emitter = RecordingEmitter()

    result = update_scoped_setting(shared_style, "F1", "fr", "scale", 120, emitter=emitter)

    clone_id = result.fallback_font_overrides["fr"]["F1"]
    assert clone_id != "F1"
    clone = result.font(clone_id)
    assert clone.is_clone
    assert clone.parent_id == "F1"
    assert clone.scope is FontScope.LANGUAGE_SPECIFIC
    assert clone.role is FontRole.FALLBACK
    assert clone.file_name == "Fallback.ttf"
    assert clone.settings.scale == 120
    assert result.fallback_font_overrides["es"] == {"F1": "F1"}
    assert result.font("F1").settings.scale is None
    assert effective_settings(result, clone_id).scale == 120
    assert language_settings(result, "F1", "es").scale == 100
    assert len(shared_style.fonts) == 3
    assert shared_style.fallback_font_overrides["fr"] == {"F1": "F1"}


def test_edit_on_owned_clone_stays_in_place(shared_style: Style) -> None:
    forked = update_scoped_setting(shared_style, "F1", "fr", "scale", 120)
    clone_id = forked.fallback_font_overrides["fr"]["F1"]

    again = update_scoped_setting(forked, "F1", "fr", "letterSpacing", 0.2)
    direct = update_scoped_setting(again, clone_id, "fr", "scale", 130)

    assert len(again.fonts) == len(forked.fonts)
    assert len(direct.fonts) == len(forked.fonts)
    assert again.fallback_font_overrides["fr"]["F1"] == clone_id
    assert direct.font(clone_id).settings.letter_spacing == 0.2
    assert direct.font(clone_id).settings.scale == 130


def test_shared_clone_is_forked_again(style: Style) -> None:
    clone = Font(
        id="C1",
        origin=CloneOrigin(parent_id="F1"),
        scope=FontScope.LANGUAGE_SPECIFIC,
        file_name="Fallback.ttf",
        name="Fallback",
        settings=FontSettings(scale=110),
    )
    style = replace(
        style,
        fonts=(*style.fonts, clone),
        fallback_font_overrides={"fr": {"F1": "C1"}, "es": {"F1": "C1"}},
    )
    emitter = RecordingEmitter()

    result = update_scoped_setting(style, "F1", "fr", "scale", 140, emitter=emitter)

    fr_id = result.fallback_font_overrides["fr"]["F1"]
    assert fr_id not in {"C1", "F1"}
    assert result.fallback_font_overrides["es"] == {"F1": "C1"}
    assert result.font(fr_id).parent_id == "F1"
    assert language_settings(result, "F1", "fr").scale == 140
    assert language_settings(result, "F1", "es").scale == 110
    conflicts = emitter.consume_events("shared_mapping_conflict")
    assert conflicts == [{"language": "fr", "font_id": "C1", "original_id": "F1"}]


def test_fork_isolation_in_both_directions(shared_style: Style) -> None:
    style = update_scoped_setting(shared_style, "F1", "fr", "scale", 120)
    style = update_scoped_setting(style, "F1", "es", "scale", 80)

    assert language_settings(style, "F1", "fr").scale == 120
    assert language_settings(style, "F1", "es").scale == 80
    assert effective_settings(style, "F1").scale == 100


def test_parent_edits_propagate_until_clone_overrides(shared_style: Style) -> None:
    style = update_scoped_setting(shared_style, "F1", "fr", "letterSpacing", 0.3)
    clone_id = style.fallback_font_overrides["fr"]["F1"]

    style = update_font_property(style, "F1", "scale", 130)
    assert effective_settings(style, clone_id).scale == 130

    style = update_scoped_setting(style, "F1", "fr", "scale", 120)
    assert effective_settings(style, clone_id).scale == 120
    assert effective_settings(style, "F1").scale == 130


def test_new_clone_inherits_visibility_and_color(shared_style: Style) -> None:
    style = toggle_font_visibility(shared_style, "F1")
    style = update_font_property(style, "F1", "color", "#00ff00")

    style = update_scoped_setting(style, "F1", "fr", "scale", 120)

    clone_id = style.fallback_font_overrides["fr"]["F1"]
    assert style.font(clone_id).settings.hidden is None
    settings = effective_settings(style, clone_id)
    assert settings.hidden
    assert settings.color == "#00ff00"
    fr_stack = [entry.font_id for entry in build_stack(style, "fr")]
    assert clone_id not in fr_stack
    assert "F1" not in fr_stack

    shown = toggle_font_visibility(style, clone_id)
    assert shown.font(clone_id).settings.hidden is False
    assert clone_id in [entry.font_id for entry in build_stack(shown, "fr")]

    style = update_font_property(style, "F1", "hidden", False)
    assert clone_id in [entry.font_id for entry in build_stack(style, "fr")]


def test_unmapped_language_gets_a_clone(style: Style) -> None:
    result = update_scoped_setting(style, "F1", "de", "scale", 80)

    clone_id = result.fallback_font_overrides["de"]["F1"]
    assert result.font(clone_id).is_clone
    assert "de" in result.configured_languages


def test_editing_primary_creates_primary_stand_in(style: Style) -> None:
    result = update_scoped_setting(style, "P", "ja", "lineHeight", 1.8)

    stand_in_id = result.primary_font_overrides["ja"]
    stand_in = result.font(stand_in_id)
    assert stand_in.is_primary_override
    assert stand_in.role is FontRole.FALLBACK
    assert stand_in.parent_id == "P"
    assert effective_settings(result, stand_in_id).line_height == 1.8
    assert result.primary_font.id == "P"
    assert "ja" not in result.fallback_font_overrides


def test_unknown_font_is_ignored(style: Style) -> None:
    emitter = RecordingEmitter()

    result = update_scoped_setting(style, "nope", "fr", "scale", 90, emitter=emitter)

    assert result is style
    assert emitter.warnings


def test_unknown_property_is_rejected(style: Style) -> None:
    with pytest.raises(ValueError):
        update_scoped_setting(style, "F1", "fr", "kerning", 1)


def test_split_font_is_idempotent(shared_style: Style) -> None:
    split = split_font(shared_style, "F1", "fr")
    clone_id = split.fallback_font_overrides["fr"]["F1"]

    assert split.font(clone_id).settings == FontSettings()
    assert split_font(split, "F1", "fr") is split


def test_unmapping_language_upload_promotes_it(style: Style) -> None:
    emitter = RecordingEmitter()
    upload = Font(id="V", file_name="Viet.ttf", name="Viet")
    style = add_language_specific_fallback_font(style, "vi", upload, emitter=emitter)
    assert style.font("V").scope is FontScope.LANGUAGE_SPECIFIC
    assert style.fallback_font_overrides["vi"] == {"V": "V"}

    result = unmap_font(style, "V", emitter=emitter)

    promoted = result.font("V")
    assert promoted is not None
    assert promoted.scope is FontScope.GLOBAL
    assert not promoted.is_clone
    assert "vi" not in result.fallback_font_overrides
    assert emitter.consume_events("font_promoted") == [{"font_id": "V"}]


def test_unmapping_derived_clone_deletes_it(shared_style: Style) -> None:
    emitter = RecordingEmitter()
    style = update_scoped_setting(shared_style, "F1", "fr", "scale", 120)
    clone_id = style.fallback_font_overrides["fr"]["F1"]

    result = unmap_font(style, clone_id, emitter=emitter)

    assert result.font(clone_id) is None
    assert "fr" not in result.fallback_font_overrides
    assert result.fallback_font_overrides["es"] == {"F1": "F1"}
    assert emitter.consume_events("font_deleted") == [{"font_id": clone_id}]


def test_legacy_clone_without_parent_is_promoted(style: Style) -> None:
    legacy = Font(
        id="L",
        origin=CloneOrigin(),
        scope=FontScope.LANGUAGE_SPECIFIC,
        file_name="Unique.ttf",
    )
    style = replace(
        style, fonts=(*style.fonts, legacy), fallback_font_overrides={"th": {"L": "L"}}
    )

    result = unmap_language(style, "th")

    assert not result.font("L").is_clone
    assert result.font("L").scope is FontScope.GLOBAL


def test_release_keeps_referenced_and_primary_fonts(shared_style: Style) -> None:
    assert release_font(shared_style, "F1") is shared_style
    assert release_font(shared_style, "P") is shared_style


def test_map_language_to_system_only(shared_style: Style) -> None:
    result = map_language_to_font(shared_style, "zh", SYSTEM_FONT_ID)

    assert result.fallback_font_overrides["zh"] == SYSTEM_FONT_ID
    assert "zh" in result.configured_languages


def test_remapping_releases_previous_clone(shared_style: Style) -> None:
    style = update_scoped_setting(shared_style, "F1", "fr", "scale", 120)
    clone_id = style.fallback_font_overrides["fr"]["F1"]

    result = map_language_to_font(style, "fr", "F2")

    assert result.fallback_font_overrides["fr"] == {"F2": "F2"}
    assert result.font(clone_id) is None


def test_map_to_missing_font_is_a_no_op(style: Style) -> None:
    emitter = RecordingEmitter()

    assert map_language_to_font(style, "fr", "ghost", emitter=emitter) is style
    assert emitter.warnings


def test_assign_font_to_languages_soft_links_each(style: Style) -> None:
    result = assign_font_to_languages(style, "F2", ["fr", "es", "fr"])

    assert result.fallback_font_overrides == {"fr": {"F2": "F2"}, "es": {"F2": "F2"}}
    assert result.configured_languages == ("fr", "es")


def test_unmap_language_keeps_primary_languages_configured(shared_style: Style) -> None:
    style = replace(shared_style, primary_languages=("fr",))

    result = unmap_language(style, "fr")
    result = unmap_language(result, "es")

    assert "fr" not in result.fallback_font_overrides
    assert result.configured_languages == ("fr",)


def test_language_specific_primary_font(style: Style) -> None:
    result = add_language_specific_primary_font(style, "ar")

    stand_in_id = result.primary_font_overrides["ar"]
    stand_in = result.font(stand_in_id)
    assert stand_in.parent_id == "P"
    assert stand_in.is_primary_override
    assert stand_in.file_name == "Primary.ttf"

    again = add_language_specific_primary_font(result, "ar", only_if_missing=True)
    assert len(again.fonts) == len(result.fonts)


def test_clear_overrides_separately(style: Style) -> None:
    style = add_language_specific_primary_font(style, "ar")
    style = map_language_to_font(style, "ar", "F2")
    stand_in_id = style.primary_font_overrides["ar"]

    without_fallback = clear_fallback_override(style, "ar")
    assert without_fallback.primary_font_overrides["ar"] == stand_in_id
    assert "ar" not in without_fallback.fallback_font_overrides

    without_primary = clear_primary_override(style, "ar")
    assert "ar" not in without_primary.primary_font_overrides
    assert without_primary.font(stand_in_id) is None
    assert without_primary.fallback_font_overrides["ar"] == {"F2": "F2"}
