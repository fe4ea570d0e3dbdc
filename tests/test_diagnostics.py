from __future__ import annotations

import logging

import pytest

from fontcascade.core.diagnostics import (
    EMITTER_LOGGER,
    LoggingEmitter,
    NullEmitter,
    RecordingEmitter,
    format_event_message,
)
from fontcascade.core.exceptions import FontLoadError, exception_hint, exception_messages


def test_null_emitter_is_noop(caplog: pytest.LogCaptureFixture) -> None:
    emitter = NullEmitter()
    with caplog.at_level(logging.DEBUG):
        emitter.warning("nothing to see")
        emitter.event("ignored", {"value": 1})
    assert not caplog.records


def test_logging_emitter_logs_warnings(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter()
    error = FontLoadError("bad cmap")
    with caplog.at_level(logging.WARNING, logger=EMITTER_LOGGER):
        emitter.warning("careful")
        emitter.warning("load failed", error)
    assert [record.message for record in caplog.records] == ["careful", "load failed"]
    assert caplog.records[0].exc_info is None
    assert caplog.records[1].exc_info[1] is error
    assert all(record.name == EMITTER_LOGGER for record in caplog.records)


def test_unknown_events_are_logged_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter("fontcascade.tests")
    with caplog.at_level(logging.DEBUG, logger="fontcascade.tests"):
        emitter.event("custom", {"value": 1})
    assert [(record.levelno, record.message) for record in caplog.records] == [
        (logging.DEBUG, "custom: {'value': 1}")
    ]


def test_logging_emitter_summarises_known_events(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter()
    with caplog.at_level(logging.INFO):
        emitter.event("font_load_failure", {"file_name": "Broken.ttf", "reason": "bad cmap"})
    assert any(
        record.message
        == "Font could not be loaded, glyph coverage disabled: Broken.ttf (bad cmap)"
        for record in caplog.records
    )


def test_recording_emitter_collects_everything() -> None:
    emitter = RecordingEmitter()
    emitter.warning("careful")
    emitter.event("font_deleted", {"font_id": "a"})
    emitter.event("font_promoted", {"font_id": "b"})

    assert emitter.warnings == ["careful"]
    assert emitter.event_names() == ["font_deleted", "font_promoted"]
    assert emitter.consume_events("font_deleted") == [{"font_id": "a"}]
    assert emitter.events == [("font_promoted", {"font_id": "b"})]


def test_format_event_message() -> None:
    assert (
        format_event_message(
            "dangling_override", {"language": "he", "target": "GHOST", "map": "fallback"}
        )
        == "Dropped dangling fallback override for 'he' -> 'GHOST'"
    )
    assert format_event_message("identity_collision", {"signature": "Inter.ttf"}) == (
        "Skipped duplicate font upload: Inter.ttf"
    )
    assert format_event_message("unknown", {}) is None


def test_exception_chain_helpers() -> None:
    try:
        try:
            raise ValueError("cmap table missing")
        except ValueError as exc:
            raise FontLoadError("Unreadable font 'A.ttf'", file_name="A.ttf") from exc
    except FontLoadError as error:
        assert exception_messages(error) == ["Unreadable font 'A.ttf'", "cmap table missing"]
        assert exception_hint(error) == "cmap table missing"
