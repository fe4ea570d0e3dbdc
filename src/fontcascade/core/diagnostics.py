"""Diagnostic abstractions shared by the store, forking, and persistence layers."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Protocol, runtime_checkable


EMITTER_LOGGER = "fontcascade.diagnostics"


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Receiver for cascade warnings and structured events."""

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Drops every diagnostic."""

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Warnings go to ``logging`` as-is; known events are summarised at INFO."""

    def __init__(self, name: str = EMITTER_LOGGER) -> None:
        self._logger = logging.getLogger(name)

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self._logger.warning(message, exc_info=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message is None:
            self._logger.debug("%s: %s", name, dict(payload))
        else:
            self._logger.info(message)


class RecordingEmitter:
    """Keeps warnings and events in memory."""

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))

    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]

    def consume_events(self, name: str) -> list[dict[str, Any]]:
        """Return and drop every recorded payload for ``name``."""
        matched = [payload for event, payload in self.events if event == name]
        self.events = [(event, payload) for event, payload in self.events if event != name]
        return matched


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a human-friendly summary for selected diagnostic events."""
    data = dict(payload)

    if name == "dangling_override":
        language = data.get("language") or "<unknown>"
        target = data.get("target") or "<unknown>"
        kind = data.get("map") or "fallback"
        return f"Dropped dangling {kind} override for '{language}' -> '{target}'"

    if name == "font_load_failure":
        file_name = data.get("file_name") or data.get("font_id") or "<unknown>"
        reason = data.get("reason")
        suffix = f" ({reason})" if reason else ""
        return f"Font could not be loaded, glyph coverage disabled: {file_name}{suffix}"

    if name == "identity_collision":
        signature = data.get("signature") or "<unknown>"
        existing = data.get("existing")
        suffix = f" (already present as '{existing}')" if existing else ""
        return f"Skipped duplicate font upload: {signature}{suffix}"

    if name == "font_promoted":
        return f"Promoted font '{data.get('font_id')}' to a global fallback"

    if name == "font_deleted":
        return f"Deleted orphaned font '{data.get('font_id')}'"

    return None


__all__ = [
    "EMITTER_LOGGER",
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "RecordingEmitter",
    "format_event_message",
]
