"""Custom exception hierarchy for the font cascade engine."""

from __future__ import annotations


class FontCascadeError(RuntimeError):
    """Base exception for font cascade failures."""


class FontLoadError(FontCascadeError):
    """Raised when a binary font resource cannot be parsed."""

    def __init__(self, message: str, *, file_name: str | None = None) -> None:
        super().__init__(message)
        self.file_name = file_name


class SnapshotFormatError(FontCascadeError):
    """Raised when a persisted payload is not a recognisable snapshot."""


class ConfigurationError(FontCascadeError):
    """Raised when cascade settings cannot be loaded or validated."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the first line of every message along the cause chain of ``exc``."""
    messages: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines = [line.strip() for line in str(current).splitlines() if line.strip()]
        if lines:
            messages.append(lines[0])
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "ConfigurationError",
    "FontCascadeError",
    "FontLoadError",
    "SnapshotFormatError",
    "exception_hint",
    "exception_messages",
]
