"""Font-loading collaborator backed by fontTools."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import io
from pathlib import Path

from fontTools.ttLib import TTFont, TTLibError

from fontcascade.core.exceptions import FontLoadError
from fontcascade.fonts.models import FontMetadata


FONT_SUFFIXES = {".ttf", ".otf", ".woff", ".woff2", ".ttc"}


@dataclass(frozen=True, slots=True)
class CmapGlyphProvider:
    """Glyph coverage answered from the codepoints of a font's best cmap."""

    codepoints: frozenset[int]

    @classmethod
    def from_codepoints(cls, codepoints: Iterable[int]) -> CmapGlyphProvider:
        return cls(frozenset(codepoints))

    def has_glyph(self, char: str) -> bool:
        if not char:
            return False
        return ord(char[0]) in self.codepoints

    def __len__(self) -> int:
        return len(self.codepoints)


@dataclass(frozen=True, slots=True)
class LoadedFont:
    """Result handed back to the store after parsing a resource."""

    glyph_provider: CmapGlyphProvider
    metadata: FontMetadata
    family_name: str | None = None


def _weight_axis(font: TTFont) -> tuple[float, float] | None:
    if "fvar" not in font:
        return None
    for axis in font["fvar"].axes:
        if axis.axisTag == "wght":
            return (float(axis.minValue), float(axis.maxValue))
    return None


def _static_weight(font: TTFont) -> int | None:
    if "OS/2" not in font:
        return None
    return int(font["OS/2"].usWeightClass)


def _family_name(font: TTFont) -> str | None:
    if "name" not in font:
        return None
    return font["name"].getBestFamilyName()


def load_font_resource(data: bytes, file_name: str | None = None) -> LoadedFont:
    """Parse ``data`` and return its glyph coverage and metadata.

    Any parsing problem surfaces as :class:`FontLoadError`.
    """
    if not data:
        raise FontLoadError("Font resource is empty.", file_name=file_name)
    try:
        font = TTFont(io.BytesIO(data), lazy=False)
        try:
            cmap = font.getBestCmap() or {}
            axis = _weight_axis(font)
            metadata = FontMetadata(
                is_variable=axis is not None,
                weight_axis_range=axis,
                static_weight=None if axis is not None else _static_weight(font),
            )
            family = _family_name(font)
        finally:
            font.close()
    except TTLibError as exc:
        raise FontLoadError(
            f"Unreadable font '{file_name or '<memory>'}': {exc}", file_name=file_name
        ) from exc
    except Exception as exc:
        raise FontLoadError(
            f"Failed to parse font '{file_name or '<memory>'}'.", file_name=file_name
        ) from exc

    return LoadedFont(
        glyph_provider=CmapGlyphProvider.from_codepoints(cmap.keys()),
        metadata=metadata,
        family_name=family,
    )


def load_font_file(path: str | Path) -> LoadedFont:
    """Read and parse a font file from disk."""
    font_path = Path(path)
    try:
        data = font_path.read_bytes()
    except OSError as exc:
        raise FontLoadError(f"Unable to read '{font_path}'.", file_name=font_path.name) from exc
    return load_font_resource(data, file_name=font_path.name)


def load_resources(directory: str | Path) -> dict[str, bytes]:
    """Collect ``file name -> bytes`` for every font file under ``directory``."""
    root = Path(directory)
    resources: dict[str, bytes] = {}
    if not root.is_dir():
        return resources
    for path in sorted(root.rglob("*")):
        if path.is_file() and path.suffix.lower() in FONT_SUFFIXES:
            resources[path.name] = path.read_bytes()
    return resources


__all__ = [
    "FONT_SUFFIXES",
    "CmapGlyphProvider",
    "LoadedFont",
    "load_font_file",
    "load_font_resource",
    "load_resources",
]
