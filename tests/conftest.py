from __future__ import annotations

from collections.abc import Iterable
import io

from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
import pytest

from fontcascade.fonts.models import Font, FontRole, Style


class SetGlyphProvider:
    def __init__(self, chars: str) -> None:
        self.chars = set(chars)

    def has_glyph(self, char: str) -> bool:
        return char in self.chars


def build_font_bytes(
    codepoints: Iterable[int],
    *,
    family: str = "Test Sans",
    weight: int = 400,
    weight_axis: tuple[float, float] | None = None,
) -> bytes:
    """Assemble a minimal TrueType font mapping each codepoint to a square glyph."""
    cps = sorted(set(codepoints))
    glyph_order = [".notdef", *[f"uni{cp:04X}" for cp in cps]]
    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder(glyph_order)
    builder.setupCharacterMap({cp: f"uni{cp:04X}" for cp in cps})

    pen = TTGlyphPen(None)
    pen.moveTo((100, 0))
    pen.lineTo((100, 700))
    pen.lineTo((500, 700))
    pen.lineTo((500, 0))
    pen.closePath()
    square = pen.glyph()
    builder.setupGlyf({name: square for name in glyph_order})
    builder.setupHorizontalMetrics({name: (600, 100) for name in glyph_order})
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({"familyName": family, "styleName": "Regular"})
    builder.setupOS2(usWeightClass=weight, sTypoAscender=800, sTypoDescender=-200)
    if weight_axis is not None:
        low, high = weight_axis
        builder.setupFvar(axes=[("wght", low, weight, high, "Weight")], instances=[])
    builder.setupPost()

    buffer = io.BytesIO()
    builder.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def style() -> Style:
    """Primary ``P`` plus uploaded fallback ``F1`` and system fallback ``F2``."""
    return Style(
        id="default",
        fonts=(
            Font(id="P", role=FontRole.PRIMARY, file_name="Primary.ttf", name="Primary"),
            Font(id="F1", file_name="Fallback.ttf", name="Fallback"),
            Font(id="F2", name="Arial"),
        ),
    )


@pytest.fixture
def shared_style(style: Style) -> Style:
    """``fr`` and ``es`` both soft-link ``F1``."""
    return Style(
        id=style.id,
        fonts=style.fonts,
        fallback_font_overrides={"fr": {"F1": "F1"}, "es": {"F1": "F1"}},
        configured_languages=("fr", "es"),
    )


@pytest.fixture
def font_bytes():
    return build_font_bytes


@pytest.fixture
def glyphs():
    return SetGlyphProvider
