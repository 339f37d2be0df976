from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Iterable, Optional

import pikepdf
import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
from pikepdf import Array, Dictionary, Name

from engine.config import EngineConfig

ASCII_CODE_POINTS = list(range(0x20, 0x7F))
HANGUL_CODE_POINTS = [ord(ch) for ch in "가나다라한글"]

LETTER = (612, 792)


def helvetica(pdf: pikepdf.Pdf) -> Dictionary:
    return pdf.make_indirect(Dictionary(
        Type=Name.Font,
        Subtype=Name.Type1,
        BaseFont=Name.Helvetica,
        Encoding=Name.WinAnsiEncoding,
    ))


def make_form(pdf: pikepdf.Pdf, content: bytes, matrix: Optional[list] = None,
              resources: Optional[Dictionary] = None) -> pikepdf.Stream:
    form = pdf.make_stream(
        content,
        Type=Name.XObject,
        Subtype=Name.Form,
        BBox=Array([0, 0, 612, 792]),
    )
    if matrix is not None:
        form.Matrix = Array(matrix)
    if resources is not None:
        form.Resources = resources
    return form


def build_pdf(
    contents: Iterable[bytes] = (b"",),
    *,
    media_box: tuple = (0, 0) + LETTER,
    crop_box: Optional[tuple] = None,
    setup: Optional[Callable[[pikepdf.Pdf, pikepdf.Page], None]] = None,
) -> bytes:
    """One page per content stream, each with Helvetica as /F1."""
    pdf = pikepdf.new()
    for content in contents:
        page = pdf.add_blank_page(page_size=(media_box[2] - media_box[0], media_box[3] - media_box[1]))
        page.obj.MediaBox = Array(list(media_box))
        if crop_box is not None:
            page.obj.CropBox = Array(list(crop_box))
        page.obj.Contents = pdf.make_stream(content)
        page.obj.Resources = Dictionary(Font=Dictionary(F1=helvetica(pdf)))
        if setup is not None:
            setup(pdf, page)

    buffer = io.BytesIO()
    pdf.save(buffer)
    return buffer.getvalue()


def write_test_font(path: Path, family: str, code_points: Iterable[int]) -> Path:
    """A TrueType font with one box glyph (500 units wide) per code point."""
    code_points = sorted(set(code_points))
    glyph_names = ['.notdef'] + [f'uni{cp:04X}' for cp in code_points]

    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder(glyph_names)
    builder.setupCharacterMap({cp: f'uni{cp:04X}' for cp in code_points})

    glyphs = {}
    metrics = {}
    for name in glyph_names:
        pen = TTGlyphPen(None)
        if name != 'uni0020':
            pen.moveTo((50, 0))
            pen.lineTo((50, 700))
            pen.lineTo((450, 700))
            pen.lineTo((450, 0))
            pen.closePath()
        glyphs[name] = pen.glyph()
        metrics[name] = (500, 50 if name != 'uni0020' else 0)

    builder.setupGlyf(glyphs)
    builder.setupHorizontalMetrics(metrics)
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({
        'familyName': family,
        'styleName': 'Regular',
        'psName': family.replace(' ', '') + '-Regular',
    })
    builder.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    builder.setupPost()
    builder.save(str(path))
    return path


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture()
def blank_pdf() -> bytes:
    return build_pdf()


@pytest.fixture()
def two_page_pdf() -> bytes:
    return build_pdf([
        b"BT /F1 12 Tf 72 700 Td (First) Tj ET",
        b"BT /F1 12 Tf 72 700 Td (Second) Tj ET",
    ])


@pytest.fixture()
def font_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "fonts"
    directory.mkdir()
    write_test_font(directory / "testsans.ttf", "Test Sans", ASCII_CODE_POINTS)
    write_test_font(directory / "testcjk.ttf", "Test CJK", ASCII_CODE_POINTS + HANGUL_CODE_POINTS)
    return directory


@pytest.fixture()
def font_config(font_dir: Path) -> EngineConfig:
    return EngineConfig(
        font_directories=[str(font_dir)],
        font_files={
            "Test Sans": "testsans.ttf",
            "Test CJK": "testcjk.ttf",
        },
        cjk_fallback_family="Test CJK",
        universal_fallback_family="Helvetica",
    )
