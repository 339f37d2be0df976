from __future__ import annotations

from typing import List, Optional

import pytest
import pytesseract
from PIL import Image

from conftest import build_pdf
from engine.config import EngineConfig
from extractors.ocr_extractor import PdfiumPageRasterizer, TesseractOcrService, ocr_runs_to_annotations
from extractors.text_extractor import extract_text_with_ocr_fallback
from models.pdf_types import AnnotationKind, PositionedTextRun
from models.user_settings import UserSettings
from utils.validation import DocumentOpenError


class FixedRasterizer:
    def __init__(self):
        self.calls = []

    def render_page(self, file_bytes: bytes, page_number: int, target_width: Optional[int] = None) -> Image.Image:
        self.calls.append(page_number)
        return Image.new("RGB", (200, 100), "white")


class FakeOcr:
    def __init__(self, runs: List[PositionedTextRun]):
        self.runs = runs
        self.calls = 0

    def recognize(self, file_bytes: bytes, page_number: int) -> List[PositionedTextRun]:
        self.calls += 1
        return self.runs


TESSERACT_DATA = {
    "level": [1, 5, 5, 5, 5],
    "text": ["", "Hello", "  ", "world", "noise"],
    "conf": ["-1", "96.5", "90", "88", "-1"],
    "left": [0, 30, 0, 90, 0],
    "top": [0, 12, 0, 12, 0],
    "width": [200, 54, 0, 60, 5],
    "height": [100, 18, 0, 18, 5],
}


def test_tesseract_words_are_scaled_to_viewer_pixels(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def fake_image_to_data(image, lang=None, output_type=None):
        captured.update(lang=lang, output_type=output_type, size=image.size)
        return TESSERACT_DATA

    monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
    rasterizer = FixedRasterizer()
    service = TesseractOcrService(rasterizer=rasterizer, config=EngineConfig(ocr_render_scale=2.0))

    runs = service.recognize(b"%PDF", 3)

    assert rasterizer.calls == [3]
    assert captured["lang"] == "kor+eng"
    assert captured["output_type"] == pytesseract.Output.DICT
    assert [run.text for run in runs] == ["Hello", "world"]
    # 2x render: one image pixel is half a point, i.e. 2/3 of a viewer pixel
    assert (runs[0].x, runs[0].y, runs[0].width, runs[0].height) == pytest.approx((20.0, 8.0, 36.0, 12.0))


def test_ocr_runs_become_annotations_with_user_defaults() -> None:
    runs = [
        PositionedTextRun(text="Scan", x=1, y=2, width=30, height=10),
        PositionedTextRun(text=" ", x=1, y=2, width=30, height=10),
        PositionedTextRun(text="flat", x=1, y=2, width=30, height=0),
    ]
    settings = UserSettings(defaultFontFamily="Arial", defaultFontSize=18, defaultColor="#0000FF")

    annotations = ocr_runs_to_annotations(runs, 4, settings)

    assert len(annotations) == 1
    annotation = annotations[0]
    assert annotation.kind == AnnotationKind.OCR_TEXT
    assert annotation.content == "Scan"
    assert annotation.page == 4
    assert (annotation.fontFamily, annotation.fontSize, annotation.color) == ("Arial", 18, "#0000FF")
    assert annotation.bold is False


def test_fallback_uses_text_layer_when_present() -> None:
    pdf_bytes = build_pdf([b"BT /F1 12 Tf 72 700 Td (Layer) Tj ET"])
    service = FakeOcr([PositionedTextRun(text="ocr", x=0, y=0, width=1, height=1)])

    runs, used_ocr = extract_text_with_ocr_fallback(pdf_bytes, 1, service)

    assert [run.text for run in runs] == ["Layer"]
    assert not used_ocr
    assert service.calls == 0


def test_fallback_runs_ocr_for_image_only_documents() -> None:
    pdf_bytes = build_pdf([b"0 0 m 10 10 l S"])
    service = FakeOcr([PositionedTextRun(text="ocr", x=0, y=0, width=1, height=1)])

    runs, used_ocr = extract_text_with_ocr_fallback(pdf_bytes, 1, service)

    assert used_ocr
    assert [run.text for run in runs] == ["ocr"]


def test_fallback_runs_ocr_when_every_run_is_degenerate() -> None:
    pdf_bytes = build_pdf([b"BT /F1 0 Tf 72 700 Td (tiny) Tj ET"])
    service = FakeOcr([])

    runs, used_ocr = extract_text_with_ocr_fallback(pdf_bytes, 1, service)

    assert used_ocr
    assert runs == []


def test_fallback_without_service_returns_what_it_has() -> None:
    runs, used_ocr = extract_text_with_ocr_fallback(build_pdf([b""]), 1, None)

    assert runs == []
    assert not used_ocr


def test_pdfium_rasterizer_renders_at_requested_width(blank_pdf: bytes) -> None:
    image = PdfiumPageRasterizer().render_page(blank_pdf, 1, target_width=306)

    assert image.size[0] == 306
    assert image.size[1] == pytest.approx(396, abs=1)


def test_pdfium_rasterizer_reports_bad_input(blank_pdf: bytes) -> None:
    with pytest.raises(IndexError):
        PdfiumPageRasterizer().render_page(blank_pdf, 2)
    with pytest.raises(DocumentOpenError):
        PdfiumPageRasterizer().render_page(b"not a pdf", 1)
    with pytest.raises(ValueError):
        PdfiumPageRasterizer(default_scale=0)
