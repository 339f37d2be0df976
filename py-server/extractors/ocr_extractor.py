"""
OCR collaborators

Page rasterization with pypdfium2 and word recognition with Tesseract.
Both sit behind small protocols so the extraction pipeline can be driven by
any rasterizer or recognizer, including test doubles.
"""

import logging
from typing import List, Optional, Protocol

import pypdfium2 as pdfium
import pytesseract
from PIL import Image

from engine.config import EngineConfig
from models.pdf_types import Annotation, AnnotationKind, PositionedTextRun
from models.user_settings import UserSettings
from utils.pdf_transforms import POINTS_PER_INCH, PIXELS_PER_POINT
from utils.validation import DocumentOpenError, validate_page_number

logger = logging.getLogger(__name__)

# Tesseract's word level in image_to_data output
TESSERACT_WORD_LEVEL = 5


class PageRasterizer(Protocol):
    def render_page(self, file_bytes: bytes, page_number: int, target_width: Optional[int] = None) -> Image.Image:
        ...


class OcrService(Protocol):
    def recognize(self, file_bytes: bytes, page_number: int) -> List[PositionedTextRun]:
        ...


class PdfiumPageRasterizer:
    """Renders the crop box of a page to a PIL image."""

    def __init__(self, default_scale: float = 1.0):
        if default_scale <= 0:
            raise ValueError("default_scale must be positive")
        self.default_scale = default_scale

    def render_page(self, file_bytes: bytes, page_number: int, target_width: Optional[int] = None) -> Image.Image:
        """
        Render a 1-based page.

        With ``target_width`` the scale is chosen so the image is that many
        pixels wide; otherwise ``default_scale`` (1.0 = 72 dpi) is used.

        Raises:
            DocumentOpenError: If pdfium cannot open the document
            IndexError: If the page does not exist
        """
        try:
            pdf = pdfium.PdfDocument(file_bytes)
        except pdfium.PdfiumError as e:
            raise DocumentOpenError(f"Unable to open PDF for rendering: {e}") from e

        try:
            validate_page_number(page_number, len(pdf))
            page = pdf[page_number - 1]
            try:
                scale = self.default_scale
                if target_width:
                    width = page.get_width()
                    if width > 0:
                        scale = target_width / width
                bitmap = page.render(scale=scale)
                image = bitmap.to_pil()
                logger.debug(f"Rendered page {page_number} at scale {scale:.3f}: {image.size}")
                return image
            finally:
                page.close()
        finally:
            pdf.close()


class TesseractOcrService:
    """
    Word-level OCR of a rendered page.

    Word boxes are returned in viewer pixels relative to the page's crop box,
    the same space ``extract_text`` produces.
    """

    def __init__(self, rasterizer: Optional[PageRasterizer] = None, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.default()
        # A custom rasterizer must render at config.ocr_render_scale
        self.render_scale = self.config.ocr_render_scale
        self.rasterizer = rasterizer or PdfiumPageRasterizer(default_scale=self.render_scale)

    def recognize(self, file_bytes: bytes, page_number: int) -> List[PositionedTextRun]:
        image = self.rasterizer.render_page(file_bytes, page_number)
        to_viewer = PIXELS_PER_POINT / self.render_scale

        data = pytesseract.image_to_data(
            image,
            lang=self.config.ocr_languages,
            output_type=pytesseract.Output.DICT,
        )

        runs: List[PositionedTextRun] = []
        for i, text in enumerate(data.get('text', [])):
            if not text or not text.strip():
                continue
            if int(data['level'][i]) != TESSERACT_WORD_LEVEL:
                continue
            try:
                if float(data['conf'][i]) < 0:
                    continue
            except (TypeError, ValueError):
                continue

            runs.append(PositionedTextRun(
                text=text.strip(),
                x=data['left'][i] * to_viewer,
                y=data['top'][i] * to_viewer,
                width=data['width'][i] * to_viewer,
                height=data['height'][i] * to_viewer,
            ))

        logger.info(f"OCR recognized {len(runs)} words on page {page_number} "
                    f"({image.size[0]}x{image.size[1]} px, {POINTS_PER_INCH * self.render_scale:.0f} dpi)")
        return runs


def ocr_runs_to_annotations(
    runs: List[PositionedTextRun],
    page_number: int,
    settings: Optional[UserSettings] = None,
) -> List[Annotation]:
    """OcrText annotations for recognized runs, styled with the user's defaults."""
    settings = settings or UserSettings()
    annotations = []
    for run in runs:
        if not run.text.strip() or not run.has_area:
            continue
        annotations.append(Annotation(
            kind=AnnotationKind.OCR_TEXT,
            content=run.text,
            x=run.x,
            y=run.y,
            width=run.width,
            height=run.height,
            page=page_number,
            color=settings.defaultColor,
            fontFamily=settings.defaultFontFamily,
            fontSize=settings.defaultFontSize,
            bold=False,
        ))
    return annotations
