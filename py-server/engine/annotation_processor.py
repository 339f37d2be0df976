"""
Annotation Processor

Reads FreeText, Highlight and Underline annotations into the viewer model
and writes the model back as PDF annotations with generated appearances.
OcrText annotations are not stored as annotations; they become an
invisible text layer in the page content.
"""

import logging
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4

import pikepdf
from pikepdf import Array, Dictionary, Name, String

from constants.pdf_keys import (
    KEY_ANNOTS, KEY_SUBTYPE, KEY_RECT, KEY_QUAD_POINTS, KEY_ANNOT_CONTENTS, KEY_ANNOT_NAME,
    KEY_DEFAULT_APPEARANCE, KEY_DEFAULT_STYLE, KEY_ROOT_ACROFORM, KEY_NEED_APPEARANCES,
    KEY_ANNOT_COLOR, KEY_ANNOT_FLAGS, KEY_APPEARANCE, KEY_N,
    VAL_HIGHLIGHT, VAL_UNDERLINE, VAL_FREE_TEXT, ANNOT_FLAG_PRINT,
)
from engine.base_processor import BaseProcessor
from models.pdf_types import Annotation, AnnotationKind, DEFAULT_FONT_FAMILY, DEFAULT_FONT_SIZE
from processors.appearance_builder import build_free_text_appearance
from processors.font_resolver import FontResolver
from utils.font_mapping import parse_hex_color, rgb_to_hex, normalize_hex_color
from utils.pdf_transforms import (
    PageFrame, pdf_box_values, pdf_rect_to_viewer, viewer_rect_to_pdf, quad_points_for_rect,
    points_to_pixels, pixels_to_points,
)

logger = logging.getLogger(__name__)

DA_FONT_SIZE_RE = re.compile(r'([\d\.]+)\s+Tf')
DA_COLOR_RE = re.compile(r'([\d\.]+)\s+([\d\.]+)\s+([\d\.]+)\s+rg')
DS_FONT_RE = re.compile(r'font\s*:\s*([^;]+)', re.IGNORECASE)
DS_FAMILY_RE = re.compile(r'font-family\s*:\s*([^;]+)', re.IGNORECASE)
DS_WEIGHT_RE = re.compile(r'font-weight\s*:\s*(\w+)', re.IGNORECASE)
DS_SHORTHAND_RE = re.compile(r'^(?P<style>(?:\s*(?:bold|italic|normal|\d{3})\b)*)\s*[\d\.]+(?:pt|px)\s+(?P<family>.+)$', re.IGNORECASE)

SUBTYPE_KINDS = {
    VAL_FREE_TEXT: AnnotationKind.FREE_TEXT,
    VAL_HIGHLIGHT: AnnotationKind.HIGHLIGHT,
    VAL_UNDERLINE: AnnotationKind.UNDERLINE,
}

DEFAULT_APPEARANCE_FONT = '/Helv'


def _format_number(value: float) -> str:
    return f'{value:.4f}'.rstrip('0').rstrip('.')


def parse_default_appearance(da: str, default_size: int = DEFAULT_FONT_SIZE, default_color: str = "#000000") -> Tuple[int, str]:
    """
    Font size (viewer px) and color from a /DA string.

    Missing tokens keep the defaults.
    """
    font_size = default_size
    color = default_color

    size_match = DA_FONT_SIZE_RE.search(da or '')
    if size_match:
        try:
            points = float(size_match.group(1))
            if points > 0:
                font_size = int(round(points_to_pixels(points)))
        except ValueError:
            pass

    color_match = DA_COLOR_RE.search(da or '')
    if color_match:
        try:
            color = rgb_to_hex(*(float(color_match.group(i)) for i in range(1, 4)))
        except ValueError:
            pass

    return font_size, color


def parse_default_style(ds: str, default_family: str = DEFAULT_FONT_FAMILY, default_bold: bool = False) -> Tuple[str, bool]:
    """
    Font family and weight from a /DS style string.

    Accepts both ``font-family``/``font-weight`` declarations and the
    ``font: bold 10.5pt "Family"`` shorthand.
    """
    family = default_family
    bold = default_bold
    if not ds:
        return family, bold

    shorthand = DS_FONT_RE.search(ds)
    if shorthand:
        parts = DS_SHORTHAND_RE.match(shorthand.group(1).strip())
        if parts:
            family = parts.group('family').split(',')[0].strip().strip('\'"') or family
            bold = 'bold' in parts.group('style').lower() or bool(re.search(r'\b[6-9]00\b', parts.group('style')))

    family_match = DS_FAMILY_RE.search(ds)
    if family_match:
        family = family_match.group(1).split(',')[0].strip().strip('\'"') or family

    weight_match = DS_WEIGHT_RE.search(ds)
    if weight_match:
        weight = weight_match.group(1).lower()
        bold = weight == 'bold' or (weight.isdigit() and int(weight) >= 600)

    return family, bold


def build_default_style(family: str, points: float, bold: bool, color: str) -> str:
    weight = 'bold' if bold else 'normal'
    return (
        f"font: {weight} {_format_number(points)}pt \"{family}\"; "
        f"font-family: \"{family}\"; font-weight: {weight}; "
        f"text-align: left; color: {color}"
    )


def _parse_uuid(value) -> UUID:
    if value is not None:
        try:
            return UUID(str(value))
        except ValueError:
            pass
    return uuid4()


class AnnotationProcessor(BaseProcessor):
    """Annotation round trip between the PDF and the viewer model."""

    # --- Read path ---

    def read_annotations(self) -> List[Annotation]:
        """
        Annotations of every page, in page order then /Annots order.

        Other annotation subtypes are ignored.
        """
        self.ensure_ready()
        config = self.engine.config
        annotations: List[Annotation] = []

        for page_number in range(1, self.engine.get_page_count() + 1):
            page = self.engine.get_page(page_number)
            annots = page.obj.get(KEY_ANNOTS)
            if not isinstance(annots, Array):
                continue
            frame = self.engine.page_frame(page_number)

            for annot in annots:
                if not isinstance(annot, Dictionary):
                    continue
                kind = SUBTYPE_KINDS.get(str(annot.get(KEY_SUBTYPE, '')))
                if kind is None:
                    continue
                rect = pdf_box_values(annot.get(KEY_RECT))
                if rect is None:
                    logger.debug(f"Page {page_number}: skipping {kind.value} with malformed /Rect")
                    continue

                annotations.append(self._read_annotation(annot, kind, page_number, frame, rect, config))

        logger.debug(f"Read {len(annotations)} annotations")
        return annotations

    def _read_annotation(self, annot: Dictionary, kind: AnnotationKind, page_number: int,
                         frame: PageFrame, rect, config) -> Annotation:
        x, y, width, height = pdf_rect_to_viewer(frame, *rect)
        contents = annot.get(KEY_ANNOT_CONTENTS)
        content = str(contents) if isinstance(contents, String) else ""

        fields = dict(
            id=_parse_uuid(annot.get(KEY_ANNOT_NAME)),
            kind=kind,
            content=content,
            x=x, y=y, width=width, height=height,
            page=page_number,
        )

        if kind == AnnotationKind.FREE_TEXT:
            da = annot.get(KEY_DEFAULT_APPEARANCE)
            font_size, color = parse_default_appearance(str(da) if da is not None else '')
            ds = annot.get(KEY_DEFAULT_STYLE)
            family, bold = parse_default_style(str(ds) if ds is not None else '')
            fields.update(fontSize=font_size, color=color, fontFamily=family, bold=bold)
        elif kind == AnnotationKind.HIGHLIGHT:
            fields.update(color=normalize_hex_color(config.highlight_color))
        else:
            fields.update(color=normalize_hex_color(config.underline_color))

        return Annotation(**fields)

    # --- Write path ---

    def write_annotations(self, annotations: List[Annotation], scale: float = 1.0) -> None:
        """
        Replace every page's annotations with ``annotations``.

        Coordinates are divided by ``scale`` (the viewer zoom they were
        captured at) before conversion to PDF space.

        Raises:
            ValueError: If scale is not positive
            FontResolutionError: If a FreeText or OcrText font cannot be resolved
        """
        self.ensure_ready()
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")

        pdf = self.engine.pikepdf_document
        resolver = FontResolver(pdf, self.engine.config)
        page_count = self.engine.get_page_count()

        by_page: Dict[int, List[Annotation]] = defaultdict(list)
        for annotation in annotations:
            by_page[annotation.page].append(annotation)

        with self.engine.write_lock:
            self.engine.content_modifier.strip_annotations()

            for page_number in sorted(by_page):
                if page_number > page_count:
                    logger.warning(f"Skipping {len(by_page[page_number])} annotations on missing page {page_number}")
                    continue

                page = self.engine.get_page(page_number)
                frame = self.engine.page_frame(page_number)
                scaled = [self._unscaled(annotation, scale) for annotation in by_page[page_number]]

                annots = []
                for annotation in scaled:
                    if annotation.kind == AnnotationKind.OCR_TEXT:
                        continue
                    annot = self._build_annotation(pdf, resolver, frame, annotation)
                    annot.P = page.obj
                    annots.append(pdf.make_indirect(annot))
                if annots:
                    page.obj[KEY_ANNOTS] = Array(annots)

                ocr_runs = [a for a in scaled if a.kind == AnnotationKind.OCR_TEXT]
                if ocr_runs:
                    self.engine.content_modifier.add_invisible_text(page_number, ocr_runs, resolver)

                logger.debug(f"Page {page_number}: wrote {len(annots)} annotations, {len(ocr_runs)} OCR runs")

            if KEY_ROOT_ACROFORM in pdf.Root:
                pdf.Root[KEY_ROOT_ACROFORM][KEY_NEED_APPEARANCES] = True

    @staticmethod
    def _unscaled(annotation: Annotation, scale: float) -> Annotation:
        if scale == 1.0:
            return annotation
        return annotation.model_copy(update=dict(
            x=annotation.x / scale,
            y=annotation.y / scale,
            width=annotation.width / scale,
            height=annotation.height / scale,
        ))

    def _build_annotation(self, pdf: pikepdf.Pdf, resolver: FontResolver,
                          frame: PageFrame, annotation: Annotation) -> Dictionary:
        config = self.engine.config
        x1, y1, x2, y2 = viewer_rect_to_pdf(frame, annotation.x, annotation.y, annotation.width, annotation.height)

        annot = Dictionary(
            Type=Name.Annot,
            Rect=Array([x1, y1, x2, y2]),
            NM=String(str(annotation.id)),
        )
        annot[KEY_ANNOT_FLAGS] = ANNOT_FLAG_PRINT
        annot[KEY_ANNOT_CONTENTS] = String(annotation.content or '')

        if annotation.kind == AnnotationKind.FREE_TEXT:
            points = pixels_to_points(annotation.fontSize)
            r, g, b = parse_hex_color(annotation.color)
            appearance_size = max(points, config.min_appearance_font_size)
            font = resolver.resolve(annotation.fontFamily, annotation.bold, annotation.content or '')

            annot[KEY_SUBTYPE] = Name(VAL_FREE_TEXT)
            annot[KEY_DEFAULT_APPEARANCE] = String(
                f"{DEFAULT_APPEARANCE_FONT} {_format_number(points)} Tf "
                f"{_format_number(r)} {_format_number(g)} {_format_number(b)} rg"
            )
            annot[KEY_DEFAULT_STYLE] = String(build_default_style(
                annotation.fontFamily, points, annotation.bold, rgb_to_hex(r, g, b)
            ))
            annot.Border = Array([0, 0, 0])
            annot[KEY_APPEARANCE] = Dictionary({KEY_N: build_free_text_appearance(
                pdf, annotation.content or '', font, appearance_size, (r, g, b), x2 - x1, y2 - y1
            )})
        else:
            is_highlight = annotation.kind == AnnotationKind.HIGHLIGHT
            color = config.highlight_color if is_highlight else config.underline_color
            annot[KEY_SUBTYPE] = Name(VAL_HIGHLIGHT if is_highlight else VAL_UNDERLINE)
            annot[KEY_QUAD_POINTS] = Array(quad_points_for_rect(x1, y1, x2, y2))
            annot[KEY_ANNOT_COLOR] = Array(list(parse_hex_color(color)))

        return annot
