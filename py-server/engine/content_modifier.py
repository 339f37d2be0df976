"""
Content Modifier Processor

Structural edits of the open document: stripping annotations, deleting
pages and writing the invisible OCR text layer into page content.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, TYPE_CHECKING

import pikepdf
from pikepdf import Dictionary, Name, Operator, String

from constants.pdf_keys import KEY_ANNOTS, KEY_CONTENTS, KEY_EXT_GSTATE, KEY_FILL_OPACITY, KEY_FONT, KEY_RESOURCES, KEY_TYPE
from engine.base_processor import BaseProcessor
from engine.config import ProcessorOptions
from models.pdf_types import Annotation
from processors.font_resolver import FontResolver, font_resource_name
from utils.pdf_transforms import viewer_rect_to_pdf

if TYPE_CHECKING:
    from engine.pdf_engine import PDFEngine

logger = logging.getLogger(__name__)

FULL_HORIZONTAL_SCALING = 100.0


@dataclass
class ContentModifierOptions(ProcessorOptions):
    """Configuration options for ContentModifier."""
    ocr_text_opacity: float = 1.0 / 255.0
    min_horizontal_scaling: float = 1.0
    max_horizontal_scaling: float = 1000.0

    def validate(self) -> bool:
        if not super().validate():
            return False

        if not 0.0 <= self.ocr_text_opacity <= 1.0:
            logger.error("ocr_text_opacity must be between 0.0 and 1.0")
            return False

        if not 0 < self.min_horizontal_scaling <= self.max_horizontal_scaling:
            logger.error("horizontal scaling bounds must be positive and ordered")
            return False

        return True

    def to_dict(self) -> Dict:
        return {
            **super().to_dict(),
            'ocr_text_opacity': self.ocr_text_opacity,
            'min_horizontal_scaling': self.min_horizontal_scaling,
            'max_horizontal_scaling': self.max_horizontal_scaling,
        }


class ContentModifier(BaseProcessor):
    """
    Processor for document edits.

    Handles:
    - Removing every page's annotations
    - Page deletion
    - Invisible, selectable text for OCR runs
    """

    def __init__(self, engine: 'PDFEngine', options: Optional[ContentModifierOptions] = None):
        super().__init__(engine)
        self.options = options or ContentModifierOptions(ocr_text_opacity=engine.config.ocr_text_opacity)

        if not self.options.validate():
            raise ValueError("Invalid ContentModifierOptions")

    def strip_annotations(self) -> int:
        """
        Remove /Annots from every page.

        Returns:
            Number of annotation references removed
        """
        self.ensure_ready()
        removed = 0
        with self.engine.write_lock:
            for page in self.engine.pikepdf_document.pages:
                if KEY_ANNOTS in page.obj:
                    annots = page.obj[KEY_ANNOTS]
                    removed += len(annots) if isinstance(annots, pikepdf.Array) else 1
                    del page.obj[KEY_ANNOTS]
        logger.debug(f"Removed {removed} annotations")
        return removed

    def delete_page(self, page_number: int) -> None:
        """
        Remove a 1-based page.

        Raises:
            IndexError: If the page does not exist
            ValueError: If it is the document's only page
        """
        self.ensure_ready()
        if self.engine.get_page_count() <= 1:
            raise ValueError("Cannot delete the only page of a document")

        self.engine.get_page(page_number)
        with self.engine.write_lock:
            del self.engine.pikepdf_document.pages[page_number - 1]
            self.engine.invalidate_frames()
        logger.info(f"Deleted page {page_number}")

    def add_invisible_text(self, page_number: int, runs: List[Annotation], resolver: FontResolver) -> None:
        """
        Append OCR runs to the page as near-transparent text.

        Each run is placed at its box: font size equals the box height and
        horizontal scaling stretches the text to the box width, with the
        baseline on the bottom edge.

        Raises:
            FontResolutionError: If no font can be resolved
        """
        self.ensure_ready()
        runs = [run for run in runs if run.content and run.content.strip()]
        if not runs:
            return

        page = self.engine.get_page(page_number)
        frame = self.engine.page_frame(page_number)
        pdf = self.engine.pikepdf_document

        with self.engine.write_lock:
            resources = self._own_resources(page, frame.resources)
            fonts = self._subdictionary(resources, KEY_FONT)
            ext_gstates = self._subdictionary(resources, KEY_EXT_GSTATE)

            gs_name = font_resource_name(ext_gstates, prefix='GSocr')
            ext_gstates[gs_name] = pdf.make_indirect(Dictionary({
                KEY_TYPE: Name.ExtGState,
                KEY_FILL_OPACITY: self.options.ocr_text_opacity,
            }))

            # One embedded font per family covering every run of that family
            families: Dict[str, tuple] = {}
            for family in dict.fromkeys(run.fontFamily for run in runs):
                text = ''.join(run.content for run in runs if run.fontFamily == family)
                font = resolver.resolve(family, False, text)
                font_name = font_resource_name(fonts, prefix='Focr')
                fonts[font_name] = font.font_dict
                families[family] = (font, font_name)

            instructions = [([], Operator('q')), ([Name(gs_name)], Operator('gs'))]
            for run in runs:
                font, font_name = families[run.fontFamily]
                x1, y1, x2, y2 = viewer_rect_to_pdf(frame, run.x, run.y, run.width, run.height)
                font_size = y2 - y1
                if font_size <= 0:
                    logger.debug(f"Skipping OCR run with empty box: {run.content!r}")
                    continue

                natural_width = font.text_width(run.content, font_size)
                scaling = FULL_HORIZONTAL_SCALING
                if natural_width > 0:
                    scaling = FULL_HORIZONTAL_SCALING * (x2 - x1) / natural_width
                    scaling = min(max(scaling, self.options.min_horizontal_scaling),
                                  self.options.max_horizontal_scaling)

                instructions += [
                    ([], Operator('BT')),
                    ([Name(font_name), font_size], Operator('Tf')),
                    ([scaling], Operator('Tz')),
                    ([1, 0, 0, 1, x1, y1], Operator('Tm')),
                    ([String(font.encode(run.content))], Operator('Tj')),
                    ([], Operator('ET')),
                ]
            instructions.append(([], Operator('Q')))

            if KEY_CONTENTS not in page.obj:
                page.obj[KEY_CONTENTS] = pdf.make_stream(b'')
            # Isolate the existing drawing program so its state cannot leak into the layer
            page.contents_add(pdf.make_stream(b'q\n'), prepend=True)
            page.contents_add(pdf.make_stream(b'\nQ\n' + pikepdf.unparse_content_stream(instructions)))
            self.engine.invalidate_frames()

        logger.debug(f"Page {page_number}: wrote {len(runs)} invisible OCR runs")

    @staticmethod
    def _own_resources(page, inherited: Optional[Dictionary]) -> Dictionary:
        """The page's direct /Resources, created from the inherited scope if missing."""
        page_obj = page.obj
        resources = page_obj.get(KEY_RESOURCES)
        if isinstance(resources, Dictionary):
            return resources

        resources = Dictionary()
        if inherited is not None:
            for key, value in inherited.items():
                resources[key] = value
        page_obj[KEY_RESOURCES] = resources
        return page_obj[KEY_RESOURCES]

    @staticmethod
    def _subdictionary(resources: Dictionary, key: str) -> Dictionary:
        existing = resources.get(key)
        if isinstance(existing, Dictionary):
            return existing
        resources[key] = Dictionary()
        return resources[key]
