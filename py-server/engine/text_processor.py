"""Text Processor for PDFEngine

Runs the content-stream interpreter over pages of the open document and
answers whether a document has any text layer at all.
"""

import logging
from typing import List, Optional

from engine.base_processor import BaseProcessor
from engine.config import PageRange
from models.pdf_types import PositionedTextRun
from processors.content_interpreter import ContentInterpreter, contains_text_operators

logger = logging.getLogger(__name__)


class TextProcessor(BaseProcessor):
    """Text extraction on top of PDFEngine."""

    def extract_page_runs(self, page_number: int) -> List[PositionedTextRun]:
        """
        Text runs of a 1-based page in content-stream order.

        Raises:
            IndexError: If the page does not exist
        """
        self.ensure_ready()
        page = self.engine.get_page(page_number)
        frame = self.engine.page_frame(page_number)

        interpreter = ContentInterpreter(frame, max_form_depth=self.engine.config.max_form_depth)
        runs = interpreter.interpret(page)
        logger.debug(f"Page {page_number}: {len(runs)} text runs")
        return runs

    def is_searchable(self, sample_limit: Optional[int] = None) -> bool:
        """
        True if any of the first ``sample_limit`` pages shows text,
        including text inside nested forms.
        """
        self.ensure_ready()
        limit = self.engine.config.searchable_sample_limit if sample_limit is None else sample_limit
        if limit < 1:
            raise ValueError(f"sample_limit must be at least 1, got {limit}")
        page_numbers = PageRange.first_pages(limit).to_page_numbers(self.engine.get_page_count())

        for page_number in page_numbers:
            page = self.engine.get_page(page_number)
            frame = self.engine.page_frame(page_number)
            if contains_text_operators(page, frame.resources, self.engine.config.max_form_depth):
                logger.debug(f"Text operators found on page {page_number}")
                return True
        return False
