"""
PDF Annotation Extractor

Reads FreeText, Highlight and Underline annotations into viewer-space
Annotation models.
"""

import logging
from typing import List, Optional

from engine.config import EngineConfig
from engine.pdf_engine import PDFEngine
from models.pdf_types import Annotation

logger = logging.getLogger(__name__)


def extract_annotations(file_bytes: bytes, config: Optional[EngineConfig] = None) -> List[Annotation]:
    """
    Annotations of every page of the document.

    Raises:
        DocumentOpenError: If the bytes cannot be opened as a PDF
    """
    config = config or EngineConfig(
        enable_text_processor=False,
        enable_annotation_processor=True,
        enable_content_modifier=False,
    )

    with PDFEngine(file_bytes, config=config) as engine:
        annotations = engine.annotation_processor.read_annotations()

    logger.info(f"Extracted {len(annotations)} annotations")
    return annotations
