"""
PDF Text Extractor

Positioned text runs from a page's content stream, a searchability check,
and the OCR fallback for image-only pages.

Uses PDFEngine + TextProcessor architecture for all extraction operations.
"""

import logging
from typing import List, Optional, Tuple

from engine.config import EngineConfig
from engine.pdf_engine import PDFEngine
from extractors.ocr_extractor import OcrService
from models.pdf_types import PositionedTextRun
from utils.validation import PdfValidationError

logger = logging.getLogger(__name__)


def _text_config(config: Optional[EngineConfig]) -> EngineConfig:
    if config is not None:
        return config
    return EngineConfig(
        enable_text_processor=True,
        enable_annotation_processor=False,
        enable_content_modifier=False,
    )


def extract_text(
    file_bytes: bytes,
    page_number: int,
    config: Optional[EngineConfig] = None,
) -> List[PositionedTextRun]:
    """
    Text runs of a 1-based page in content-stream order.

    Never raises for bad input: an unreadable document or a missing page
    yields an empty list, which callers treat as "try OCR".
    """
    try:
        with PDFEngine(file_bytes, config=_text_config(config)) as engine:
            return engine.text_processor.extract_page_runs(page_number)
    except (PdfValidationError, IndexError) as e:
        logger.warning(f"Text extraction failed for page {page_number}: {e}")
        return []
    except Exception as e:
        logger.error(f"Unexpected text extraction failure on page {page_number}: {e}", exc_info=True)
        return []


def is_searchable(
    file_bytes: bytes,
    sample_limit: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> bool:
    """
    True iff one of the first ``sample_limit`` pages draws text.

    ``sample_limit`` defaults to the config's searchable_sample_limit.

    Raises:
        ValueError: If sample_limit is below 1
    """
    if sample_limit is not None and sample_limit < 1:
        raise ValueError(f"sample_limit must be at least 1, got {sample_limit}")

    try:
        with PDFEngine(file_bytes, config=_text_config(config)) as engine:
            return engine.text_processor.is_searchable(sample_limit)
    except PdfValidationError as e:
        logger.warning(f"Searchability check failed: {e}")
        return False
    except Exception as e:
        logger.error(f"Unexpected searchability check failure: {e}", exc_info=True)
        return False


def extract_text_with_ocr_fallback(
    file_bytes: bytes,
    page_number: int,
    ocr_service: Optional[OcrService],
    config: Optional[EngineConfig] = None,
) -> Tuple[List[PositionedTextRun], bool]:
    """
    Content-stream text, or OCR when the document has no usable text layer.

    OCR runs when the document is not searchable, or when the page's runs
    all have zero area.

    Returns:
        (runs, used_ocr)
    """
    runs: List[PositionedTextRun] = []
    searchable = is_searchable(file_bytes, config=config)
    if searchable:
        runs = extract_text(file_bytes, page_number, config=config)
        if any(run.has_area for run in runs):
            return runs, False

    if ocr_service is None:
        logger.info(f"Page {page_number} has no usable text layer and no OCR service is configured")
        return runs, False

    logger.info(f"Falling back to OCR for page {page_number} (searchable={searchable}, runs={len(runs)})")
    return ocr_service.recognize(file_bytes, page_number), True
