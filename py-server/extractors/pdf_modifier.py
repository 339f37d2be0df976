"""
PDF Modification Module

Public API for rewriting documents: saving the annotation model, stripping
annotations and deleting pages. Every function returns a new PDF as bytes;
the input buffer is never modified.

Uses the PDFEngine + AnnotationProcessor/ContentModifier architecture.
"""

import logging
from typing import List, Optional

import pikepdf

from engine.config import EngineConfig
from engine.pdf_engine import PDFEngine
from models.pdf_types import Annotation
from utils.validation import AnnotationSaveError

logger = logging.getLogger(__name__)


def save_with_annotations(
    file_bytes: bytes,
    annotations: List[Annotation],
    scale: float = 1.0,
    config: Optional[EngineConfig] = None,
) -> bytes:
    """
    Rewrite the document with ``annotations`` replacing all existing ones.

    Args:
        file_bytes: Source PDF
        annotations: Annotations in viewer pixels captured at zoom ``scale``
        scale: Viewer zoom factor, must be positive

    Returns:
        Complete rewritten PDF

    Raises:
        DocumentOpenError: If the source cannot be opened
        AnnotationSaveError: If any part of the save fails; nothing is returned
    """
    if scale <= 0:
        raise AnnotationSaveError(f"scale must be positive, got {scale}")

    logger.info(f"Saving {len(annotations)} annotations at scale {scale}")

    with PDFEngine(file_bytes, config=config) as engine:
        try:
            engine.annotation_processor.write_annotations(annotations, scale=scale)
            result_bytes = engine.save_to_bytes()
        except AnnotationSaveError:
            raise
        except (pikepdf.PdfError, ValueError, IndexError, OSError) as e:
            logger.error(f"Failed to save annotations: {e}")
            raise AnnotationSaveError(f"Failed to save annotations: {str(e)}") from e

    logger.info(f"Saved annotations, output size: {len(result_bytes)} bytes")
    return result_bytes


def strip_annotations(file_bytes: bytes, config: Optional[EngineConfig] = None) -> bytes:
    """
    Remove every page's annotations.

    Raises:
        DocumentOpenError: If the source cannot be opened
    """
    with PDFEngine(file_bytes, config=config) as engine:
        removed = engine.content_modifier.strip_annotations()
        result_bytes = engine.save_to_bytes()

    logger.info(f"Stripped {removed} annotations")
    return result_bytes


def delete_page(file_bytes: bytes, page_number: int, config: Optional[EngineConfig] = None) -> bytes:
    """
    Remove a 1-based page.

    Raises:
        DocumentOpenError: If the source cannot be opened
        IndexError: If the page does not exist
        ValueError: If it is the only page
    """
    with PDFEngine(file_bytes, config=config) as engine:
        engine.content_modifier.delete_page(page_number)
        result_bytes = engine.save_to_bytes()
    return result_bytes


def renumber_after_page_deletion(annotations: List[Annotation], page_number: int) -> List[Annotation]:
    """
    The annotation model after ``page_number`` was deleted.

    Annotations on the deleted page are dropped; later pages shift down by one.
    """
    if page_number < 1:
        raise ValueError(f"Invalid page number {page_number}")

    renumbered = []
    for annotation in annotations:
        if annotation.page == page_number:
            continue
        if annotation.page > page_number:
            annotation = annotation.model_copy(update={'page': annotation.page - 1})
        renumbered.append(annotation)

    logger.debug(f"Renumbered annotations after deleting page {page_number}: "
                 f"{len(annotations)} -> {len(renumbered)}")
    return renumbered
