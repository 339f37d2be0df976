"""
PDF Processing Engine - Core Coordinator

The PDFEngine owns one pikepdf document opened from an in-memory buffer and
the processors that work on it (text extraction, annotation round trip,
content modification). Every public entry point creates its own engine, so
independent calls never share a document.

Usage:
    >>> from engine.pdf_engine import PDFEngine
    >>> with PDFEngine(file_bytes) as engine:
    ...     runs = engine.text_processor.extract_page_runs(1)
"""

import io
import logging
import threading
from typing import Any, Dict, Optional

import pikepdf
from pikepdf import Dictionary

from constants.pdf_keys import KEY_CROPBOX, KEY_MEDIABOX, KEY_PARENT, KEY_RESOURCES
from engine.config import EngineConfig
from engine.base_processor import ProcessorRegistry
from utils.pdf_transforms import PageFrame, DEFAULT_PAGE_BOX, pdf_box_values
from utils.validation import (
    DocumentOpenError, PdfValidationError, ensure_valid_content, validate_page_number
)

logger = logging.getLogger(__name__)

# Guards against /Parent loops in malformed page trees
MAX_PAGE_TREE_DEPTH = 64


def get_inherited(page_obj: Dictionary, key: str) -> Optional[Any]:
    """
    Look up an inheritable page attribute, walking up the /Parent chain.
    """
    node = page_obj
    for _ in range(MAX_PAGE_TREE_DEPTH):
        if not isinstance(node, Dictionary):
            return None
        if key in node:
            return node[key]
        node = node.get(KEY_PARENT)
    return None


def resolve_page_frame(page) -> PageFrame:
    """
    Build the PageFrame of a pikepdf Page.

    Uses the inherited /CropBox, then /MediaBox, then US Letter.
    """
    page_obj = page.obj
    box = (
        pdf_box_values(get_inherited(page_obj, KEY_CROPBOX))
        or pdf_box_values(get_inherited(page_obj, KEY_MEDIABOX))
        or DEFAULT_PAGE_BOX
    )
    resources = get_inherited(page_obj, KEY_RESOURCES)
    if not isinstance(resources, Dictionary):
        resources = None

    x1, y1, x2, y2 = box
    return PageFrame(
        crop_offset_x=x1,
        crop_offset_y=y1,
        crop_height=y2 - y1,
        crop_width=x2 - x1,
        resources=resources,
    )


class PDFEngine:
    """
    Unified PDF processing engine with resource management and processor coordination.

    Example:
        >>> with PDFEngine(file_bytes) as engine:
        ...     total_pages = engine.get_page_count()
    """

    def __init__(self, file_bytes: bytes, config: Optional[EngineConfig] = None):
        """
        Initialize PDF engine with document bytes and optional configuration.

        Note: Document is not opened until entering context manager (__enter__).

        Raises:
            PdfValidationError: If configuration is invalid
        """
        self.file_bytes = file_bytes
        self.config = config or EngineConfig.default()

        if not self.config.validate():
            raise PdfValidationError("Invalid engine configuration")

        self._pikepdf_doc: Optional[pikepdf.Pdf] = None
        self._is_open = False
        self._page_count: Optional[int] = None
        self._frames: Dict[int, PageFrame] = {}
        self._processors = ProcessorRegistry()
        self._write_lock = threading.RLock()

        logger.debug(f"PDFEngine initialized for {len(file_bytes)} bytes")

    def __enter__(self) -> 'PDFEngine':
        """
        Open the document and initialize processors.

        Raises:
            DocumentOpenError: If the bytes cannot be opened as a PDF
        """
        try:
            if self.config.validate_on_open:
                ensure_valid_content(self.file_bytes, self.config.max_file_size_mb)

            self._pikepdf_doc = pikepdf.open(io.BytesIO(self.file_bytes))
            self._page_count = len(self._pikepdf_doc.pages)
            self._is_open = True
            self._initialize_processors()

            logger.info(f"PDF opened: {self._page_count} pages, {len(self.file_bytes) / (1024 * 1024):.2f} MB")
            return self

        except DocumentOpenError:
            self._cleanup_resources()
            raise
        except (pikepdf.PdfError, OSError, ValueError) as e:
            logger.error(f"Failed to open PDF: {e}")
            self._cleanup_resources()
            raise DocumentOpenError(f"Failed to open PDF: {str(e)}") from e

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._cleanup_resources()

        if exc_type is not None:
            logger.debug(f"Exception during engine operation: {exc_val}")

        # Don't suppress exceptions
        return False

    def _initialize_processors(self) -> None:
        """Initialize all enabled processors."""
        if self.config.enable_text_processor:
            from engine.text_processor import TextProcessor
            self._processors.register('text', TextProcessor(self))

        if self.config.enable_annotation_processor:
            from engine.annotation_processor import AnnotationProcessor
            self._processors.register('annotation', AnnotationProcessor(self))

        if self.config.enable_content_modifier:
            from engine.content_modifier import ContentModifier
            self._processors.register('modifier', ContentModifier(self))

        self._processors.initialize_all()

    def _cleanup_resources(self) -> None:
        """Idempotent cleanup of processors and the document."""
        self._processors.cleanup_all()

        if self._pikepdf_doc is not None:
            try:
                self._pikepdf_doc.close()
            except pikepdf.PdfError as e:
                logger.warning(f"Error closing pikepdf document: {e}")
            finally:
                self._pikepdf_doc = None

        self._frames.clear()
        self._is_open = False

    def _require_open(self) -> None:
        if not self._is_open:
            raise RuntimeError("Engine not opened - use within context manager")

    # Public API - Document Information

    def get_page_count(self) -> int:
        self._require_open()
        return self._page_count

    @property
    def pikepdf_document(self) -> pikepdf.Pdf:
        self._require_open()
        return self._pikepdf_doc

    def get_page(self, page_number: int):
        """
        Get a page by 1-based number.

        Raises:
            IndexError: If the page does not exist
        """
        self._require_open()
        validate_page_number(page_number, self._page_count)
        return self._pikepdf_doc.pages[page_number - 1]

    def page_frame(self, page_number: int) -> PageFrame:
        """Geometry of a 1-based page, resolved once and cached."""
        frame = self._frames.get(page_number)
        if frame is None:
            frame = resolve_page_frame(self.get_page(page_number))
            self._frames[page_number] = frame
        return frame

    def invalidate_frames(self) -> None:
        """Forget cached frames after pages were added or removed."""
        self._frames.clear()
        if self._is_open:
            self._page_count = len(self._pikepdf_doc.pages)

    # Public API - Writing

    @property
    def write_lock(self) -> threading.RLock:
        """Serializes mutations of the open document."""
        return self._write_lock

    def save_to_bytes(self) -> bytes:
        """Serialize the (modified) document to a new buffer."""
        self._require_open()
        output = io.BytesIO()
        with self._write_lock:
            self._pikepdf_doc.save(output)
        return output.getvalue()

    # Public API - Processor Access

    @property
    def text_processor(self):
        processor = self._processors.get('text')
        if processor is None:
            raise RuntimeError("TextProcessor not enabled or not yet initialized")
        return processor

    @property
    def annotation_processor(self):
        processor = self._processors.get('annotation')
        if processor is None:
            raise RuntimeError("AnnotationProcessor not enabled or not yet initialized")
        return processor

    @property
    def content_modifier(self):
        processor = self._processors.get('modifier')
        if processor is None:
            raise RuntimeError("ContentModifier not enabled or not yet initialized")
        return processor

    @property
    def is_open(self) -> bool:
        return self._is_open

    def get_status(self) -> Dict[str, Any]:
        return {
            'is_open': self._is_open,
            'page_count': self._page_count,
            'size_bytes': len(self.file_bytes),
            'processors': self._processors.processor_names,
            'config': self.config.to_dict()
        }

    def __repr__(self) -> str:
        status = "open" if self._is_open else "closed"
        pages = f"{self._page_count} pages" if self._page_count else "unknown pages"
        return f"PDFEngine({status}, {pages})"
