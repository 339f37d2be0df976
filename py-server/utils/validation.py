"""
PDF Input Validation and Error Types
Byte-level validation of uploaded documents and the exception hierarchy shared
by the engine, the extractors and the HTTP layer.
"""

from typing import Optional, Tuple
import logging
import time

import psutil

logger = logging.getLogger(__name__)

# Validation constants
VALIDATION_CONSTANTS = {
    'PDF_SIGNATURE': b'%PDF',
    'MAX_FILE_SIZE_MB': 50,
    'MAX_PROCESSING_TIME_SECONDS': 300,  # 5 minutes
    'SIGNATURE_SEARCH_WINDOW': 1024,
    'MIN_AVAILABLE_MEMORY_MB': 100,
    'MAX_MEMORY_USAGE_MB': 1000,  # 1GB
}

class PdfValidationError(Exception):
    """Base exception for documents that cannot be processed"""
    pass

class DocumentOpenError(PdfValidationError):
    """The document bytes could not be opened as a PDF"""
    pass

class AnnotationSaveError(PdfValidationError):
    """Writing annotations back into the document failed"""
    pass

class FontResolutionError(AnnotationSaveError):
    """No font in the fallback chain could be loaded"""
    pass

class MemoryLimitError(Exception):
    """Custom exception for memory limit exceeded"""
    pass

def validate_pdf_signature(content: bytes) -> Tuple[bool, Optional[str]]:
    """
    Validate the PDF signature (magic bytes).

    Readers tolerate leading garbage before the header, so the signature may
    appear anywhere in the first kilobyte.

    Args:
        content: Raw file content bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(content) < 4:
        return False, "File too small to be a valid PDF"

    window = content[:VALIDATION_CONSTANTS['SIGNATURE_SEARCH_WINDOW']]
    if VALIDATION_CONSTANTS['PDF_SIGNATURE'] not in window:
        return False, f"Invalid PDF signature. Expected {VALIDATION_CONSTANTS['PDF_SIGNATURE']}, got {content[:4]}"

    return True, None

def validate_file_content(content: bytes, max_size_mb: Optional[int] = None) -> Tuple[bool, Optional[str]]:
    """
    Validate uploaded file content before opening it

    Args:
        content: Raw file content bytes
        max_size_mb: Maximum file size in MB

    Returns:
        Tuple of (is_valid, error_message)
    """
    if max_size_mb is None:
        max_size_mb = VALIDATION_CONSTANTS['MAX_FILE_SIZE_MB']

    # Check size
    size_mb = len(content) / (1024 * 1024)
    if size_mb > max_size_mb:
        return False, f"File too large: {size_mb:.1f}MB (max: {max_size_mb}MB)"

    return validate_pdf_signature(content)

def ensure_valid_content(content: bytes, max_size_mb: Optional[int] = None) -> None:
    """
    Raise DocumentOpenError when content fails validation.

    Raises:
        DocumentOpenError: If the bytes are not an acceptable PDF
    """
    is_valid, error = validate_file_content(content, max_size_mb)
    if not is_valid:
        logger.warning(f"Rejected document: {error}")
        raise DocumentOpenError(error)

def validate_page_number(page_number: int, page_count: int) -> None:
    """
    Check a 1-based page number against the document's page count.

    Raises:
        IndexError: If the page does not exist
    """
    if page_number < 1 or page_number > page_count:
        raise IndexError(f"Page {page_number} out of range (1-{page_count})")

def validate_processing_environment() -> Tuple[bool, Optional[str]]:
    """
    Validate that the system has enough free memory to open a document

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        memory = psutil.virtual_memory()
    except (OSError, RuntimeError) as e:
        return False, f"Error checking system resources: {str(e)}"

    available_mb = memory.available / (1024 * 1024)
    required_mb = VALIDATION_CONSTANTS['MIN_AVAILABLE_MEMORY_MB']
    if available_mb < required_mb:
        return False, f"Insufficient memory available: {available_mb:.1f}MB (need at least {required_mb}MB)"

    logger.debug(f"Environment validation passed: {available_mb:.1f}MB memory")
    return True, None

class ResourceMonitor:
    """
    Context manager tracking wall time and resident memory of one request
    """

    def __init__(self, label: str, max_memory_mb: Optional[int] = None):
        self.label = label
        self.max_memory_mb = max_memory_mb or VALIDATION_CONSTANTS['MAX_MEMORY_USAGE_MB']
        self.start_time = None
        self.start_memory = None

    @staticmethod
    def _rss_mb() -> float:
        return psutil.Process().memory_info().rss / (1024 * 1024)

    def __enter__(self):
        self.start_time = time.time()
        self.start_memory = self._rss_mb()
        logger.debug(f"{self.label}: starting with {self.start_memory:.1f}MB memory")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        processing_time = time.time() - self.start_time
        memory_delta = self._rss_mb() - self.start_memory
        logger.info(f"{self.label}: completed in {processing_time:.2f}s, memory usage: {memory_delta:+.1f}MB")
        return False

    def check_memory(self) -> None:
        """
        Raises:
            MemoryLimitError: If resident memory is above the limit
        """
        current_memory = self._rss_mb()
        if current_memory > self.max_memory_mb:
            raise MemoryLimitError(
                f"resident memory {current_memory:.1f}MB "
                f"(max: {self.max_memory_mb}MB)"
            )
