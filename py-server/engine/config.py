"""
Configuration system for PDF Engine.

Provides structured configuration using dataclasses with clear defaults,
type safety, and backward compatibility with dict-based configs.
"""

from dataclasses import dataclass, field, fields
from typing import Optional, Dict, Any, List
import logging

from utils.validation import VALIDATION_CONSTANTS

logger = logging.getLogger(__name__)


@dataclass
class ProcessorOptions:
    """
    Base class for processor-specific configuration options.

    Subclasses declare their own fields and extend validate() and to_dict().
    """

    def validate(self) -> bool:
        """
        Validate configuration options.

        Returns:
            True if configuration is valid, False otherwise
        """
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {}


@dataclass
class EngineConfig:
    """
    Central configuration for PDFEngine initialization.

    Holds the interpreter limits, the font fallback chain, the fixed markup
    colors and the OCR settings.

    Example:
        >>> config = EngineConfig(max_form_depth=8, cjk_fallback_family="Noto Sans CJK KR")
        >>> engine = PDFEngine(file_bytes, config=config)
    """

    # Content-stream interpretation
    max_form_depth: int = 32
    searchable_sample_limit: int = 3

    # Processing options
    enable_text_processor: bool = True
    enable_annotation_processor: bool = True
    enable_content_modifier: bool = True

    # Font fallback chain: requested family -> CJK fallback -> universal fallback
    font_directories: List[str] = field(default_factory=lambda: [
        "C:/Windows/Fonts",
        "/usr/share/fonts/truetype",
        "/usr/share/fonts",
        "/Library/Fonts",
    ])
    font_files: Dict[str, str] = field(default_factory=lambda: {
        "Arial": "arial.ttf",
        "Arial Bold": "arialbd.ttf",
        "Times New Roman": "times.ttf",
        "Times New Roman Bold": "timesbd.ttf",
        "Malgun Gothic": "malgun.ttf",
        "Malgun Gothic Bold": "malgunbd.ttf",
    })
    cjk_fallback_family: str = "Malgun Gothic"
    universal_fallback_family: str = "Helvetica"
    subset_fonts: bool = True

    # Annotation appearance
    highlight_color: str = "#FFFF00"
    underline_color: str = "#FF0000"
    ocr_text_opacity: float = 1.0 / 255.0
    min_appearance_font_size: float = 4.0

    # OCR fallback
    ocr_languages: str = "kor+eng"
    ocr_render_scale: float = 2.0

    # Request limits
    timeout_seconds: int = VALIDATION_CONSTANTS['MAX_PROCESSING_TIME_SECONDS']
    max_file_size_mb: int = VALIDATION_CONSTANTS['MAX_FILE_SIZE_MB']

    # Validation
    validate_on_open: bool = True

    # Logging
    log_level: str = "INFO"

    def validate(self) -> bool:
        """
        Validate configuration values.

        Returns:
            True if all values are valid, False otherwise
        """
        if self.max_form_depth < 0:
            logger.error("max_form_depth must be non-negative")
            return False

        if self.searchable_sample_limit < 1:
            logger.error("searchable_sample_limit must be at least 1")
            return False

        if self.timeout_seconds < 1:
            logger.error("timeout_seconds must be at least 1 second")
            return False

        if self.max_file_size_mb < 1:
            logger.error("max_file_size_mb must be at least 1 MB")
            return False

        if not 0.0 <= self.ocr_text_opacity <= 1.0:
            logger.error("ocr_text_opacity must be between 0 and 1")
            return False

        if self.ocr_render_scale <= 0:
            logger.error("ocr_render_scale must be positive")
            return False

        if not self.universal_fallback_family:
            logger.error("universal_fallback_family is required")
            return False

        if not any([self.enable_text_processor,
                   self.enable_annotation_processor,
                   self.enable_content_modifier]):
            logger.error("At least one processor must be enabled")
            return False

        return True

    def font_chain(self, requested_family: Optional[str]) -> List[str]:
        """
        Ordered, de-duplicated font families to try for a requested family.
        """
        chain: List[str] = []
        for family in (requested_family, self.cjk_fallback_family, self.universal_fallback_family):
            if family and family not in chain:
                chain.append(family)
        return chain

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary.

        Useful for serialization, logging, and debugging.
        """
        return {
            'max_form_depth': self.max_form_depth,
            'searchable_sample_limit': self.searchable_sample_limit,
            'enable_text_processor': self.enable_text_processor,
            'enable_annotation_processor': self.enable_annotation_processor,
            'enable_content_modifier': self.enable_content_modifier,
            'font_directories': list(self.font_directories),
            'font_files': dict(self.font_files),
            'cjk_fallback_family': self.cjk_fallback_family,
            'universal_fallback_family': self.universal_fallback_family,
            'subset_fonts': self.subset_fonts,
            'highlight_color': self.highlight_color,
            'underline_color': self.underline_color,
            'ocr_text_opacity': self.ocr_text_opacity,
            'min_appearance_font_size': self.min_appearance_font_size,
            'ocr_languages': self.ocr_languages,
            'ocr_render_scale': self.ocr_render_scale,
            'timeout_seconds': self.timeout_seconds,
            'max_file_size_mb': self.max_file_size_mb,
            'validate_on_open': self.validate_on_open,
            'log_level': self.log_level,
        }

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'EngineConfig':
        """
        Create EngineConfig from dictionary.

        Unknown keys are ignored with a warning.

        Args:
            config: Dictionary of configuration values

        Returns:
            EngineConfig instance
        """
        valid_keys = {f.name for f in fields(cls)}

        # Filter to valid keys and warn about unknown keys
        filtered_config = {}
        for key, value in config.items():
            if key in valid_keys:
                filtered_config[key] = value
            else:
                logger.warning(f"Unknown config key '{key}' will be ignored")

        return cls(**filtered_config)

    @classmethod
    def default(cls) -> 'EngineConfig':
        """Create configuration with default values."""
        return cls()

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"EngineConfig("
            f"max_form_depth={self.max_form_depth}, "
            f"fonts={self.font_chain(None)}, "
            f"text={self.enable_text_processor}, "
            f"annotations={self.enable_annotation_processor}, "
            f"modifier={self.enable_content_modifier}, "
            f"timeout={self.timeout_seconds}s)"
        )


@dataclass
class PageRange:
    """
    Represents a range of pages to process in a PDF document.

    Uses 1-based page numbering consistent with PDF specification.

    Example:
        >>> PageRange(start=1, end=3).to_page_numbers(10)
        [1, 2, 3]
    """

    start: int  # 1-based page number
    end: Optional[int] = None  # None means "to end of document"

    def __post_init__(self):
        """Validate page range on construction."""
        if self.start < 1:
            raise ValueError(f"start page must be >= 1, got {self.start}")

        if self.end is not None:
            if self.end < 1:
                raise ValueError(f"end page must be >= 1, got {self.end}")
            if self.end < self.start:
                raise ValueError(
                    f"end page ({self.end}) must be >= start page ({self.start})"
                )

    def to_page_numbers(self, total_pages: int) -> List[int]:
        """
        Convert range to explicit list of page numbers, clamped to the document.

        Args:
            total_pages: Total number of pages in document

        Returns:
            List of 1-based page numbers to process
        """
        if total_pages < 1:
            return []

        start = max(1, min(self.start, total_pages))
        end = total_pages if self.end is None else min(self.end, total_pages)

        if start > end:
            return []

        return list(range(start, end + 1))

    @classmethod
    def first_pages(cls, count: int) -> 'PageRange':
        """Range covering the first ``count`` pages."""
        return cls(start=1, end=max(1, count))

    @classmethod
    def single_page(cls, page_num: int) -> 'PageRange':
        return cls(start=page_num, end=page_num)

    def __repr__(self) -> str:
        """String representation for debugging."""
        if self.end is None:
            return f"PageRange({self.start}→end)"
        elif self.start == self.end:
            return f"PageRange(page {self.start})"
        else:
            return f"PageRange({self.start}→{self.end})"
