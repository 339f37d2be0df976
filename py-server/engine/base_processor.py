"""
Base processor and registry.

Processors are attached to a PDFEngine and reach the open document through
it. The registry owns their initialize/cleanup lifecycle.
"""

from abc import ABC
from typing import Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from engine.pdf_engine import PDFEngine

logger = logging.getLogger(__name__)


class BaseProcessor(ABC):
    """
    Abstract base class for all PDF processors.

    Subclasses override initialize() and cleanup() when they hold resources
    beyond the engine's document.
    """

    def __init__(self, engine: 'PDFEngine'):
        self.engine = engine
        self._initialized = False
        logger.debug(f"{self.__class__.__name__} created with engine reference")

    def initialize(self) -> None:
        """Called by the engine once the document is open."""
        if self._initialized:
            logger.warning(f"{self.__class__.__name__} already initialized")
            return

        self._initialized = True
        logger.debug(f"{self.__class__.__name__} initialized")

    def cleanup(self) -> None:
        """Idempotent; called on engine exit."""
        if not self._initialized:
            return

        self._initialized = False
        logger.debug(f"{self.__class__.__name__} cleaned up")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def ensure_ready(self) -> None:
        """
        Raises:
            RuntimeError: If the processor cannot be used yet
        """
        if not self._initialized or self.engine is None:
            raise RuntimeError(f"{self.__class__.__name__} not initialized - use within an open PDFEngine")

    def __repr__(self) -> str:
        status = "initialized" if self._initialized else "not initialized"
        return f"{self.__class__.__name__}({status})"


class ProcessorRegistry:
    """
    Registry for managing processor instances.

    Used internally by PDFEngine to manage its processors.
    """

    def __init__(self):
        self._processors: dict[str, BaseProcessor] = {}
        self._initialization_order: list[str] = []

    def register(self, name: str, processor: BaseProcessor) -> None:
        if name in self._processors:
            logger.warning(f"Processor '{name}' already registered, replacing")

        self._processors[name] = processor
        if name not in self._initialization_order:
            self._initialization_order.append(name)

        logger.debug(f"Registered processor: {name}")

    def get(self, name: str) -> Optional[BaseProcessor]:
        return self._processors.get(name)

    def initialize_all(self) -> None:
        """Initialize all registered processors in registration order."""
        for name in self._initialization_order:
            processor = self._processors.get(name)
            if processor:
                try:
                    processor.initialize()
                except Exception as e:
                    logger.error(f"Failed to initialize processor '{name}': {e}")
                    raise

    def cleanup_all(self) -> None:
        """Clean up all processors in reverse registration order."""
        for name in reversed(self._initialization_order):
            processor = self._processors.get(name)
            if processor:
                try:
                    processor.cleanup()
                except Exception as e:
                    logger.warning(f"Error cleaning up processor '{name}': {e}")

    @property
    def processor_names(self) -> list[str]:
        return list(self._processors.keys())

    def __repr__(self) -> str:
        return f"ProcessorRegistry({len(self._processors)} processors: {self.processor_names})"
