"""
Decorators for FastAPI endpoint error handling.

This module provides decorators to handle common patterns in PDF processing endpoints,
such as upload validation, processing timeouts and error mapping.
"""

import logging
import asyncio
from functools import wraps
from typing import Callable, Optional
from fastapi import UploadFile, HTTPException, Request

from engine.config import EngineConfig
from utils.validation import (
    validate_file_content,
    PdfValidationError,
    DocumentOpenError,
    AnnotationSaveError,
    MemoryLimitError,
    ResourceMonitor,
    validate_processing_environment
)

logger = logging.getLogger(__name__)


def handle_pdf_processing(func: Callable) -> Callable:
    """
    Decorator to handle common PDF processing patterns:
    - File type validation
    - File content reading and validation
    - Processing timeout management
    - Standardized error handling

    The decorated function must accept `request: Request` as a keyword argument.
    Size and time limits come from the EngineConfig stored on
    `request.app.state.engine_config`.
    The decorator stores the raw bytes of the uploaded file in
    `request.state.file_content`.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        request: Request = kwargs.get('request')
        if not request:
            raise HTTPException(
                status_code=500,
                detail="Endpoint decorated with handle_pdf_processing must accept 'request: Request'"
            )

        file: UploadFile = kwargs.get('file')
        if not file:
            raise HTTPException(
                status_code=400,
                detail="File parameter is required"
            )

        processing_timeout: Optional[int] = kwargs.get('processing_timeout')
        config: EngineConfig = request.app.state.engine_config
        timeout_seconds = processing_timeout or config.timeout_seconds

        # Step 1: Validate file type
        if not file.filename or not file.filename.lower().endswith('.pdf'):
            raise HTTPException(
                status_code=400,
                detail="Only PDF files are supported"
            )

        # Step 2: Read and validate file content
        try:
            content = await file.read()
        except Exception as e:
            logger.error(f"Error reading uploaded file: {e}")
            raise HTTPException(
                status_code=400,
                detail=f"Error reading uploaded file: {str(e)}"
            )

        is_valid_content, content_error = validate_file_content(
            content,
            max_size_mb=config.max_file_size_mb
        )

        if not is_valid_content:
            logger.warning(f"File content validation failed for {file.filename}: {content_error}")
            raise HTTPException(
                status_code=400,
                detail=content_error
            )

        env_ok, env_error = validate_processing_environment()
        if not env_ok:
            logger.error(f"Refusing {file.filename}: {env_error}")
            raise HTTPException(
                status_code=503,
                detail=env_error
            )

        request.state.file_content = content

        # Step 3: Run the endpoint under a wall-clock limit
        try:
            with ResourceMonitor(f"{func.__name__}({file.filename})") as monitor:
                monitor.check_memory()
                return await asyncio.wait_for(
                    func(*args, **kwargs),
                    timeout=timeout_seconds
                )

        except asyncio.TimeoutError:
            logger.error(f"Processing timed out after {timeout_seconds}s for {file.filename}")
            raise HTTPException(
                status_code=408,
                detail=f"PDF processing timed out after {timeout_seconds} seconds."
            )
        except AnnotationSaveError as e:
            logger.error(f"Saving annotations failed for {file.filename}: {e}")
            raise HTTPException(
                status_code=422,
                detail=f"Saving annotations failed: {str(e)}"
            )
        except DocumentOpenError as e:
            logger.warning(f"Could not open {file.filename}: {e}")
            raise HTTPException(
                status_code=400,
                detail=f"Could not open PDF: {str(e)}"
            )
        except PdfValidationError as e:
            logger.warning(f"PDF validation failed for {file.filename}: {e}")
            raise HTTPException(
                status_code=400,
                detail=f"PDF validation failed: {str(e)}"
            )
        except IndexError as e:
            logger.warning(f"Invalid page for {file.filename}: {e}")
            raise HTTPException(
                status_code=400,
                detail=str(e)
            )
        except MemoryLimitError as e:
            logger.error(f"Memory limit exceeded for {file.filename}: {e}")
            raise HTTPException(
                status_code=507,
                detail=f"Memory limit exceeded: {str(e)}"
            )
        except HTTPException:
            # Re-raise HTTP exceptions as-is
            raise
        except Exception as e:
            logger.error(f"Unexpected error processing {file.filename}: {e}")
            logger.exception("Full exception details:")
            raise HTTPException(
                status_code=500,
                detail=f"Internal server error during PDF processing: {str(e)}"
            )

    return wrapper
