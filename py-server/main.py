"""PDF Annotation Python Server"""

import logging
import asyncio
import os
from importlib import metadata
from typing import Optional

import uvicorn
from fastapi import FastAPI, UploadFile, File, HTTPException, Query, Form, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from rich.console import Console
from rich.logging import RichHandler

from engine.config import EngineConfig
from models.pdf_types import (
    AnnotationsResponse,
    ErrorResponse,
    ExtractTextResponse,
    OcrTextResponse,
    SaveAnnotationsRequest,
    SearchableResponse,
)
from models.user_settings import UserSettings
from extractors.annotation_extractor import extract_annotations
from extractors.ocr_extractor import TesseractOcrService, ocr_runs_to_annotations
from extractors.pdf_modifier import save_with_annotations, strip_annotations, delete_page
from extractors.text_extractor import extract_text, extract_text_with_ocr_fallback, is_searchable
from utils.endpoint_decorators import handle_pdf_processing

API_VERSION = "1.0.0"
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
MIN_TIMEOUT_SECONDS = 30
MAX_TIMEOUT_SECONDS = 600
SETTINGS_PATH = os.getenv("USER_SETTINGS_PATH", "user_settings.json")

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    408: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    507: {"model": ErrorResponse},
}

logger = logging.getLogger("rich")

engine_config = EngineConfig.default()
ocr_service = TesseractOcrService(config=engine_config)

app = FastAPI(
    title="PDF Annotation API",
    description="Extract positioned text and round-trip annotations of PDF files",
    version=API_VERSION
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.engine_config = engine_config


def _pdf_response(pdf_bytes: bytes, filename: Optional[str], prefix: str, headers: Optional[dict] = None) -> Response:
    filename = filename if filename else "document.pdf"
    return Response(
        content=pdf_bytes,
        media_type='application/pdf',
        headers={
            "Content-Disposition": f"attachment; filename={prefix}_{filename}",
            **(headers or {}),
        }
    )


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "message": "PDF Annotation API",
        "version": API_VERSION,
        "features": [
            "Positioned text extraction from content streams",
            "Searchability check with OCR fallback",
            "FreeText, Highlight and Underline annotation round trip",
            "Invisible OCR text layer",
            "Page deletion"
        ]
    }

@app.get("/health")
async def health_check():
    """Health check with dependency verification"""
    try:
        import PIL
        import pikepdf
        import numpy

        return {
            "status": "healthy",
            "version": API_VERSION,
            "features": {
                "text_extraction": "pikepdf",
                "annotation_roundtrip": "pikepdf",
                "font_embedding": "fontTools",
                "page_rendering": "pypdfium2",
                "ocr": "pytesseract"
            },
            "dependencies": {
                "PIL": PIL.__version__,
                "fontTools": metadata.version("fonttools"),
                "pikepdf": pikepdf.__version__,
                "pypdfium2": metadata.version("pypdfium2"),
                "numpy": numpy.__version__
            }
        }
    except (ImportError, metadata.PackageNotFoundError) as e:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": f"Missing dependency: {str(e)}"
            }
        )

@app.post("/extract-text", response_model=ExtractTextResponse, responses=ERROR_RESPONSES)
@handle_pdf_processing
async def extract_page_text(
    *,
    request: Request,
    file: UploadFile = File(...),
    page_number: int = Query(1, ge=1, description="Page number (1-based)"),
    ocr_fallback: Optional[bool] = Form(False, description="Run OCR when the page has no usable text layer"),
    processing_timeout: Optional[int] = Query(None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS, description="Processing timeout in seconds (default: engine timeout_seconds)")
):
    """
    Extract positioned text runs of one page in content-stream order.

    **Coordinates:** viewer pixels (96 per inch), origin at the top-left of
    the page's crop box.

    **OCR fallback:** with `ocr_fallback=true`, pages of documents without a
    text layer (or whose runs all have zero area) are recognized with OCR.
    """
    file_content = request.state.file_content

    logger.info(f"Extracting text from page {page_number} (ocr_fallback={ocr_fallback})")

    if ocr_fallback:
        runs, used_ocr = await asyncio.to_thread(
            extract_text_with_ocr_fallback,
            file_content,
            page_number,
            ocr_service,
            engine_config
        )
    else:
        runs = await asyncio.to_thread(extract_text, file_content, page_number, engine_config)
        used_ocr = False

    logger.info(f"Extracted {len(runs)} runs from page {page_number} (used_ocr={used_ocr})")
    return ExtractTextResponse(page=page_number, runs=runs, usedOcr=used_ocr)

@app.post("/is-searchable", response_model=SearchableResponse, responses=ERROR_RESPONSES)
@handle_pdf_processing
async def check_searchable(
    *,
    request: Request,
    file: UploadFile = File(...),
    sample_limit: Optional[int] = Query(None, ge=1, description="Number of leading pages to inspect (default: engine searchable_sample_limit)"),
    processing_timeout: Optional[int] = Query(None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS, description="Processing timeout in seconds (default: engine timeout_seconds)")
):
    """
    Report whether any of the first `sample_limit` pages draws text,
    including text inside nested form XObjects.
    """
    searchable = await asyncio.to_thread(
        is_searchable,
        request.state.file_content,
        sample_limit,
        engine_config
    )
    return SearchableResponse(searchable=searchable)

@app.post("/extract-annotations", response_model=AnnotationsResponse, responses=ERROR_RESPONSES)
@handle_pdf_processing
async def extract_pdf_annotations(
    *,
    request: Request,
    file: UploadFile = File(...),
    processing_timeout: Optional[int] = Query(None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS, description="Processing timeout in seconds (default: engine timeout_seconds)")
):
    """
    Read FreeText, Highlight and Underline annotations of every page.

    Other annotation subtypes are ignored.
    """
    annotations = await asyncio.to_thread(extract_annotations, request.state.file_content, engine_config)
    logger.info(f"Extracted {len(annotations)} annotations")
    return AnnotationsResponse(annotations=annotations)

@app.post("/save-annotations", responses=ERROR_RESPONSES)
@handle_pdf_processing
async def save_pdf_annotations(
    *,
    request: Request,
    file: UploadFile = File(...),
    annotation_data: str = Form(..., description="JSON string containing SaveAnnotationsRequest data"),
    processing_timeout: Optional[int] = Query(None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS, description="Processing timeout in seconds (default: engine timeout_seconds)")
):
    """
    Replace every annotation of the document with the supplied ones.

    **Request (JSON):**
    - `annotations`: Annotation list in viewer pixels
    - `scale`: Viewer zoom the coordinates were captured at (default: `1.0`)

    Existing annotations, including kinds this API does not model, are
    removed. OcrText annotations are written as invisible page text.

    Returns the rewritten PDF.
    """
    try:
        save_request = SaveAnnotationsRequest.model_validate_json(annotation_data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid annotation data: {str(e)}")

    logger.info(f"Saving {len(save_request.annotations)} annotations (scale={save_request.scale})")

    pdf_bytes = await asyncio.to_thread(
        save_with_annotations,
        request.state.file_content,
        save_request.annotations,
        save_request.scale,
        engine_config
    )

    return _pdf_response(pdf_bytes, file.filename, "annotated")

@app.post("/strip-annotations", responses=ERROR_RESPONSES)
@handle_pdf_processing
async def strip_pdf_annotations(
    *,
    request: Request,
    file: UploadFile = File(...),
    processing_timeout: Optional[int] = Query(None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS, description="Processing timeout in seconds (default: engine timeout_seconds)")
):
    """Remove every annotation of the document and return the rewritten PDF."""
    pdf_bytes = await asyncio.to_thread(strip_annotations, request.state.file_content, engine_config)
    return _pdf_response(pdf_bytes, file.filename, "stripped")

@app.post("/delete-page", responses=ERROR_RESPONSES)
@handle_pdf_processing
async def delete_pdf_page(
    *,
    request: Request,
    file: UploadFile = File(...),
    page_number: int = Query(..., ge=1, description="Page number (1-based)"),
    processing_timeout: Optional[int] = Query(None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS, description="Processing timeout in seconds (default: engine timeout_seconds)")
):
    """
    Remove one page and return the rewritten PDF.

    The only page of a document cannot be deleted.
    """
    try:
        pdf_bytes = await asyncio.to_thread(delete_page, request.state.file_content, page_number, engine_config)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Deleted page {page_number}")
    return _pdf_response(pdf_bytes, file.filename, "modified", headers={"X-Deleted-Page": str(page_number)})

@app.post("/ocr-text", response_model=OcrTextResponse, responses=ERROR_RESPONSES)
@handle_pdf_processing
async def ocr_page_text(
    *,
    request: Request,
    file: UploadFile = File(...),
    page_number: int = Query(1, ge=1, description="Page number (1-based)"),
    processing_timeout: Optional[int] = Query(None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS, description="Processing timeout in seconds (default: engine timeout_seconds)")
):
    """
    Recognize the words of one page as OcrText annotations.

    Annotations use the persisted user defaults for font family, size and
    color. Saving them writes an invisible, selectable text layer.
    """
    runs = await asyncio.to_thread(ocr_service.recognize, request.state.file_content, page_number)
    settings = UserSettings.load(SETTINGS_PATH)
    annotations = ocr_runs_to_annotations(runs, page_number, settings)

    logger.info(f"OCR produced {len(annotations)} annotations on page {page_number}")
    return OcrTextResponse(page=page_number, annotations=annotations)

def _configure_server_logging():
    console = Console(force_terminal=True)

    # Get level from env, default to the engine configuration
    log_level = os.getenv("LOG_LEVEL", engine_config.log_level).upper()

    class ShutdownFilter(logging.Filter):
        """Filter out shutdown-related log messages"""
        def filter(self, record):
            if record.exc_info and record.exc_info[0] in (KeyboardInterrupt, asyncio.CancelledError):
                return False
            if "CancelledError" in str(record.msg) or "KeyboardInterrupt" in str(record.msg):
                return False
            return True

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=True
    )
    rich_handler.addFilter(ShutdownFilter())

    # Silence everything by default
    logging.basicConfig(level=logging.WARNING, format="%(message)s", handlers=[rich_handler])

    # Allow server startup logs
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)

    # Set specific module log levels
    for module_name in ["main", "rich", "engine", "extractors", "processors", "models", "utils"]:
        logging.getLogger(module_name).setLevel(log_level)

    return console

def _find_free_port(start_port: int = 8000) -> int:
    """Find an available port starting from the given port"""
    import socket

    port = start_port
    max_port = start_port + 100

    while port < max_port:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind(('localhost', port))
                return port
        except OSError:
            port += 1

    return start_port

server_console = _configure_server_logging()

if __name__ == "__main__":
    free_port = _find_free_port()
    server_console.print(f"[bold green]🚀 Starting server on http://localhost:{free_port}[/bold green]")

    try:
        uvicorn.run("main:app", host="0.0.0.0", port=free_port, reload=True, log_config=None)
    except KeyboardInterrupt:
        server_console.print("\n[bold yellow]🛑 Server stopped.[/bold yellow]")
