"""
Pydantic models for the PDF annotation API
All coordinates are viewer pixels (96 per inch, top-left origin) at zoom 1.0.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List
from enum import Enum
from uuid import UUID, uuid4

from utils.font_mapping import normalize_hex_color

DEFAULT_FONT_FAMILY = "Malgun Gothic"
DEFAULT_FONT_SIZE = 14

class AnnotationKind(str, Enum):
    """Annotation kinds the serializer models"""
    FREE_TEXT = "FreeText"
    HIGHLIGHT = "Highlight"
    UNDERLINE = "Underline"
    OCR_TEXT = "OcrText"

# Base models for PDF elements
class BoundingBox(BaseModel):
    """Axis-aligned box in viewer pixels"""
    x: float
    y: float
    width: float
    height: float

    @property
    def has_area(self) -> bool:
        return self.width > 0 and self.height > 0

class PositionedTextRun(BoundingBox):
    """One text-show operation located on the page"""
    text: str

class Annotation(BoundingBox):
    """Annotation as the viewer models it"""
    id: UUID = Field(default_factory=uuid4)
    kind: AnnotationKind
    content: str = ""
    page: int = Field(ge=1, description="1-based page number")
    width: float = Field(gt=0, description="Box width in viewer pixels")
    height: float = Field(gt=0, description="Box height in viewer pixels")
    color: str = "#000000"
    fontFamily: str = DEFAULT_FONT_FAMILY
    fontSize: int = Field(default=DEFAULT_FONT_SIZE, ge=1, description="Font size in viewer pixels")
    bold: bool = False

    @field_validator('color', mode='before')
    @classmethod
    def _normalize_color(cls, value):
        # Unparseable colors degrade to black rather than rejecting the annotation
        return normalize_hex_color(value if isinstance(value, str) else None)

class ErrorResponse(BaseModel):
    """Error response model"""
    detail: str

class ExtractTextResponse(BaseModel):
    """Text runs of one page"""
    page: int
    runs: List[PositionedTextRun]
    usedOcr: bool = False

class SearchableResponse(BaseModel):
    searchable: bool

class AnnotationsResponse(BaseModel):
    annotations: List[Annotation]

class SaveAnnotationsRequest(BaseModel):
    """Annotations to write back, at the viewer zoom they were captured with"""
    annotations: List[Annotation] = Field(default_factory=list)
    scale: float = Field(default=1.0, gt=0, description="Viewer zoom the coordinates were captured at")

class OcrTextResponse(BaseModel):
    """OcrText annotations recognized on one page"""
    page: int
    annotations: List[Annotation]
