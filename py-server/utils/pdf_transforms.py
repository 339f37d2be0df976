"""PDF transformation utilities for graphics operations and viewer coordinates.

PDF user space is bottom-up and measured in points (72 per inch). The viewer
works top-down in pixels (96 per inch) with its origin at the top-left corner
of the page's crop box. Every conversion between the two goes through the
functions in this module so that both the extraction and the annotation paths
apply the same ratio.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import numpy as np
from pikepdf import Array

MATRIX_EPSILON = 1e-9

POINTS_PER_INCH = 72.0
VIEWER_PIXELS_PER_INCH = 96.0
PIXELS_PER_POINT = VIEWER_PIXELS_PER_INCH / POINTS_PER_INCH

# US Letter, used when a page carries no usable box at all
DEFAULT_PAGE_BOX = (0.0, 0.0, 612.0, 792.0)


@dataclass(frozen=True)
class PageFrame:
    """Per-page geometry shared by the read and write paths.

    Resolved once per page from the crop box. ``resources`` is the page's
    resource dictionary (a pikepdf object) or None.
    """
    crop_offset_x: float
    crop_offset_y: float
    crop_height: float
    crop_width: float = 0.0
    resources: Optional[Any] = None

    @property
    def page_top(self) -> float:
        return self.crop_offset_y + self.crop_height

    def to_viewer(self, pdf_x: float, pdf_y: float) -> Tuple[float, float]:
        return to_viewer(pdf_x, pdf_y, self.crop_height, self.crop_offset_x, self.crop_offset_y)

    def to_pdf(self, viewer_x: float, viewer_y: float) -> Tuple[float, float]:
        return to_pdf(viewer_x, viewer_y, self.page_top, self.crop_offset_x)


# --- Matrix Helpers ---

def make_matrix(a: float, b: float, c: float, d: float, e: float, f: float) -> np.ndarray:
    """Build a 3x3 column-vector matrix from the six PDF matrix operands."""
    return np.array([[a, c, e], [b, d, f], [0, 0, 1]], dtype=float)


def translation_matrix(tx: float, ty: float) -> np.ndarray:
    return make_matrix(1.0, 0.0, 0.0, 1.0, tx, ty)


# --- Viewer <-> PDF Coordinates ---

def to_viewer(
    pdf_x: float,
    pdf_y: float,
    page_height: float,
    crop_offset_x: float = 0.0,
    crop_offset_y: float = 0.0
) -> Tuple[float, float]:
    """Map a PDF user-space point to viewer pixels (top-left origin).

    Args:
        pdf_x, pdf_y: Point in PDF points, bottom-up
        page_height: Crop box height in points
        crop_offset_x, crop_offset_y: Lower-left corner of the crop box

    Returns:
        (viewer_x, viewer_y) in pixels
    """
    viewer_x = (pdf_x - crop_offset_x) * PIXELS_PER_POINT
    viewer_y = ((page_height + crop_offset_y) - pdf_y) * PIXELS_PER_POINT
    return viewer_x, viewer_y


def to_pdf(
    viewer_x: float,
    viewer_y: float,
    page_top: float,
    crop_offset_x: float = 0.0
) -> Tuple[float, float]:
    """Inverse of :func:`to_viewer`.

    Args:
        viewer_x, viewer_y: Point in viewer pixels, top-down
        page_top: Top edge of the crop box in points (offset_y + height)
        crop_offset_x: Left edge of the crop box in points

    Returns:
        (pdf_x, pdf_y) in points
    """
    pdf_x = crop_offset_x + viewer_x / PIXELS_PER_POINT
    pdf_y = page_top - viewer_y / PIXELS_PER_POINT
    return pdf_x, pdf_y


def points_to_pixels(value: float) -> float:
    return value * PIXELS_PER_POINT


def pixels_to_points(value: float) -> float:
    return value / PIXELS_PER_POINT


def viewer_rect_to_pdf(
    frame: PageFrame, x: float, y: float, width: float, height: float
) -> Tuple[float, float, float, float]:
    """Convert a viewer box to a normalized PDF rectangle (x1, y1, x2, y2)."""
    left, top = frame.to_pdf(x, y)
    right, bottom = frame.to_pdf(x + width, y + height)
    return min(left, right), min(bottom, top), max(left, right), max(bottom, top)


def pdf_box_values(box: Any) -> Optional[Tuple[float, float, float, float]]:
    """
    A /Rect, /CropBox or /MediaBox array as a normalized (x1, y1, x2, y2).

    Returns None for anything that is not four numbers enclosing an area.
    """
    if not isinstance(box, Array) or len(box) != 4:
        return None
    try:
        x1, y1, x2, y2 = (float(v) for v in box)
    except (TypeError, ValueError):
        return None
    if x1 == x2 or y1 == y2:
        return None
    return min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2)


def pdf_rect_to_viewer(
    frame: PageFrame, x1: float, y1: float, x2: float, y2: float
) -> Tuple[float, float, float, float]:
    """Convert a PDF rectangle (any corner order) to a viewer box (x, y, width, height)."""
    left, right = min(x1, x2), max(x1, x2)
    bottom, top = min(y1, y2), max(y1, y2)
    viewer_x, viewer_y = frame.to_viewer(left, top)
    return viewer_x, viewer_y, points_to_pixels(right - left), points_to_pixels(top - bottom)


def quad_points_for_rect(x1: float, y1: float, x2: float, y2: float) -> List[float]:
    """Quad points for an axis-aligned PDF rectangle.

    Order is top-left, top-right, bottom-left, bottom-right, which is the
    order Acrobat writes for text markup annotations.
    """
    left, right = min(x1, x2), max(x1, x2)
    bottom, top = min(y1, y2), max(y1, y2)
    return [
        left, top,
        right, top,
        left, bottom,
        right, bottom,
    ]
