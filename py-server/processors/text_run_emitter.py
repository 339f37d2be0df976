"""
Text run emission.

Turns the current graphics state plus a decoded string into a
PositionedTextRun in viewer pixels. Width is an approximation
(0.6 em per character); no font metrics are consulted.
"""

import math
from typing import List

from models.pdf_types import PositionedTextRun
from processors.pdf_graphics import GraphicsStateTracker
from utils.pdf_transforms import PageFrame, PIXELS_PER_POINT, MATRIX_EPSILON

AVERAGE_CHAR_WIDTH_EM = 0.6


def approximate_text_width(text: str, font_size: float) -> float:
    return len(text) * font_size * AVERAGE_CHAR_WIDTH_EM


class TextRunEmitter:
    """Collects runs for one page in content-stream order."""

    def __init__(self, frame: PageFrame):
        self.frame = frame
        self.runs: List[PositionedTextRun] = []

    def emit(self, tracker: GraphicsStateTracker, text: str) -> PositionedTextRun:
        state = tracker.state
        effective = state.ctm @ state.text_matrix
        anchor_x = float(effective[0, 2])
        anchor_y = float(effective[1, 2])

        vertical_scale = math.hypot(float(effective[0, 1]), float(effective[1, 1]))
        scaled_font_size = state.font_size * vertical_scale
        if vertical_scale < MATRIX_EPSILON:
            scaled_font_size = state.font_size

        viewer_x, baseline_y = self.frame.to_viewer(anchor_x, anchor_y)
        height = scaled_font_size * PIXELS_PER_POINT
        run = PositionedTextRun(
            text=text,
            x=viewer_x,
            y=baseline_y - height,
            width=approximate_text_width(text, scaled_font_size) * PIXELS_PER_POINT,
            height=height,
        )
        self.runs.append(run)

        # Consecutive shows on one line start after the previous run
        tracker.advance_text(approximate_text_width(text, state.font_size))
        return run
