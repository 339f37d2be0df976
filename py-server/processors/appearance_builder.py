"""
Appearance streams for FreeText annotations.

Content is laid out left-aligned from the top-left corner of the
annotation rectangle, wrapped at word boundaries (or at any character for
text without spaces) to the rectangle width.
"""

import logging
from typing import List, Tuple

import pikepdf
from pikepdf import Array, Dictionary, Name, Operator, String

from processors.font_resolver import ResolvedFont

logger = logging.getLogger(__name__)

LINE_SPACING = 1.2
TEXT_PADDING = 2.0
# Stroke width for synthetic bold, as a fraction of the font size
SYNTHETIC_BOLD_STROKE = 0.03
FILL_THEN_STROKE = 2

APPEARANCE_FONT_NAME = '/F1'


def _break_word(word: str, font: ResolvedFont, font_size: float, max_width: float) -> List[str]:
    pieces, current = [], ''
    for ch in word:
        if current and font.text_width(current + ch, font_size) > max_width:
            pieces.append(current)
            current = ch
        else:
            current += ch
    if current:
        pieces.append(current)
    return pieces


def wrap_text(text: str, font: ResolvedFont, font_size: float, max_width: float) -> List[str]:
    """
    Greedy line wrapping.

    Explicit newlines always break. A single word wider than the line is
    broken between characters.
    """
    lines: List[str] = []
    for paragraph in text.replace('\r\n', '\n').replace('\r', '\n').split('\n'):
        words = paragraph.split(' ')
        current = ''
        for word in words:
            candidate = word if not current else f'{current} {word}'
            if font.text_width(candidate, font_size) <= max_width or max_width <= 0:
                current = candidate
                continue
            if current:
                lines.append(current)
            if font.text_width(word, font_size) > max_width:
                *full, current = _break_word(word, font, font_size, max_width) or ['']
                lines.extend(full)
            else:
                current = word
        lines.append(current)
    return lines


def build_text_operators(
    lines: List[str],
    font: ResolvedFont,
    font_size: float,
    color: Tuple[float, float, float],
    height: float,
    font_name: str = APPEARANCE_FONT_NAME,
) -> list:
    """Content stream instructions painting ``lines`` inside a box of ``height``."""
    r, g, b = color
    leading = font_size * LINE_SPACING
    first_baseline = height - TEXT_PADDING - font.ascent * font_size / 1000.0

    instructions = [
        ([], Operator('q')),
        ([], Operator('BT')),
        ([Name(font_name), font_size], Operator('Tf')),
        ([r, g, b], Operator('rg')),
        ([leading], Operator('TL')),
    ]
    if font.synthetic_bold:
        instructions += [
            ([r, g, b], Operator('RG')),
            ([font_size * SYNTHETIC_BOLD_STROKE], Operator('w')),
            ([FILL_THEN_STROKE], Operator('Tr')),
        ]
    instructions.append(([TEXT_PADDING, first_baseline], Operator('Td')))

    for index, line in enumerate(lines):
        if index:
            instructions.append(([], Operator('T*')))
        if line:
            instructions.append(([String(font.encode(line))], Operator('Tj')))

    instructions += [
        ([], Operator('ET')),
        ([], Operator('Q')),
    ]
    return instructions


def build_free_text_appearance(
    pdf: pikepdf.Pdf,
    content: str,
    font: ResolvedFont,
    font_size: float,
    color: Tuple[float, float, float],
    width: float,
    height: float,
) -> pikepdf.Stream:
    """
    Form XObject for the /AP /N entry of a FreeText annotation.

    Args:
        pdf: Document the stream belongs to
        content: Annotation text
        font: Resolved font, referenced as /F1
        font_size: Size in points
        color: Fill color as rgb operands
        width, height: Rectangle size in points

    Returns:
        Indirect Form XObject stream with BBox [0 0 width height]
    """
    lines = wrap_text(content, font, font_size, width - 2 * TEXT_PADDING)
    instructions = build_text_operators(lines, font, font_size, color, height)
    data = pikepdf.unparse_content_stream(instructions)

    stream = pdf.make_stream(
        data,
        Type=Name.XObject,
        Subtype=Name.Form,
        BBox=Array([0, 0, width, height]),
        Resources=Dictionary(Font=Dictionary({APPEARANCE_FONT_NAME: font.font_dict})),
    )
    logger.debug(f"Built appearance with {len(lines)} lines at {font_size}pt using {font.base_font}")
    return stream
