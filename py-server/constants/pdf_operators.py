"""
PDF Operator Constants

Content stream operators understood by the page interpreter. Organized by
functional category according to the PDF specification.

Reference: PDF 32000-1:2008 specification, Appendix A
"""

# ==============================================================================
# Graphics State Operators (PDF spec 8.4.4)
# ==============================================================================
OP_SAVE_STATE = b'q'                 # Save graphics state
OP_RESTORE_STATE = b'Q'              # Restore graphics state
OP_CTM = b'cm'                       # Modify current transformation matrix

# ==============================================================================
# Text State Operators (PDF spec 9.3)
# ==============================================================================
OP_BEGIN_TEXT = b'BT'            # Begin text object
OP_END_TEXT = b'ET'              # End text object
OP_SET_FONT = b'Tf'              # Set text font and size
OP_SET_LEADING = b'TL'           # Set text leading

# ==============================================================================
# Text Positioning Operators (PDF spec 9.4.2)
# ==============================================================================
OP_MOVE_TEXT = b'Td'              # Move text position
OP_MOVE_TEXT_SET_LEADING = b'TD'  # Move text position and set leading
OP_SET_TEXT_MATRIX = b'Tm'        # Set text matrix and text line matrix
OP_NEXT_LINE = b'T*'              # Move to start of next text line

# ==============================================================================
# Text Showing Operators (PDF spec 9.4.3)
# ==============================================================================
OP_SHOW_TEXT = b'Tj'              # Show a text string
OP_SHOW_TEXT_ARRAY = b'TJ'        # Show text strings with positioning
OP_NEXT_LINE_SHOW_TEXT = b"'"     # Move to next line and show text
OP_SET_SPACING_SHOW_TEXT = b'"'   # Set spacing, move to next line, show text

TEXT_SHOWING_OPS = {OP_SHOW_TEXT, OP_SHOW_TEXT_ARRAY, OP_NEXT_LINE_SHOW_TEXT, OP_SET_SPACING_SHOW_TEXT}

# ==============================================================================
# XObject Operators (PDF spec 8.8)
# ==============================================================================
OP_DO_XOBJECT = b'Do'     # Invoke named XObject (image, form, etc.)

# ==============================================================================
# Compatibility Operators (PDF spec 7.8.2)
# ==============================================================================
OP_BEGIN_COMPAT = b'BX'   # Unknown operators are ignored until EX
OP_END_COMPAT = b'EX'

# ==============================================================================
# Every operator a content stream may contain (PDF spec Annex A)
# ==============================================================================
CONTENT_STREAM_OPERATORS = frozenset({
    # General graphics state
    b'w', b'J', b'j', b'M', b'd', b'ri', b'i', b'gs',
    # Special graphics state
    OP_SAVE_STATE, OP_RESTORE_STATE, OP_CTM,
    # Path construction and painting
    b'm', b'l', b'c', b'v', b'y', b'h', b're',
    b'S', b's', b'f', b'F', b'f*', b'B', b'B*', b'b', b'b*', b'n',
    # Clipping
    b'W', b'W*',
    # Text objects, state, positioning and showing
    OP_BEGIN_TEXT, OP_END_TEXT,
    b'Tc', b'Tw', b'Tz', OP_SET_LEADING, OP_SET_FONT, b'Tr', b'Ts',
    OP_MOVE_TEXT, OP_MOVE_TEXT_SET_LEADING, OP_SET_TEXT_MATRIX, OP_NEXT_LINE,
    OP_SHOW_TEXT, OP_SHOW_TEXT_ARRAY, OP_NEXT_LINE_SHOW_TEXT, OP_SET_SPACING_SHOW_TEXT,
    # Type 3 fonts
    b'd0', b'd1',
    # Color
    b'CS', b'cs', b'SC', b'SCN', b'sc', b'scn', b'G', b'g', b'RG', b'rg', b'K', b'k',
    # Shading, XObjects and inline images
    b'sh', OP_DO_XOBJECT, b'BI', b'ID', b'EI',
    # Marked content
    b'MP', b'DP', b'BMC', b'BDC', b'EMC',
    OP_BEGIN_COMPAT, OP_END_COMPAT,
})
