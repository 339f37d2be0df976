"""
PDF Dictionary Keys and Name Constants
"""

# Document / Page Keys
KEY_ROOT_ACROFORM = "/AcroForm"
KEY_NEED_APPEARANCES = "/NeedAppearances"
KEY_PARENT = "/Parent"
KEY_CONTENTS = "/Contents"
KEY_MEDIABOX = "/MediaBox"
KEY_CROPBOX = "/CropBox"
KEY_ANNOTS = "/Annots"

# Resource Dictionary Keys
KEY_RESOURCES = "/Resources"
KEY_XOBJECT = "/XObject"
KEY_EXT_GSTATE = "/ExtGState"
KEY_FONT = "/Font"

# Object Types and Subtypes
KEY_TYPE = "/Type"
KEY_SUBTYPE = "/Subtype"
VAL_FORM = "/Form"

# Form Properties
KEY_MATRIX = "/Matrix"

# Graphics State Parameter Keys (ExtGState)
KEY_FILL_OPACITY = "/ca"         # Non-stroking alpha constant

# Font Keys
KEY_TO_UNICODE = "/ToUnicode"
KEY_ENCODING = "/Encoding"
KEY_BASE_ENCODING = "/BaseEncoding"
KEY_DIFFERENCES = "/Differences"
KEY_DESCENDANT_FONTS = "/DescendantFonts"
KEY_CID_SYSTEM_INFO = "/CIDSystemInfo"
VAL_TYPE0 = "/Type0"

# Annotation Keys
KEY_RECT = "/Rect"
KEY_QUAD_POINTS = "/QuadPoints"
KEY_ANNOT_CONTENTS = "/Contents"
KEY_ANNOT_NAME = "/NM"
KEY_ANNOT_COLOR = "/C"
KEY_ANNOT_FLAGS = "/F"
KEY_DEFAULT_APPEARANCE = "/DA"
KEY_DEFAULT_STYLE = "/DS"
KEY_APPEARANCE = "/AP"
KEY_N = "/N"

# Annotation Subtypes
VAL_HIGHLIGHT = "/Highlight"
VAL_UNDERLINE = "/Underline"
VAL_FREE_TEXT = "/FreeText"

# Annotation flag bit 3 (Print)
ANNOT_FLAG_PRINT = 4
