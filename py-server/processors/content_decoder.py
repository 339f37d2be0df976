"""
Content stream decoding.

Turns a page or Form XObject content stream into a flat list of
``Instruction(operands, operator)`` records. pikepdf's parser is used
first; when it rejects a damaged stream a lenient parser recovers every
instruction that precedes the damage so interpretation can still run over
the readable prefix.

Operands are always pikepdf objects (Name, String, Array, Dictionary) or
plain Python numbers/booleans, whichever path produced them.
"""

import logging
from typing import Any, List, NamedTuple, Sequence

import pikepdf
from pikepdf import Array, Dictionary, Name, String
from pdfminer.pdfinterp import PDFContentParser
from pdfminer.pdftypes import PDFStream
from pdfminer.psparser import PSEOF, PSException, PSKeyword, PSLiteral

from constants.pdf_operators import CONTENT_STREAM_OPERATORS, OP_BEGIN_COMPAT, OP_END_COMPAT
from constants.pdf_keys import KEY_CONTENTS

logger = logging.getLogger(__name__)


class Instruction(NamedTuple):
    operands: List[Any]
    operator: bytes


class OperandError(ValueError):
    """An operand is missing or has the wrong type for its operator."""


def normalize_operator(operator) -> bytes:
    """Operator of a parsed instruction (or a bare operator) as bytes."""
    op_name = getattr(operator, 'operator', operator)
    if isinstance(op_name, bytes):
        return op_name
    if isinstance(op_name, str):
        return op_name.encode('latin-1')
    if isinstance(op_name, pikepdf.Operator):
        return bytes(op_name.unparse())
    try:
        return str(op_name).encode('latin-1')
    except UnicodeEncodeError:
        return b''


# --- Operand Helpers ---

def operand_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise OperandError(f"Expected number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise OperandError(f"Expected number, got {value!r}") from e


def operand_floats(operands: Sequence[Any], count: int) -> List[float]:
    """
    The last ``count`` operands as floats.

    Extra leading operands are ignored, as readers do.
    """
    if len(operands) < count:
        raise OperandError(f"Expected {count} operands, got {len(operands)}")
    return [operand_float(value) for value in operands[len(operands) - count:]]


def operand_name(value: Any) -> str:
    """Name operand as a string including the leading slash."""
    if isinstance(value, Name):
        return str(value)
    raise OperandError(f"Expected name, got {value!r}")


def operand_bytes(value: Any) -> bytes:
    if isinstance(value, String):
        return bytes(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise OperandError(f"Expected string, got {value!r}")


def is_string_operand(value: Any) -> bool:
    return isinstance(value, (String, bytes, bytearray))


# --- Decoding ---

def decode_content(source) -> List[Instruction]:
    """
    Decode a pikepdf Page, content Stream or raw bytes into instructions.

    Never raises for malformed content; the worst case is an empty list.
    """
    if isinstance(source, (bytes, bytearray)):
        return SalvageParser(bytes(source)).instructions()

    try:
        parsed = pikepdf.parse_content_stream(source)
    except (pikepdf.PdfError, pikepdf.PdfParsingError, TypeError, ValueError) as e:
        logger.debug(f"Content stream rejected by parser, salvaging readable prefix: {e}")
        return SalvageParser(read_content_bytes(source)).instructions()

    instructions = []
    for inst in parsed:
        instructions.append(Instruction(list(inst.operands), normalize_operator(inst)))
    return instructions


def read_content_bytes(source) -> bytes:
    """
    Decoded bytes of a page's (possibly multi-part) content or of a stream.

    Parts that fail to decode are dropped.
    """
    obj = getattr(source, 'obj', source)
    if isinstance(obj, pikepdf.Stream):
        parts = [obj]
    elif isinstance(obj, Dictionary) and KEY_CONTENTS in obj:
        contents = obj[KEY_CONTENTS]
        parts = list(contents) if isinstance(contents, Array) else [contents]
    else:
        return b''

    chunks = []
    for part in parts:
        if not isinstance(part, pikepdf.Stream):
            continue
        try:
            chunks.append(part.read_bytes())
        except pikepdf.PdfError as e:
            logger.debug(f"Skipping undecodable content part: {e}")
            break
    return b'\n'.join(chunks)


class _Damage(Exception):
    """A token that cannot belong to a content stream."""


def _to_pikepdf(value: Any) -> Any:
    """pdfminer operand -> the operand type pikepdf's parser would produce."""
    if isinstance(value, PSKeyword):
        if value.name == b'null':
            return None
        raise _Damage(f"keyword {value.name!r} inside an operand")
    if isinstance(value, (bytes, bytearray)):
        return String(bytes(value))
    if isinstance(value, PSLiteral):
        name = value.name
        if isinstance(name, bytes):
            name = name.decode('latin-1')
        return Name('/' + name)
    if isinstance(value, list):
        return Array([_to_pikepdf(item) for item in value])
    if isinstance(value, dict):
        return Dictionary({'/' + str(key): _to_pikepdf(item) for key, item in value.items()})
    return value


class SalvageParser:
    """Lenient content stream parser built on pdfminer.six's PDFContentParser.

    Produces the same instruction shape as the pikepdf path. Stops at the
    first token that is not a content stream operator (outside BX/EX) and
    returns every instruction completed before it.
    """

    def __init__(self, data: bytes):
        # Trailing newline so a keyword at the very end is still terminated
        self.data = data + b'\n'

    def instructions(self) -> List[Instruction]:
        result: List[Instruction] = []
        operands: List[Any] = []
        compat_depth = 0

        try:
            parser = PDFContentParser([PDFStream({}, self.data)])
            while True:
                _, obj = parser.nextobject()
                if not isinstance(obj, PSKeyword):
                    operands.append(obj)
                    continue

                operator = obj.name
                if operator == b'null':
                    operands.append(None)
                    continue
                if operator not in CONTENT_STREAM_OPERATORS and not compat_depth:
                    raise _Damage(f"unknown operator {operator!r}")
                if operator == OP_BEGIN_COMPAT:
                    compat_depth += 1
                elif operator == OP_END_COMPAT:
                    compat_depth = max(0, compat_depth - 1)

                # Inline image data arrives as a stream operand of EI
                values = [_to_pikepdf(value) for value in operands if not isinstance(value, PDFStream)]
                result.append(Instruction(values, operator))
                operands = []
        except PSEOF:
            pass
        except (_Damage, PSException) as e:
            logger.debug(f"Salvage stopped: {e}; kept {len(result)} instructions")

        return result
