"""
Glyph code to Unicode decoding for text-show operands.

Built on pdfminer.six's CMap and encoding databases:

- /ToUnicode CMaps are parsed with ``CMapParser`` into a ``FileUnicodeMap``
- simple fonts fall back to their /Encoding (base encoding plus /Differences)
- composite (Type0) fonts split codes through their encoding CMap and, with no
  /ToUnicode, use the Adobe collection named by /CIDSystemInfo

Codes that map to nothing decode to U+FFFD.
"""

import logging
from io import BytesIO
from typing import Dict, List, Optional

import pikepdf
from pikepdf import Array, Dictionary, Name
from pdfminer.cmapdb import CMap, CMapBase, CMapDB, CMapParser, FileUnicodeMap, UnicodeMap
from pdfminer.encodingdb import EncodingDB
from pdfminer.psparser import LIT, PSException

from constants.pdf_keys import (
    KEY_BASE_ENCODING,
    KEY_CID_SYSTEM_INFO,
    KEY_DESCENDANT_FONTS,
    KEY_DIFFERENCES,
    KEY_ENCODING,
    KEY_FONT,
    KEY_SUBTYPE,
    KEY_TO_UNICODE,
    VAL_TYPE0,
)

logger = logging.getLogger(__name__)

REPLACEMENT_CHAR = '\ufffd'
DEFAULT_SIMPLE_ENCODING = 'StandardEncoding'
DEFAULT_COMPOSITE_ENCODING = 'Identity-H'


def parse_tounicode_cmap(cmap_data: bytes) -> FileUnicodeMap:
    """
    Parse a /ToUnicode CMap stream into a code -> text map.

    Malformed entries are skipped by the parser; an unreadable tail keeps
    whatever was mapped before it.
    """
    cmap = FileUnicodeMap()
    try:
        CMapParser(cmap, BytesIO(cmap_data)).run()
    except PSException as e:
        logger.debug(f"ToUnicode CMap parsing stopped early: {e}")
    return cmap


def _pdf_name(value) -> Optional[str]:
    """Name object as a bare string (no slash), otherwise None."""
    if isinstance(value, Name):
        return str(value)[1:]
    return None


def _differences(encoding: Dictionary) -> List[object]:
    """The /Differences array in the form pdfminer's EncodingDB expects."""
    differences = encoding.get(KEY_DIFFERENCES)
    if not isinstance(differences, Array):
        return []

    items: List[object] = []
    for item in differences:
        if isinstance(item, Name):
            items.append(LIT(str(item)[1:]))
        else:
            try:
                items.append(int(item))
            except (TypeError, ValueError):
                continue
    return items


def simple_font_encoding(font: Optional[Dictionary]) -> Dict[int, str]:
    """Byte code -> text table from a simple font's /Encoding entry."""
    encoding = font.get(KEY_ENCODING) if font is not None else None

    if isinstance(encoding, Dictionary):
        base = _pdf_name(encoding.get(KEY_BASE_ENCODING)) or DEFAULT_SIMPLE_ENCODING
        return EncodingDB.get_encoding(base, _differences(encoding))
    return EncodingDB.get_encoding(_pdf_name(encoding) or DEFAULT_SIMPLE_ENCODING)


class FontDecoder:
    """Decodes show-string bytes for one font dictionary."""

    def __init__(self, unicode_map: Optional[UnicodeMap] = None,
                 encoding: Optional[Dict[int, str]] = None,
                 code_map: Optional[CMapBase] = None):
        self.unicode_map = unicode_map
        self.encoding = encoding or {}
        # Composite fonts only; simple fonts use one byte per code
        self.code_map = code_map

    @classmethod
    def for_font(cls, font: Optional[Dictionary]) -> 'FontDecoder':
        if font is None:
            return cls(encoding=simple_font_encoding(None))

        unicode_map = None
        to_unicode = font.get(KEY_TO_UNICODE)
        if isinstance(to_unicode, pikepdf.Stream):
            try:
                unicode_map = parse_tounicode_cmap(to_unicode.read_bytes())
            except pikepdf.PdfError as e:
                logger.debug(f"Unreadable ToUnicode CMap: {e}")

        if font.get(KEY_SUBTYPE) == Name(VAL_TYPE0):
            code_map = _composite_code_map(font)
            if unicode_map is None:
                unicode_map = _collection_unicode_map(font, code_map)
            return cls(unicode_map=unicode_map, code_map=code_map)

        return cls(unicode_map=unicode_map, encoding=simple_font_encoding(font))

    def decode(self, raw: bytes) -> str:
        codes = self.code_map.decode(raw) if self.code_map is not None else raw
        return ''.join(self.to_unichr(code) for code in codes)

    def to_unichr(self, code: int) -> str:
        if self.unicode_map is not None:
            try:
                return self.unicode_map.get_unichr(code)
            except KeyError:
                pass
        return self.encoding.get(code, REPLACEMENT_CHAR)


def _composite_code_map(font: Dictionary) -> CMapBase:
    encoding = font.get(KEY_ENCODING)

    if isinstance(encoding, pikepdf.Stream):
        cmap = CMap()
        try:
            CMapParser(cmap, BytesIO(encoding.read_bytes())).run()
            return cmap
        except (pikepdf.PdfError, PSException) as e:
            logger.debug(f"Unreadable embedded encoding CMap, assuming Identity-H: {e}")
            return CMapDB.get_cmap(DEFAULT_COMPOSITE_ENCODING)

    name = _pdf_name(encoding) or DEFAULT_COMPOSITE_ENCODING
    try:
        return CMapDB.get_cmap(name)
    except CMapDB.CMapNotFound:
        logger.debug(f"Unknown encoding CMap {name}, assuming Identity-H")
        return CMapDB.get_cmap(DEFAULT_COMPOSITE_ENCODING)


def _collection_unicode_map(font: Dictionary, code_map: CMapBase) -> Optional[UnicodeMap]:
    descendants = font.get(KEY_DESCENDANT_FONTS)
    if not isinstance(descendants, Array) or len(descendants) == 0:
        return None
    info = descendants[0].get(KEY_CID_SYSTEM_INFO) if isinstance(descendants[0], Dictionary) else None
    if not isinstance(info, Dictionary):
        return None

    collection = f"{info.get('/Registry', '')}-{info.get('/Ordering', '')}"
    try:
        return CMapDB.get_unicode_map(collection, code_map.is_vertical())
    except CMapDB.CMapNotFound:
        logger.debug(f"No Unicode map for character collection {collection}")
        return None


class GlyphDecoder:
    """
    Decodes show-string bytes for the font selected by Tf.

    Decoders are cached per font object for the lifetime of one interpretation.
    """

    def __init__(self):
        self._cache: Dict[object, FontDecoder] = {}

    def decode(self, raw: bytes, resources: Optional[Dictionary], font_name: Optional[str]) -> str:
        return self.decoder_for(resources, font_name).decode(raw)

    def decoder_for(self, resources: Optional[Dictionary], font_name: Optional[str]) -> FontDecoder:
        font = self._font_dict(resources, font_name)
        if font is None:
            key = None
        else:
            key = font.objgen if font.objgen != (0, 0) else id(font)

        if key not in self._cache:
            self._cache[key] = FontDecoder.for_font(font)
        return self._cache[key]

    @staticmethod
    def _font_dict(resources, font_name) -> Optional[Dictionary]:
        if resources is None or not font_name:
            return None
        fonts = resources.get(KEY_FONT)
        if not isinstance(fonts, Dictionary):
            return None
        font = fonts.get(font_name)
        return font if isinstance(font, Dictionary) else None
