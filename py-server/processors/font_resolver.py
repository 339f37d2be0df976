"""
Font resolution and embedding for generated content.

Walks the configured fallback chain (requested family, CJK-capable
fallback, universal fallback) and returns the first font that covers the
text, or the first loadable one when none covers it completely. TrueType and
OpenType files are embedded as Type0/Identity-H fonts (subset with
fontTools); the PDF base-14 fonts are referenced without embedding.
"""

import io
import logging
import os
import zlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

import pikepdf
from pikepdf import Array, Dictionary, Name, String
from fontTools import subset
from fontTools.ttLib import TTFont, TTLibError

from utils.font_mapping import standard_font_name
from utils.validation import FontResolutionError

if TYPE_CHECKING:
    from engine.config import EngineConfig

logger = logging.getLogger(__name__)

# Used for base-14 fonts, whose metrics are not consulted
STANDARD_CHAR_WIDTH = 600
STANDARD_ASCENT = 718
WIN_ANSI = 'cp1252'


@dataclass
class ResolvedFont:
    """A font ready to be referenced from a content stream."""
    family: str
    base_font: str
    font_dict: Dictionary
    is_composite: bool
    synthetic_bold: bool = False
    ascent: float = STANDARD_ASCENT  # in 1000-unit glyph space
    glyph_ids: Dict[int, int] = field(default_factory=dict)  # code point -> glyph id
    widths: Dict[int, float] = field(default_factory=dict)  # glyph id -> width (1000 units)

    def encode(self, text: str) -> bytes:
        if not self.is_composite:
            return text.encode(WIN_ANSI, errors='replace')
        return b''.join(self.glyph_ids.get(ord(ch), 0).to_bytes(2, 'big') for ch in text)

    def text_width(self, text: str, font_size: float) -> float:
        """Advance width of ``text`` in points at ``font_size``."""
        if not self.is_composite:
            return len(text) * STANDARD_CHAR_WIDTH * font_size / 1000.0
        total = sum(self.widths.get(self.glyph_ids.get(ord(ch), 0), 0.0) for ch in text)
        return total * font_size / 1000.0


@dataclass
class _FontFile:
    family: str
    path: str
    bold_file: bool
    font: TTFont


def _covers(cmap: Dict[int, str], text: str) -> bool:
    return all(ord(ch) in cmap for ch in text if not ch.isspace())


def _subset_tag(glyph_ids) -> str:
    checksum = zlib.crc32(','.join(str(g) for g in sorted(glyph_ids)).encode('ascii'))
    letters = []
    for _ in range(6):
        letters.append(chr(ord('A') + checksum % 26))
        checksum //= 26
    return ''.join(letters)


def _to_unicode_cmap(glyph_ids: Dict[int, int]) -> bytes:
    """ToUnicode CMap mapping 2-byte glyph ids back to code points."""
    lines = [
        '/CIDInit /ProcSet findresource begin',
        '12 dict begin',
        'begincmap',
        '/CIDSystemInfo << /Registry (Adobe) /Ordering (UCS) /Supplement 0 >> def',
        '/CMapName /Adobe-Identity-UCS def',
        '/CMapType 2 def',
        '1 begincodespacerange',
        '<0000> <FFFF>',
        'endcodespacerange',
    ]
    entries = sorted((gid, cp) for cp, gid in glyph_ids.items())
    for start in range(0, len(entries), 100):
        chunk = entries[start:start + 100]
        lines.append(f'{len(chunk)} beginbfchar')
        for gid, cp in chunk:
            lines.append(f'<{gid:04X}> <{chr(cp).encode("utf-16-be").hex().upper()}>')
        lines.append('endbfchar')
    lines += ['endcmap', 'CMapName currentdict /CMap defineresource pop', 'end', 'end']
    return '\n'.join(lines).encode('ascii')


class FontResolver:
    """
    Resolves families to fonts in one output document.

    Loaded font files are cached for the resolver's lifetime.
    """

    def __init__(self, pdf: pikepdf.Pdf, config: 'EngineConfig'):
        self.pdf = pdf
        self.config = config
        self._files: Dict[Tuple[str, bool], Optional[_FontFile]] = {}

    def resolve(self, family: Optional[str], bold: bool, text: str) -> ResolvedFont:
        """
        Pick and embed a font for ``text``.

        Raises:
            FontResolutionError: If no family in the chain can be loaded
        """
        chain = self.config.font_chain(family)
        first_loadable = None

        for candidate in chain:
            standard = standard_font_name(candidate, bold)
            if standard:
                covers = self._win_ansi_covers(text)
                option = ('standard', candidate, standard)
            else:
                font_file = self._load_file(candidate, bold)
                if font_file is None:
                    continue
                covers = _covers(font_file.font.getBestCmap() or {}, text)
                option = ('file', candidate, font_file)

            if covers:
                return self._build(option, bold, text)
            if first_loadable is None:
                first_loadable = option

        if first_loadable is not None:
            logger.warning(f"No font in {chain} covers all characters; using {first_loadable[1]}")
            return self._build(first_loadable, bold, text)

        raise FontResolutionError(f"Unable to load any font from chain {chain}")

    @staticmethod
    def _win_ansi_covers(text: str) -> bool:
        try:
            text.encode(WIN_ANSI)
            return True
        except UnicodeEncodeError:
            return False

    def _build(self, option, bold: bool, text: str) -> ResolvedFont:
        kind, family, payload = option
        if kind == 'standard':
            return self._standard_font(family, payload)
        return self._embed_file(payload, bold and not payload.bold_file, text)

    # --- Font file lookup ---

    def _find_file(self, family: str, bold: bool) -> Tuple[Optional[str], bool]:
        names = []
        if bold:
            names.append((self.config.font_files.get(f"{family} Bold"), True))
        names.append((self.config.font_files.get(family), False))

        for filename, is_bold in names:
            if not filename:
                continue
            if os.path.isabs(filename) and os.path.exists(filename):
                return filename, is_bold
            for directory in self.config.font_directories:
                path = os.path.join(directory, filename)
                if os.path.exists(path):
                    return path, is_bold
        return None, False

    def _load_file(self, family: str, bold: bool) -> Optional[_FontFile]:
        key = (family, bold)
        if key in self._files:
            return self._files[key]

        path, bold_file = self._find_file(family, bold)
        font_file = None
        if path is None:
            logger.debug(f"No font file for family '{family}'")
        else:
            try:
                font_file = _FontFile(family, path, bold_file, TTFont(path, fontNumber=0))
            except (OSError, TTLibError) as e:
                logger.warning(f"Could not load font file {path}: {e}")

        self._files[key] = font_file
        return font_file

    # --- PDF font objects ---

    def _standard_font(self, family: str, base_font: str) -> ResolvedFont:
        font_dict = self.pdf.make_indirect(Dictionary(
            Type=Name.Font,
            Subtype=Name.Type1,
            BaseFont=Name('/' + base_font),
            Encoding=Name.WinAnsiEncoding,
        ))
        return ResolvedFont(family=family, base_font=base_font, font_dict=font_dict, is_composite=False)

    def _embed_file(self, font_file: _FontFile, synthetic_bold: bool, text: str) -> ResolvedFont:
        font = font_file.font
        cmap = font.getBestCmap() or {}
        glyph_order = font.getGlyphOrder()
        gid_of = {name: gid for gid, name in enumerate(glyph_order)}
        units_per_em = font['head'].unitsPerEm or 1000
        scale = 1000.0 / units_per_em

        glyph_ids: Dict[int, int] = {}
        for ch in set(text):
            glyph_name = cmap.get(ord(ch))
            if glyph_name is not None and glyph_name in gid_of:
                glyph_ids[ord(ch)] = gid_of[glyph_name]

        hmtx = font['hmtx']
        widths = {0: hmtx[glyph_order[0]][0] * scale}
        for gid in glyph_ids.values():
            widths[gid] = hmtx[glyph_order[gid]][0] * scale

        postscript_name = (font['name'].getDebugName(6) or font_file.family).replace(' ', '')
        base_font = f"{_subset_tag(glyph_ids.values())}+{postscript_name}"
        is_cff = 'CFF ' in font
        font_bytes = self._font_program(font_file.path, set(glyph_ids))

        head = font['head']
        hhea = font['hhea']
        ascent = hhea.ascent * scale
        descriptor = Dictionary(
            Type=Name.FontDescriptor,
            FontName=Name('/' + base_font),
            Flags=4,
            FontBBox=Array([head.xMin * scale, head.yMin * scale, head.xMax * scale, head.yMax * scale]),
            ItalicAngle=0,
            Ascent=ascent,
            Descent=hhea.descent * scale,
            CapHeight=ascent,
            StemV=80,
        )
        if is_cff:
            descriptor.FontFile3 = self.pdf.make_stream(font_bytes, Subtype=Name.OpenType)
        else:
            descriptor.FontFile2 = self.pdf.make_stream(font_bytes, Length1=len(font_bytes))

        w_array = []
        for gid in sorted(widths):
            w_array.extend([gid, Array([round(widths[gid], 2)])])

        cid_font = Dictionary(
            Type=Name.Font,
            Subtype=Name.CIDFontType0 if is_cff else Name.CIDFontType2,
            BaseFont=Name('/' + base_font),
            CIDSystemInfo=Dictionary(Registry=String('Adobe'), Ordering=String('Identity'), Supplement=0),
            FontDescriptor=self.pdf.make_indirect(descriptor),
            DW=1000,
            W=Array(w_array),
        )
        if not is_cff:
            cid_font.CIDToGIDMap = Name.Identity

        font_dict = self.pdf.make_indirect(Dictionary(
            Type=Name.Font,
            Subtype=Name.Type0,
            BaseFont=Name('/' + base_font),
            Encoding=Name('/Identity-H'),
            DescendantFonts=Array([self.pdf.make_indirect(cid_font)]),
            ToUnicode=self.pdf.make_stream(_to_unicode_cmap(glyph_ids)),
        ))

        logger.debug(f"Embedded {base_font} with {len(glyph_ids)} glyphs")
        return ResolvedFont(
            family=font_file.family,
            base_font=base_font,
            font_dict=font_dict,
            is_composite=True,
            synthetic_bold=synthetic_bold,
            ascent=ascent,
            glyph_ids=glyph_ids,
            widths=widths,
        )

    def _font_program(self, path: str, code_points) -> bytes:
        """Subset font bytes keeping original glyph ids; the full file if subsetting fails."""
        if self.config.subset_fonts and code_points:
            options = subset.Options()
            options.retain_gids = True
            options.notdef_outline = True
            options.name_IDs = ['*']
            options.layout_features = []
            try:
                font = TTFont(path, fontNumber=0)
                subsetter = subset.Subsetter(options=options)
                subsetter.populate(unicodes=code_points)
                subsetter.subset(font)
                buffer = io.BytesIO()
                font.save(buffer)
                return buffer.getvalue()
            except Exception as e:
                logger.warning(f"Font subsetting failed for {path}, embedding full font: {e}")

        with open(path, 'rb') as f:
            return f.read()


def font_resource_name(existing, prefix: str = 'F') -> str:
    """First free resource name ``/<prefix><n>`` in a resource subdictionary."""
    index = 1
    while existing is not None and f'/{prefix}{index}' in existing:
        index += 1
    return f'/{prefix}{index}'
