"""
PDF Processing Components

Stateful processors for PDF content interpretation and generation. These
components maintain internal state and implement the core algorithms:

- ContentInterpreter: Text-run interpretation of page content streams
- GraphicsStateTracker: CTM and text matrix tracking with q/Q snapshots
- GlyphDecoder: ToUnicode and /Encoding aware decoding of shown strings
- FontResolver: Font fallback chain and Type0 embedding
- Appearance builder: FreeText appearance streams

These differ from utils/ which contains pure, stateless functions.
"""

from processors.content_decoder import Instruction, SalvageParser, decode_content
from processors.content_interpreter import ContentInterpreter, contains_text_operators
from processors.pdf_graphics import GraphicsState, GraphicsStateTracker
from processors.font_decoding import FontDecoder, GlyphDecoder, parse_tounicode_cmap
from processors.font_resolver import FontResolver, ResolvedFont
from processors.appearance_builder import build_free_text_appearance, wrap_text

__version__ = "2.0.0"
__all__ = [
    'Instruction',
    'SalvageParser',
    'decode_content',
    'ContentInterpreter',
    'contains_text_operators',
    'GraphicsState',
    'GraphicsStateTracker',
    'GlyphDecoder',
    'FontDecoder',
    'parse_tounicode_cmap',
    'FontResolver',
    'ResolvedFont',
    'build_free_text_appearance',
    'wrap_text',
]
