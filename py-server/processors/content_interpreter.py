"""
Page content-stream interpreter.

Walks a page's drawing program, tracking the graphics and text state, and
emits one PositionedTextRun per text-show operator. Form XObjects invoked
with ``Do`` are interpreted in place with their own matrix and resources.
"""

import logging
from typing import List, Optional, Set

from pikepdf import Array, Dictionary

from constants.pdf_operators import (
    OP_SHOW_TEXT, OP_SHOW_TEXT_ARRAY, OP_NEXT_LINE_SHOW_TEXT, OP_SET_SPACING_SHOW_TEXT,
    OP_DO_XOBJECT, TEXT_SHOWING_OPS,
)
from models.pdf_types import PositionedTextRun
from processors.content_decoder import (
    Instruction, OperandError, decode_content,
    operand_bytes, operand_name, is_string_operand,
)
from processors.font_decoding import GlyphDecoder
from processors.pdf_graphics import GraphicsStateTracker
from processors.text_run_emitter import TextRunEmitter
from processors.xobject_resolver import resolve_form
from utils.pdf_transforms import PageFrame

logger = logging.getLogger(__name__)

DEFAULT_MAX_FORM_DEPTH = 32


class ContentInterpreter:
    """
    Interprets one page.

    Instances hold no state between calls to :meth:`interpret`; each call
    builds its own state stack, emitter and glyph decoder.
    """

    def __init__(self, frame: PageFrame, max_form_depth: int = DEFAULT_MAX_FORM_DEPTH):
        self.frame = frame
        self.max_form_depth = max_form_depth
        self._tracker: Optional[GraphicsStateTracker] = None
        self._emitter: Optional[TextRunEmitter] = None
        self._glyphs: Optional[GlyphDecoder] = None

    def interpret(self, page) -> List[PositionedTextRun]:
        """
        Extract text runs from a pikepdf Page in content-stream order.
        """
        self._tracker = GraphicsStateTracker()
        self._emitter = TextRunEmitter(self.frame)
        self._glyphs = GlyphDecoder()
        try:
            self._run(page, self.frame.resources, depth=0, active=set())
            return self._emitter.runs
        finally:
            self._tracker = None
            self._emitter = None
            self._glyphs = None

    def _run(self, source, resources: Optional[Dictionary], depth: int, active: Set) -> None:
        for inst in decode_content(source):
            try:
                self._execute(inst, resources, depth, active)
            except (OperandError, ValueError, TypeError) as e:
                logger.debug(f"Skipping operator {inst.operator!r}: {e}")

    def _execute(self, inst: Instruction, resources, depth: int, active: Set) -> None:
        tracker = self._tracker
        if tracker.update(inst):
            return

        op = inst.operator
        operands = inst.operands

        if op == OP_SHOW_TEXT:
            self._show(self._last_string(operands), resources)
        elif op == OP_NEXT_LINE_SHOW_TEXT:
            raw = self._last_string(operands)
            tracker.next_line()
            self._show(raw, resources)
        elif op == OP_SET_SPACING_SHOW_TEXT:
            if len(operands) < 3:
                raise OperandError(f'" expects 3 operands, got {len(operands)}')
            raw = self._last_string(operands)
            tracker.next_line()
            self._show(raw, resources)
        elif op == OP_SHOW_TEXT_ARRAY:
            self._show_array(operands, resources)
        elif op == OP_DO_XOBJECT:
            if not operands:
                raise OperandError("Do expects a name operand")
            self._invoke_form(operand_name(operands[-1]), resources, depth, active)

    @staticmethod
    def _last_string(operands) -> bytes:
        if not operands:
            raise OperandError("missing string operand")
        return operand_bytes(operands[-1])

    def _show(self, raw: bytes, resources) -> None:
        text = self._glyphs.decode(raw, resources, self._tracker.state.font_name)
        if text:
            self._emitter.emit(self._tracker, text)

    def _show_array(self, operands, resources) -> None:
        if not operands or not isinstance(operands[-1], (Array, list)):
            raise OperandError("TJ expects an array operand")
        # Kerning numbers are dropped; only the string pieces form the run
        pieces = [operand_bytes(item) for item in operands[-1] if is_string_operand(item)]
        font_name = self._tracker.state.font_name
        text = ''.join(self._glyphs.decode(piece, resources, font_name) for piece in pieces)
        if text:
            self._emitter.emit(self._tracker, text)

    def _invoke_form(self, name: str, resources, depth: int, active: Set) -> None:
        form = resolve_form(resources, name)
        if form is None:
            return
        if depth >= self.max_form_depth:
            logger.warning(f"Form {name} not interpreted: nesting deeper than {self.max_form_depth}")
            return
        if form.identity in active:
            logger.debug(f"Form {name} invokes itself; skipping")
            return

        tracker = self._tracker
        saved_depth = tracker.depth
        active.add(form.identity)
        tracker.save_state()
        tracker.concat_ctm(form.matrix)
        try:
            self._run(form.stream, form.resources, depth + 1, active)
        finally:
            tracker.restore_to_depth(saved_depth)
            active.discard(form.identity)


def contains_text_operators(source, resources: Optional[Dictionary], max_form_depth: int = DEFAULT_MAX_FORM_DEPTH,
                            depth: int = 0, active: Optional[Set] = None) -> bool:
    """
    True if the content, or any form it invokes, has a text-show operator.
    """
    active = active if active is not None else set()
    for inst in decode_content(source):
        if inst.operator in TEXT_SHOWING_OPS:
            return True
        if inst.operator != OP_DO_XOBJECT or not inst.operands:
            continue
        try:
            form = resolve_form(resources, operand_name(inst.operands[-1]))
        except OperandError:
            continue
        if form is None or depth >= max_form_depth or form.identity in active:
            continue
        active.add(form.identity)
        try:
            if contains_text_operators(form.stream, form.resources, max_form_depth, depth + 1, active):
                return True
        finally:
            active.discard(form.identity)
    return False
