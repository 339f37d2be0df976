import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from constants.pdf_operators import (
    OP_SAVE_STATE, OP_RESTORE_STATE, OP_CTM,
    OP_BEGIN_TEXT, OP_END_TEXT,
    OP_MOVE_TEXT, OP_MOVE_TEXT_SET_LEADING, OP_SET_TEXT_MATRIX, OP_NEXT_LINE,
    OP_SET_FONT, OP_SET_LEADING,
)
from processors.content_decoder import Instruction, operand_floats, operand_name, operand_float
from utils.pdf_transforms import make_matrix, translation_matrix

logger = logging.getLogger(__name__)

DEFAULT_FONT_SIZE = 12.0
# T* without an explicit TL moves down by this multiple of the font size
DEFAULT_LEADING_FACTOR = 1.2


def _identity() -> np.ndarray:
    return np.identity(3, dtype=float)


@dataclass
class GraphicsState:
    """Mutable interpretation state; snapshots on the stack are deep copies."""
    ctm: np.ndarray = field(default_factory=_identity)
    text_matrix: np.ndarray = field(default_factory=_identity)
    line_matrix: np.ndarray = field(default_factory=_identity)
    font_size: float = DEFAULT_FONT_SIZE
    font_name: Optional[str] = None
    leading: Optional[float] = None

    def copy(self) -> 'GraphicsState':
        return GraphicsState(
            ctm=self.ctm.copy(),
            text_matrix=self.text_matrix.copy(),
            line_matrix=self.line_matrix.copy(),
            font_size=self.font_size,
            font_name=self.font_name,
            leading=self.leading,
        )

    @property
    def effective_leading(self) -> float:
        if self.leading is None:
            return self.font_size * DEFAULT_LEADING_FACTOR
        return self.leading


class GraphicsStateTracker:
    """
    Applies graphics-state and text-positioning operators to a GraphicsState.

    Matrices use the column-vector form [[a, c, e], [b, d, f], [0, 0, 1]],
    so concatenation reads ``ctm @ M`` for ``cm`` and ``line @ T`` for ``Td``.
    """

    def __init__(self, ctm: Optional[np.ndarray] = None):
        self.state = GraphicsState()
        if ctm is not None:
            self.state.ctm = ctm.copy()
        self.state_stack: List[GraphicsState] = []

    def save_state(self) -> None:
        self.state_stack.append(self.state.copy())

    def restore_state(self) -> None:
        # Unbalanced Q is ignored
        if self.state_stack:
            self.state = self.state_stack.pop()

    @property
    def depth(self) -> int:
        return len(self.state_stack)

    def restore_to_depth(self, depth: int) -> None:
        """Pop until the stack is back at ``depth``, discarding unbalanced q's."""
        while len(self.state_stack) > depth:
            self.restore_state()

    def update_ctm(self, a: float, b: float, c: float, d: float, e: float, f: float) -> None:
        self.state.ctm = self.state.ctm @ make_matrix(a, b, c, d, e, f)

    def concat_ctm(self, matrix: np.ndarray) -> None:
        self.state.ctm = self.state.ctm @ matrix

    def begin_text(self) -> None:
        self.state.text_matrix = _identity()
        self.state.line_matrix = _identity()

    def move_text(self, tx: float, ty: float) -> None:
        self.state.line_matrix = self.state.line_matrix @ translation_matrix(tx, ty)
        self.state.text_matrix = self.state.line_matrix.copy()

    def next_line(self) -> None:
        self.move_text(0.0, -self.state.effective_leading)

    def set_text_matrix(self, a: float, b: float, c: float, d: float, e: float, f: float) -> None:
        self.state.text_matrix = make_matrix(a, b, c, d, e, f)
        self.state.line_matrix = self.state.text_matrix.copy()

    def advance_text(self, tx: float) -> None:
        """Move the pen along the baseline (text space) without touching the line matrix."""
        self.state.text_matrix = self.state.text_matrix @ translation_matrix(tx, 0.0)

    def update(self, inst: Instruction) -> bool:
        """
        Apply a state operator.

        Returns True if the operator was a state operator. Raises
        OperandError (a ValueError) for operands that cannot be decoded.
        """
        op_name_bytes = inst.operator
        operands = inst.operands

        if op_name_bytes == OP_SAVE_STATE:
            self.save_state()
        elif op_name_bytes == OP_RESTORE_STATE:
            self.restore_state()
        elif op_name_bytes == OP_CTM:
            self.update_ctm(*operand_floats(operands, 6))
        elif op_name_bytes == OP_BEGIN_TEXT:
            self.begin_text()
        elif op_name_bytes == OP_END_TEXT:
            # Matrices stay as they are until the next BT resets them
            pass
        elif op_name_bytes == OP_SET_FONT:
            if len(operands) < 2:
                raise ValueError(f"Tf expects 2 operands, got {len(operands)}")
            font_size = operand_float(operands[-1])
            self.state.font_name = operand_name(operands[-2])
            self.state.font_size = font_size
        elif op_name_bytes == OP_SET_LEADING:
            self.state.leading = operand_floats(operands, 1)[0]
        elif op_name_bytes == OP_MOVE_TEXT:
            self.move_text(*operand_floats(operands, 2))
        elif op_name_bytes == OP_MOVE_TEXT_SET_LEADING:
            tx, ty = operand_floats(operands, 2)
            self.state.leading = -ty
            self.move_text(tx, ty)
        elif op_name_bytes == OP_SET_TEXT_MATRIX:
            self.set_text_matrix(*operand_floats(operands, 6))
        elif op_name_bytes == OP_NEXT_LINE:
            self.next_line()
        else:
            return False
        return True
