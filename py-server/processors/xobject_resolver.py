"""
Resolution of ``Do`` operands to Form XObjects.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pikepdf
from pikepdf import Array, Dictionary, Name

from constants.pdf_keys import KEY_XOBJECT, KEY_SUBTYPE, KEY_MATRIX, KEY_RESOURCES, VAL_FORM
from utils.pdf_transforms import make_matrix

logger = logging.getLogger(__name__)

IDENTITY_MATRIX = [1.0, 0.0, 0.0, 1.0, 0.0, 0.0]


@dataclass(frozen=True)
class FormXObject:
    """A resolved form: its stream, placement matrix and resource scope."""
    name: str
    stream: pikepdf.Stream
    matrix: np.ndarray
    resources: Optional[Dictionary]
    identity: Any


def _form_matrix(xobj: pikepdf.Stream) -> np.ndarray:
    raw = xobj.get(KEY_MATRIX)
    values = IDENTITY_MATRIX
    if isinstance(raw, Array) and len(raw) == 6:
        try:
            values = [float(v) for v in raw]
        except (TypeError, ValueError):
            logger.debug(f"Ignoring malformed form /Matrix {raw!r}")
    return make_matrix(*values)


def object_identity(obj) -> Any:
    """Stable identity for cycle detection: object number for indirect objects."""
    objgen = obj.objgen
    return objgen if objgen != (0, 0) else id(obj)


def resolve_form(resources: Optional[Dictionary], name: str, inherited: Optional[Dictionary] = None) -> Optional[FormXObject]:
    """
    Look up ``name`` in the XObject subdictionary of ``resources``.

    Returns None for images, missing names and anything that is not a Form
    stream. The form's own /Resources win; otherwise ``inherited`` (by
    default the scope it was found in) applies.
    """
    if resources is None:
        return None

    xobjects = resources.get(KEY_XOBJECT)
    if not isinstance(xobjects, Dictionary):
        logger.debug(f"Do {name}: no XObject resources in scope")
        return None

    xobj = xobjects.get(name)
    if not isinstance(xobj, pikepdf.Stream):
        logger.debug(f"Do {name}: unresolvable XObject")
        return None

    if xobj.get(KEY_SUBTYPE) != Name(VAL_FORM):
        return None

    own_resources = xobj.get(KEY_RESOURCES)
    if not isinstance(own_resources, Dictionary):
        own_resources = inherited if inherited is not None else resources

    return FormXObject(
        name=name,
        stream=xobj,
        matrix=_form_matrix(xobj),
        resources=own_resources,
        identity=object_identity(xobj),
    )
