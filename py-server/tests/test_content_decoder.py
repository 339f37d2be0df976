from __future__ import annotations

import pikepdf
import pytest
from pikepdf import Array, Dictionary, Name, String

from processors.content_decoder import (
    OperandError,
    SalvageParser,
    decode_content,
    operand_floats,
    operand_name,
)


def _operators(instructions) -> list[bytes]:
    return [inst.operator for inst in instructions]


def test_salvage_parser_reads_well_formed_stream() -> None:
    data = b"q 1 0 0 1 10 20 cm BT /F1 12 Tf (Hi) Tj [(A) -40 (B)] TJ ET Q"

    instructions = SalvageParser(data).instructions()

    assert _operators(instructions) == [b"q", b"cm", b"BT", b"Tf", b"Tj", b"TJ", b"ET", b"Q"]
    assert instructions[1].operands == [1, 0, 0, 1, 10, 20]
    assert instructions[3].operands[0] == Name("/F1")
    assert bytes(instructions[4].operands[0]) == b"Hi"
    tj_array = instructions[5].operands[0]
    assert isinstance(tj_array, Array)
    assert [bytes(item) if isinstance(item, String) else int(item) for item in tj_array] == [b"A", -40, b"B"]


def test_salvage_parser_stops_at_damage() -> None:
    data = b"BT /F1 12 Tf (Kept) Tj ET ) 1 2 Td (Lost) Tj"

    instructions = SalvageParser(data).instructions()

    assert _operators(instructions) == [b"BT", b"Tf", b"Tj", b"ET"]


def test_salvage_parser_drops_incomplete_trailing_instruction() -> None:
    instructions = SalvageParser(b"BT (Done) Tj (unterminated").instructions()

    assert _operators(instructions) == [b"BT", b"Tj"]


def test_salvage_parser_decodes_string_escapes() -> None:
    data = rb"(a\(b\)c\101\n) Tj <48 65 6C6C 6F> Tj"

    first, second = SalvageParser(data).instructions()

    assert bytes(first.operands[0]) == b"a(b)cA\n"
    assert bytes(second.operands[0]) == b"Hello"


def test_salvage_parser_builds_dictionaries_and_skips_inline_images() -> None:
    data = b"/OC << /MCID 3 >> BDC BI /W 1 /H 1 ID \x00\xff EI EMC"

    instructions = SalvageParser(data).instructions()

    assert instructions[0].operator == b"BDC"
    properties = instructions[0].operands[1]
    assert isinstance(properties, Dictionary)
    assert int(properties.MCID) == 3
    assert _operators(instructions)[-1] == b"EMC"


def test_salvage_parser_ignores_comments() -> None:
    instructions = SalvageParser(b"% header comment\nBT ET").instructions()

    assert _operators(instructions) == [b"BT", b"ET"]


def test_salvage_parser_allows_unknown_operators_inside_compatibility_sections() -> None:
    data = b"BX 1 2 xyz EX BT ET xyz BT"

    instructions = SalvageParser(data).instructions()

    assert _operators(instructions) == [b"BX", b"xyz", b"EX", b"BT", b"ET"]
    assert instructions[1].operands == [1, 2]


def test_salvage_parser_reads_null_and_boolean_operands() -> None:
    instructions = SalvageParser(b"/Tag << /Flag true /Off false >> BDC null 0 d").instructions()

    properties = instructions[0].operands[1]
    assert bool(properties.Flag) is True
    assert bool(properties.Off) is False
    assert instructions[1].operator == b"d"
    assert instructions[1].operands == [None, 0]


def test_decode_content_parses_page_streams() -> None:
    pdf = pikepdf.new()
    page = pdf.add_blank_page()
    page.obj.Contents = pdf.make_stream(b"BT /F1 9 Tf 5 5 Td (x) Tj ET")

    instructions = decode_content(page)

    assert _operators(instructions) == [b"BT", b"Tf", b"Td", b"Tj", b"ET"]


def test_operand_floats_uses_trailing_operands() -> None:
    assert operand_floats([Name("/Junk"), 1, 2.5], 2) == [1.0, 2.5]

    with pytest.raises(OperandError):
        operand_floats([1], 2)
    with pytest.raises(OperandError):
        operand_floats([String(b"x"), 1], 2)


def test_operand_name_rejects_non_names() -> None:
    assert operand_name(Name("/Fm1")) == "/Fm1"

    with pytest.raises(OperandError):
        operand_name(3)
