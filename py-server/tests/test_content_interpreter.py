from __future__ import annotations

import pikepdf
import pytest
from pikepdf import Dictionary, Name

from conftest import build_pdf, helvetica, make_form
from engine.config import EngineConfig
from extractors.text_extractor import extract_text, is_searchable
from processors.pdf_graphics import GraphicsStateTracker
from processors.content_decoder import Instruction
from utils.pdf_transforms import PIXELS_PER_POINT

S = PIXELS_PER_POINT


def test_single_run_position_and_size() -> None:
    pdf_bytes = build_pdf([b"BT /F1 12 Tf 72 700 Td (Hello) Tj ET"])

    runs = extract_text(pdf_bytes, 1)

    assert len(runs) == 1
    run = runs[0]
    assert run.text == "Hello"
    assert run.x == pytest.approx(72 * S)
    assert run.y == pytest.approx((792 - 700) * S - 12 * S)
    assert run.height == pytest.approx(12 * S)
    assert run.width == pytest.approx(5 * 12 * 0.6 * S)


def test_tj_array_concatenates_strings_and_drops_adjustments() -> None:
    pdf_bytes = build_pdf([b"BT /F1 10 Tf 50 500 Td [(Hel) -50 (lo)] TJ ET"])

    runs = extract_text(pdf_bytes, 1)

    assert [run.text for run in runs] == ["Hello"]


def test_cm_scales_font_size_and_translates() -> None:
    pdf_bytes = build_pdf([b"q 2 0 0 2 100 100 cm BT /F1 10 Tf 10 20 Td (Big) Tj ET Q"])

    run = extract_text(pdf_bytes, 1)[0]

    assert run.x == pytest.approx(120 * S)
    assert run.height == pytest.approx(20 * S)
    assert run.y == pytest.approx((792 - 140) * S - 20 * S)


def test_nested_cm_applies_inner_transform_first() -> None:
    pdf_bytes = build_pdf([b"1 0 0 1 100 0 cm 2 0 0 2 0 0 cm BT /F1 10 Tf 10 0 Td (A) Tj ET"])

    run = extract_text(pdf_bytes, 1)[0]

    # The second cm scales inside the first translation: 100 + 2 * 10
    assert run.x == pytest.approx(120 * S)


def test_save_restore_isolates_transforms() -> None:
    content = (
        b"q 1 0 0 1 200 0 cm BT /F1 12 Tf 0 600 Td (Inner) Tj ET Q "
        b"BT /F1 12 Tf 0 600 Td (Outer) Tj ET"
    )

    inner, outer = extract_text(build_pdf([content]), 1)

    assert inner.x == pytest.approx(200 * S)
    assert outer.x == pytest.approx(0.0)


def test_unbalanced_restore_is_ignored() -> None:
    runs = extract_text(build_pdf([b"Q Q BT /F1 12 Tf 10 10 Td (Still) Tj ET"]), 1)

    assert [run.text for run in runs] == ["Still"]


def test_text_matrix_is_absolute_and_td_is_relative() -> None:
    content = b"BT /F1 10 Tf 1 0 0 1 50 400 Tm (One) Tj 0 -20 Td (Two) Tj ET"

    one, two = extract_text(build_pdf([content]), 1)

    assert one.x == pytest.approx(50 * S)
    assert two.x == pytest.approx(50 * S)
    assert two.y - one.y == pytest.approx(20 * S)


def test_next_line_operators_use_leading() -> None:
    content = b"BT /F1 10 Tf 14 TL 72 700 Td (A) Tj T* (B) Tj (C) ' 0 0 (D) \" ET"

    runs = extract_text(build_pdf([content]), 1)

    assert [run.text for run in runs] == ["A", "B", "C", "D"]
    assert [run.x for run in runs] == pytest.approx([72 * S] * 4)
    steps = [b.y - a.y for a, b in zip(runs, runs[1:])]
    assert steps == pytest.approx([14 * S] * 3)


def test_next_line_without_leading_uses_font_size_default() -> None:
    content = b"BT /F1 10 Tf 72 700 Td (A) Tj T* (B) Tj ET"

    a, b = extract_text(build_pdf([content]), 1)

    assert b.y - a.y == pytest.approx(10 * 1.2 * S)
    assert b.x == pytest.approx(a.x)


def test_zero_vertical_scale_falls_back_to_font_size() -> None:
    run, = extract_text(build_pdf([b"BT /F1 10 Tf 1 0 0 0 72 700 Tm (Flat) Tj ET"]), 1)

    assert run.height == pytest.approx(10 * S)
    assert run.x == pytest.approx(72 * S)


def test_td_uppercase_sets_leading() -> None:
    content = b"BT /F1 10 Tf 72 700 TD (A) Tj 0 -18 TD (B) Tj T* (C) Tj ET"

    a, b, c = extract_text(build_pdf([content]), 1)

    assert c.y - b.y == pytest.approx(18 * S)


def test_consecutive_shows_advance_along_the_line() -> None:
    runs = extract_text(build_pdf([b"BT /F1 10 Tf 100 500 Td (ab) Tj (cd) Tj ET"]), 1)

    assert runs[1].x == pytest.approx(runs[0].x + runs[0].width)
    assert runs[1].y == pytest.approx(runs[0].y)


def test_operators_outside_text_object_are_tolerated() -> None:
    runs = extract_text(build_pdf([b"/F1 12 Tf 30 30 Td (Loose) Tj"]), 1)

    assert [run.text for run in runs] == ["Loose"]


def test_malformed_operands_skip_only_that_operator() -> None:
    content = b"BT /F1 12 Tf (oops) Td 72 700 Td 12 Tj (Good) Tj ET"

    runs = extract_text(build_pdf([content]), 1)

    assert [run.text for run in runs] == ["Good"]
    assert runs[0].x == pytest.approx(72 * S)


def test_empty_strings_produce_no_runs() -> None:
    runs = extract_text(build_pdf([b"BT /F1 12 Tf 10 10 Td () Tj [] TJ ET"]), 1)

    assert runs == []


def test_crop_box_offsets_coordinates() -> None:
    pdf_bytes = build_pdf(
        [b"BT /F1 10 Tf 150 650 Td (Crop) Tj ET"],
        crop_box=(100, 100, 500, 700),
    )

    run = extract_text(pdf_bytes, 1)[0]

    assert run.x == pytest.approx(50 * S)
    assert run.y == pytest.approx(50 * S - 10 * S)


def test_text_inside_nested_form_is_extracted() -> None:
    def setup(pdf: pikepdf.Pdf, page: pikepdf.Page) -> None:
        inner = make_form(
            pdf,
            b"BT /F1 10 Tf 10 10 Td (Deep) Tj ET",
            resources=Dictionary(Font=Dictionary(F1=helvetica(pdf))),
        )
        outer = make_form(
            pdf,
            b"/Inner Do",
            matrix=[1, 0, 0, 1, 100, 200],
            resources=Dictionary(XObject=Dictionary(Inner=inner)),
        )
        page.obj.Resources.XObject = Dictionary(Outer=outer)

    pdf_bytes = build_pdf([b"/Outer Do"], setup=setup)

    runs = extract_text(pdf_bytes, 1)

    assert [run.text for run in runs] == ["Deep"]
    assert runs[0].x == pytest.approx(110 * S)
    assert is_searchable(pdf_bytes)


def test_form_without_resources_inherits_callers_scope() -> None:
    def setup(pdf: pikepdf.Pdf, page: pikepdf.Page) -> None:
        form = make_form(pdf, b"BT /F1 10 Tf 0 0 Td (Inherited) Tj ET")
        page.obj.Resources.XObject = Dictionary(Fm1=form)

    runs = extract_text(build_pdf([b"q /Fm1 Do Q"], setup=setup), 1)

    assert [run.text for run in runs] == ["Inherited"]


def test_form_state_does_not_leak_to_caller() -> None:
    def setup(pdf: pikepdf.Pdf, page: pikepdf.Page) -> None:
        # Unbalanced q inside the form must be discarded on return
        form = make_form(pdf, b"q q 1 0 0 1 300 0 cm", matrix=[1, 0, 0, 1, 50, 0])
        page.obj.Resources.XObject = Dictionary(Fm1=form)

    runs = extract_text(build_pdf([b"/Fm1 Do BT /F1 10 Tf 10 10 Td (After) Tj ET"], setup=setup), 1)

    assert runs[0].x == pytest.approx(10 * S)


def test_self_referencing_form_terminates() -> None:
    def setup(pdf: pikepdf.Pdf, page: pikepdf.Page) -> None:
        form = make_form(pdf, b"BT /F1 10 Tf 0 0 Td (Loop) Tj ET /Fm1 Do")
        form.Resources = Dictionary(Font=Dictionary(F1=helvetica(pdf)), XObject=Dictionary(Fm1=form))
        page.obj.Resources.XObject = Dictionary(Fm1=form)

    runs = extract_text(build_pdf([b"/Fm1 Do"], setup=setup), 1)

    assert runs
    assert {run.text for run in runs} == {"Loop"}
    assert len(runs) <= 33


def _form_chain(length: int) -> bytes:
    """Page drawing /Fm0, where each form draws the next and the last shows text."""
    def setup(pdf: pikepdf.Pdf, page: pikepdf.Page) -> None:
        form = make_form(
            pdf,
            b"BT /F1 10 Tf 10 10 Td (Bottom) Tj ET",
            resources=Dictionary(Font=Dictionary(F1=helvetica(pdf))),
        )
        for _ in range(length - 1):
            form = make_form(pdf, b"/Fm0 Do", resources=Dictionary(XObject=Dictionary(Fm0=form)))
        page.obj.Resources.XObject = Dictionary(Fm0=form)

    return build_pdf([b"/Fm0 Do"], setup=setup)


def test_deep_acyclic_form_chain_stops_at_depth_limit() -> None:
    pdf_bytes = _form_chain(40)

    assert extract_text(pdf_bytes, 1) == []
    assert [run.text for run in extract_text(pdf_bytes, 1, EngineConfig(max_form_depth=64))] == ["Bottom"]


def test_image_xobjects_and_missing_names_are_skipped() -> None:
    def setup(pdf: pikepdf.Pdf, page: pikepdf.Page) -> None:
        image = pdf.make_stream(
            b"\x00",
            Type=Name.XObject,
            Subtype=Name.Image,
            Width=1,
            Height=1,
            ColorSpace=Name.DeviceGray,
            BitsPerComponent=8,
        )
        page.obj.Resources.XObject = Dictionary(Im1=image)

    content = b"/Im1 Do /Missing Do BT /F1 10 Tf 5 5 Td (Text) Tj ET"
    runs = extract_text(build_pdf([content], setup=setup), 1)

    assert [run.text for run in runs] == ["Text"]


def test_tounicode_cmap_decodes_composite_font() -> None:
    cmap = b"""/CIDInit /ProcSet findresource begin
12 dict begin
begincmap
1 begincodespacerange
<0000> <FFFF>
endcodespacerange
2 beginbfchar
<0001> <D55C>
<0002> <AE00>
endbfchar
1 beginbfrange
<0010> <0012> <0041>
endbfrange
endcmap
end end"""

    def setup(pdf: pikepdf.Pdf, page: pikepdf.Page) -> None:
        font = pdf.make_indirect(Dictionary(
            Type=Name.Font,
            Subtype=Name.Type0,
            BaseFont=Name("/Test-Identity"),
            Encoding=Name("/Identity-H"),
            ToUnicode=pdf.make_stream(cmap),
        ))
        page.obj.Resources.Font.F2 = font

    content = b"BT /F2 12 Tf 10 10 Td <00010002> Tj <001000110012> Tj ET"
    runs = extract_text(build_pdf([content], setup=setup), 1)

    assert [run.text for run in runs] == ["한글", "ABC"]


def test_garbled_stream_keeps_runs_before_damage() -> None:
    content = b"BT /F1 12 Tf 72 700 Td (Hello) Tj ET BT 72 650 Td (World) Tj ET ) ] >> {{ garbage"

    runs = extract_text(build_pdf([content]), 1)

    assert runs
    assert runs[0].text == "Hello"


def test_unreadable_document_yields_no_runs() -> None:
    assert extract_text(b"%PDF-1.7\nthis is not really a pdf", 1) == []
    assert extract_text(b"not a pdf at all", 1) == []


def test_missing_page_yields_no_runs(blank_pdf: bytes) -> None:
    assert extract_text(blank_pdf, 5) == []


def test_is_searchable_detects_text_and_its_absence() -> None:
    assert is_searchable(build_pdf([b"BT /F1 12 Tf (x) Tj ET"]))
    assert not is_searchable(build_pdf([b"0 0 m 100 100 l S"]))
    assert not is_searchable(b"%PDF-1.4 broken")


def test_is_searchable_samples_only_leading_pages() -> None:
    pdf_bytes = build_pdf([b"", b"", b"BT /F1 12 Tf (late) Tj ET"])

    assert not is_searchable(pdf_bytes, sample_limit=2)
    assert is_searchable(pdf_bytes, sample_limit=3)


def test_is_searchable_sample_limit_defaults_to_config_and_rejects_zero() -> None:
    pdf_bytes = build_pdf([b"", b"", b"BT /F1 12 Tf (late) Tj ET"])

    assert is_searchable(pdf_bytes)
    assert not is_searchable(pdf_bytes, config=EngineConfig(searchable_sample_limit=2))
    with pytest.raises(ValueError):
        is_searchable(pdf_bytes, sample_limit=0)


def test_tracker_snapshots_are_independent_copies() -> None:
    tracker = GraphicsStateTracker()
    tracker.update(Instruction([], b"q"))
    tracker.update(Instruction([2, 0, 0, 2, 0, 0], b"cm"))
    assert tracker.state.ctm[0, 0] == 2.0

    tracker.update(Instruction([], b"Q"))

    assert tracker.state.ctm[0, 0] == 1.0
    assert tracker.depth == 0
