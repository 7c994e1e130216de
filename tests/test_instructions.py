import pytest

from app.normalizers import build_instructions
from app.normalizers.instructions import NOT_AVAILABLE, manual_type_label

FULL_OPTIONS = {
    "formula": {"formula": "{Price} * {Qty}"},
    "rollup": {"fieldIdInLinkedTable": "fldScore", "recordLinkFieldId": "fldOwner", "formula": "SUM(values)"},
    "multipleLookupValues": {"fieldIdInLinkedTable": "fldName", "recordLinkFieldId": "fldOwner"},
    "count": {"recordLinkFieldId": "fldOwner"},
}


@pytest.mark.parametrize("ftype", sorted(FULL_OPTIONS))
@pytest.mark.parametrize("options", [None, {}, "full"])
def test_never_raises_and_never_empty(ftype, options):
    opts = FULL_OPTIONS[ftype] if options == "full" else options
    out = build_instructions({"type": ftype, "options": opts})
    assert out.description.strip()
    assert out.cell_instructions.strip()
    assert "\n" not in out.description


def test_formula_text_is_included():
    out = build_instructions({"type": "formula", "options": FULL_OPTIONS["formula"]})
    assert "Formula: {Price} * {Qty}" in out.cell_instructions
    assert out.description == "⚠️ MANUAL SETUP REQUIRED - Formula: Formula: {Price} * {Qty}"


def test_missing_formula_is_marked_not_available():
    out = build_instructions({"type": "formula"})
    assert f"Formula: {NOT_AVAILABLE}" in out.cell_instructions


def test_rollup_lists_each_part_and_marks_only_the_missing_one():
    opts = {"fieldIdInLinkedTable": "fldScore", "recordLinkFieldId": "fldOwner"}
    out = build_instructions({"type": "rollup", "options": opts})
    assert "Summarize field: fldScore" in out.cell_instructions
    assert "From linked record field: fldOwner" in out.cell_instructions
    assert f"Aggregation: {NOT_AVAILABLE}" in out.cell_instructions


def test_rollup_aggregation_can_come_from_result():
    opts = {"recordLinkFieldId": "fldOwner", "result": {"formula": "MAX(values)"}}
    out = build_instructions({"type": "rollup", "options": opts})
    assert "Aggregation: MAX(values)" in out.cell_instructions


def test_lookup_is_labelled_lookup():
    out = build_instructions({"type": "multipleLookupValues", "options": FULL_OPTIONS["multipleLookupValues"]})
    assert manual_type_label("multipleLookupValues") == "Lookup"
    assert "Field type: Lookup" in out.cell_instructions
    assert '3. Change the type from "Long text" to "Lookup"' in out.cell_instructions


def test_count_names_the_link_field():
    out = build_instructions({"type": "count", "options": FULL_OPTIONS["count"]})
    assert "Count records from linked field: fldOwner" in out.cell_instructions


def test_walkthrough_ends_with_delete_step():
    out = build_instructions({"type": "count"})
    lines = out.cell_instructions.splitlines()
    assert lines[0] == "⚠️ MANUAL SETUP REQUIRED"
    assert lines[-1].startswith("6. Delete this instruction row")


def test_pure_function():
    field = {"type": "rollup", "options": dict(FULL_OPTIONS["rollup"])}
    before = {"type": "rollup", "options": dict(FULL_OPTIONS["rollup"])}
    assert build_instructions(field) == build_instructions(field)
    assert field == before


def test_accepts_objects_with_attributes():
    class F:
        type = "formula"
        options = {"formula": "1+1"}
    assert "Formula: 1+1" in build_instructions(F()).cell_instructions
