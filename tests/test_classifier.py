import pytest

from app.normalizers import classify_field
from app.normalizers.classify import AUTO_SYSTEM_TYPES, MANUAL_TYPES
from app.normalizers.types import CATEGORIES, RawField


@pytest.mark.parametrize("ftype", sorted(MANUAL_TYPES))
def test_computed_types_are_manual(ftype):
    assert classify_field({"type": ftype, "options": {}}) == "manual"


@pytest.mark.parametrize("ftype", sorted(AUTO_SYSTEM_TYPES))
def test_system_types_are_auto(ftype):
    assert classify_field({"type": ftype}) == "autoSystem"


def test_forward_link_is_link():
    f = {"type": "multipleRecordLinks", "options": {"linkedTableId": "tblX", "isReversed": False}}
    assert classify_field(f) == "link"


def test_link_without_options_is_still_a_link():
    assert classify_field({"type": "multipleRecordLinks"}) == "link"
    assert classify_field({"type": "multipleRecordLinks", "options": None}) == "link"


def test_reversed_link_is_inverse():
    f = {"type": "multipleRecordLinks", "options": {"linkedTableId": "tblX", "isReversed": True}}
    assert classify_field(f) == "inverseLink"


@pytest.mark.parametrize("ftype", [
    "singleLineText", "multilineText", "number", "currency", "percent", "checkbox",
    "singleSelect", "multipleSelects", "date", "dateTime", "email", "url", "rating",
    "duration", "phoneNumber", "multipleAttachments", "barcode",
])
def test_plain_types_are_creatable(ftype):
    assert classify_field({"type": ftype, "options": {}}) == "creatable"


def test_unknown_type_falls_back_to_creatable():
    # New Airtable types should be attempted, not dropped.
    assert classify_field({"type": "aiText"}) == "creatable"
    assert classify_field({}) == "creatable"


def test_accepts_raw_field_models():
    f = RawField(id="fld1", name="Total", type="rollup", options={"recordLinkFieldId": "fld2"})
    assert classify_field(f) == "manual"


def test_every_result_is_a_known_category(raw_rich_schema):
    for table in raw_rich_schema["tables"]:
        for f in table["fields"]:
            assert classify_field(f) in CATEGORIES
