# app/normalizers/classify.py
from typing import Any, Mapping

from .types import Category

# The API cannot create these; they become Long Text placeholders with instructions.
# Lookup fields are reported under the type name "multipleLookupValues".
MANUAL_TYPES = frozenset({"formula", "rollup", "multipleLookupValues", "count"})

# The API refuses these too, but they need no configuration:
# the target owner adds them with one click and they fill themselves.
AUTO_SYSTEM_TYPES = frozenset({
    "autoNumber",
    "createdTime",
    "lastModifiedTime",
    "createdBy",
    "lastModifiedBy",
})

LINK_TYPE = "multipleRecordLinks"


def classify_field(field: Any) -> Category:
    """
    Assign a raw field to exactly one handling category.
    Accepts a RawField or a plain dict with "type"/"options".
    """
    ftype = _get(field, "type")
    options = _get(field, "options") or {}

    if ftype in MANUAL_TYPES:
        return "manual"
    if ftype in AUTO_SYSTEM_TYPES:
        return "autoSystem"
    if ftype == LINK_TYPE:
        # Creating the forward side creates this one in the target.
        if options.get("isReversed"):
            return "inverseLink"
        return "link"
    return "creatable"


def _get(field: Any, key: str):
    if isinstance(field, Mapping):
        return field.get(key)
    return getattr(field, key, None)
