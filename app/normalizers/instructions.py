# app/normalizers/instructions.py
from typing import Any, Dict, List, NamedTuple, Optional

NOT_AVAILABLE = "(not available - check the original base)"


class Instructions(NamedTuple):
    description: str        # one line, lives in the placeholder field's description
    cell_instructions: str  # numbered walkthrough, lives in the instruction row


def manual_type_label(ftype: str) -> str:
    """Human label for a computed field type ("multipleLookupValues" -> "Lookup")."""
    if ftype == "multipleLookupValues":
        return "Lookup"
    return ftype[:1].upper() + ftype[1:]


def _line(label: str, value: Optional[Any]) -> str:
    return f"{label}: {value if value else NOT_AVAILABLE}"


def config_summary(ftype: str, options: Optional[Dict[str, Any]]) -> str:
    """
    Describe the original computed-field configuration, one fact per line.
    Raw field ids are left in place; the normalizer swaps them for names.
    """
    opts = options or {}
    if ftype == "formula":
        lines: List[str] = [_line("Formula", opts.get("formula"))]
    elif ftype == "rollup":
        result = opts.get("result") or {}
        aggregation = opts.get("formula") or result.get("formula")
        lines = [
            _line("Summarize field", opts.get("fieldIdInLinkedTable")),
            _line("From linked record field", opts.get("recordLinkFieldId")),
            _line("Aggregation", aggregation),
        ]
    elif ftype == "multipleLookupValues":
        lines = [
            _line("Lookup field", opts.get("fieldIdInLinkedTable")),
            _line("From linked record field", opts.get("recordLinkFieldId")),
        ]
    elif ftype == "count":
        lines = [_line("Count records from linked field", opts.get("recordLinkFieldId"))]
    else:
        lines = [_line("Configuration", None)]
    return "\n".join(lines)


def build_instructions(field: Any) -> Instructions:
    """Pure and total: never raises on missing options."""
    if isinstance(field, dict):
        ftype, options = field.get("type") or "", field.get("options")
    else:
        ftype, options = getattr(field, "type", "") or "", getattr(field, "options", None)

    label = manual_type_label(ftype) or "Computed"
    summary = config_summary(ftype, options)

    description = f"⚠️ MANUAL SETUP REQUIRED - {label}: {summary.splitlines()[0]}"
    cell_instructions = "\n".join([
        "⚠️ MANUAL SETUP REQUIRED",
        "",
        f"Field type: {label} (currently Long Text - you must change it)",
        "",
        summary,
        "",
        "Steps:",
        "1. Click this field's column header",
        '2. Select "Edit field"',
        f'3. Change the type from "Long text" to "{label}"',
        "4. Configure it using the information above",
        '5. Click "Save"',
        "6. Delete this instruction row when you're done with ALL fields in this table",
    ])
    return Instructions(description, cell_instructions)
