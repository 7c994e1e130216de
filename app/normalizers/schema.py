# app/normalizers/schema.py
import logging
import re
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from app.errors import UnresolvedDependency
from .base import Normalizer
from .classify import LINK_TYPE, classify_field
from .instructions import Instructions, build_instructions, manual_type_label
from .types import (
    CATEGORIES,
    AutoSystemField,
    CreatableField,
    InverseLinkField,
    LinkField,
    ManualField,
    NormalizedSchema,
    NormalizedTable,
    RawField,
    RawSchema,
    RawTable,
)

log = logging.getLogger(__name__)

DEFAULT_SCHEMA_NAME = "Airtable Base"

# Link options that still mean something in another base.
PORTABLE_LINK_OPTIONS = ("prefersSingleRecordLink", "isReversed")

FieldIndex = Dict[str, Tuple[RawTable, RawField]]

FIELD_ID = re.compile(r"\bfld[A-Za-z0-9]{14}\b")
BRACED_FIELD_ID = re.compile(r"\{(fld[A-Za-z0-9]{14})\}")


class AirtableSchemaNormalizer(Normalizer):
    """
    Turns the raw metadata of one base into a self-contained schema that
    can be replayed against any other base later on:
      * every field is classified into exactly one partition,
      * base-specific ids (select choice ids, linked table ids) are dropped
        or rewritten to names,
      * computed fields get placeholder instructions with field/table ids
        swapped for quoted names wherever they can be resolved.
    """

    def normalize(
        self,
        raw_schema: Union[RawSchema, Dict[str, Any]],
        display_name: Optional[str] = None,
        *,
        exported_at: Optional[datetime] = None,
        strict: bool = False,
    ) -> NormalizedSchema:
        raw = raw_schema if isinstance(raw_schema, RawSchema) else RawSchema.model_validate(raw_schema)

        # One index for every cross-reference lookup below.
        tables_by_id: Dict[str, RawTable] = {t.id: t for t in raw.tables}
        fields_by_id: FieldIndex = {f.id: (t, f) for t in raw.tables for f in t.fields}

        warnings: List[str] = []
        tables = [
            self._normalize_table(t, tables_by_id, fields_by_id, warnings, strict)
            for t in raw.tables
        ]

        return NormalizedSchema(
            name=display_name or DEFAULT_SCHEMA_NAME,
            exported_at=exported_at or datetime.now(timezone.utc),
            table_count=len(tables),
            tables=tables,
            warnings=warnings,
        )

    def _normalize_table(self, table, tables_by_id, fields_by_id, warnings, strict) -> NormalizedTable:
        partitions: Dict[str, list] = {c: [] for c in CATEGORIES}
        for f in table.fields:
            category = classify_field(f)
            base = {
                "original_id": f.id,
                "name": f.name,
                "type": f.type,
                "description": f.description or "",
            }
            opts = f.options or {}

            if category == "creatable":
                partitions[category].append(CreatableField(**base, options=clean_options(f.options)))

            elif category == "link":
                linked_name = _linked_table_name(opts, tables_by_id)
                if linked_name is None:
                    linked_name = opts.get("linkedTableId") or ""
                    msg = (f'Link field "{f.name}" in table "{table.name}" points at table '
                           f'{linked_name or "(none)"} which is not in the exported schema')
                    if strict:
                        raise UnresolvedDependency(msg)
                    log.warning(msg)
                    warnings.append(msg)
                partitions[category].append(LinkField(
                    **base,
                    options=_link_options(opts),
                    linked_table_name=linked_name,
                    prefers_single_record_link=bool(opts.get("prefersSingleRecordLink")),
                ))

            elif category == "inverseLink":
                partitions[category].append(InverseLinkField(
                    **base,
                    options=_link_options(opts),
                    linked_table_name=_linked_table_name(opts, tables_by_id),
                ))

            elif category == "autoSystem":
                partitions[category].append(AutoSystemField(**base))

            else:  # manual
                instructions = resolve_references(build_instructions(f), opts, tables_by_id, fields_by_id)
                partitions[category].append(ManualField(
                    **base,
                    manual_type=manual_type_label(f.type),
                    manual_description=instructions.description,
                    manual_cell_instructions=instructions.cell_instructions,
                    original_options=deepcopy(opts),
                ))

        return NormalizedTable(
            original_id=table.id,
            name=table.name,
            description=table.description or "",
            primary_field_id=table.primary_field_id,
            creatable_fields=partitions["creatable"],
            link_fields=partitions["link"],
            manual_fields=partitions["manual"],
            auto_system_fields=partitions["autoSystem"],
            inverse_link_fields=partitions["inverseLink"],
        )


def resolve_references(
    instructions: Instructions,
    options: Dict[str, Any],
    tables_by_id: Dict[str, RawTable],
    fields_by_id: FieldIndex,
) -> Instructions:
    """
    Best-effort textual substitution of raw ids in placeholder instructions.
    recordLinkFieldId    -> "<field>" field
    fieldIdInLinkedTable -> "<field>" field in "<table>" (through the link field's table)
    {fldXXXX} in formulas -> {<field>}
    any other known id   -> "<field>" field
    Ids that cannot be resolved are left as they are.
    """
    replacements: Dict[str, str] = {}

    link_ref = options.get("recordLinkFieldId")
    link_hit = fields_by_id.get(link_ref) if link_ref else None
    if link_hit:
        replacements[link_ref] = f'"{link_hit[1].name}" field'

    target_ref = options.get("fieldIdInLinkedTable")
    if target_ref and link_hit and link_hit[1].type == LINK_TYPE:
        linked_table = tables_by_id.get((link_hit[1].options or {}).get("linkedTableId"))
        target_hit = fields_by_id.get(target_ref)
        if linked_table and target_hit and target_hit[0].id == linked_table.id:
            replacements[target_ref] = f'"{target_hit[1].name}" field in "{linked_table.name}"'

    def readable(text: str) -> str:
        for raw_id, name in replacements.items():
            text = text.replace(raw_id, name)
        # Formula text names fields as {fldXXXX}; any id still left gets its plain name.
        text = BRACED_FIELD_ID.sub(lambda m: f"{{{_field_name(m.group(1), fields_by_id) or m.group(1)}}}", text)
        return FIELD_ID.sub(lambda m: _quoted(m.group(0), fields_by_id), text)

    description, cell = instructions
    return Instructions(readable(description), readable(cell))


def _field_name(field_id: str, fields_by_id: FieldIndex) -> Optional[str]:
    hit = fields_by_id.get(field_id)
    return hit[1].name if hit else None


def _quoted(field_id: str, fields_by_id: FieldIndex) -> str:
    name = _field_name(field_id, fields_by_id)
    return f'"{name}" field' if name else field_id


def clean_options(options: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy field options, keeping only name/color of select choices."""
    if not options:
        return None
    out = deepcopy(options)
    if isinstance(out.get("choices"), list):
        choices = []
        for c in out["choices"]:
            choice = {"name": c.get("name")}
            if c.get("color"):
                choice["color"] = c["color"]
            choices.append(choice)
        out["choices"] = choices
    return out


def _link_options(options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    kept = {k: options[k] for k in PORTABLE_LINK_OPTIONS if k in options}
    return kept or None


def _linked_table_name(options: Dict[str, Any], tables_by_id: Dict[str, RawTable]) -> Optional[str]:
    linked = tables_by_id.get(options.get("linkedTableId"))
    return linked.name if linked else None
