# app/replication/driver.py
import logging
from typing import Callable, Dict, Iterator, Optional, Set, Tuple

from app.airtable.client import AirtableClient
from app.errors import (
    CreateCallFailed,
    RelayUnreachable,
    SkippedDueToDependencyFailure,
    UnresolvedDependency,
)
from app.normalizers.types import (
    AutoSystemField,
    CreatableField,
    LinkField,
    ManualField,
    NormalizedSchema,
    NormalizedTable,
)
from app.settings import FIELD_DESCRIPTION_LIMIT, INSTRUCTION_ROW_MARKER
from .events import ItemOutcome, ProgressEvent, ReplicationResult, ReplicationState

log = logging.getLogger(__name__)

# Types whose read-side options the create endpoint rejects.
OPTIONLESS_TYPES = frozenset({
    "singleLineText",
    "multilineText",
    "richText",
    "email",
    "url",
    "phoneNumber",
    "multipleAttachments",
    "singleCollaborator",
    "multipleCollaborators",
    "barcode",
})
TEXT_TYPES = frozenset({"singleLineText", "multilineText"})
PLACEHOLDER_TYPE = "multilineText"


def _description(text: Optional[str]) -> Optional[str]:
    return text[:FIELD_DESCRIPTION_LIMIT] if text else None


def field_payload(f: CreatableField) -> Dict:
    payload = {"name": f.name, "type": f.type}
    if f.description:
        payload["description"] = _description(f.description)
    if f.options and f.type not in OPTIONLESS_TYPES:
        payload["options"] = f.options
    return payload


def manual_payload(f: ManualField) -> Dict:
    return {"name": f.name, "type": PLACEHOLDER_TYPE, "description": _description(f.manual_description)}


def link_payload(f: LinkField, target_table_id: str) -> Dict:
    options = {"linkedTableId": target_table_id}
    if f.prefers_single_record_link:
        options["prefersSingleRecordLink"] = True
    payload = {"name": f.name, "type": "multipleRecordLinks", "options": options}
    if f.description:
        payload["description"] = _description(f.description)
    return payload


class SchemaReplicator:
    """
    Replays a NormalizedSchema against one live base, normally empty.
    Tables and fields the base already has (by name) are reported as
    skipped and reused, so re-running after a partial install resumes it.

    Order of calls (one in flight at a time):
      1. every table, with its primary field only
      2. remaining creatable fields
      3. link fields, pointing at the *target* table ids recorded in 1
      4. manual fields as Long Text placeholders
      5. one instruction record per table with placeholders

    Per-item failures are recorded and the run continues; a failed table
    turns everything depending on it into SkippedDueToDependencyFailure.
    Only an unreachable relay/API ends the run early (state FAILED).
    """

    def __init__(self, schema: NormalizedSchema, client: AirtableClient, base_id: str):
        self.schema = schema
        self.client = client
        self.base_id = base_id
        self.state = ReplicationState.IDLE
        self.result = ReplicationResult(base_id=base_id, schema_name=schema.name)

        # Runtime map; the schema itself is never modified.
        self.table_ids: Dict[str, str] = self.result.table_ids
        self.field_ids: Dict[Tuple[str, str], str] = {}
        self._failed_tables: Set[str] = set()
        self._table_names = {t.name for t in schema.tables}
        self._primary: Dict[str, Dict] = {}   # table name -> primary field payload used
        # What the target base already holds, filled by _load_existing().
        self._existing_tables: Dict[str, Dict] = {}
        self._existing_fields: Set[Tuple[str, str]] = set()
        self._out_of_scope = set(schema.out_of_scope_tables)

    # -----------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------
    def run(self, on_event: Optional[Callable[[ProgressEvent], None]] = None) -> ReplicationResult:
        for event in self.events():
            if on_event is not None:
                on_event(event)
        return self.result

    def events(self) -> Iterator[ProgressEvent]:
        if self.state != ReplicationState.IDLE:
            raise RuntimeError("a SchemaReplicator can only run once")

        tables = self.schema.tables
        log.info("replicating schema %r (%d tables) into base %s", self.schema.name, len(tables), self.base_id)
        try:
            yield self._enter(ReplicationState.CREATING_TABLES)
            self._load_existing()
            for table in tables:
                yield self._item(self._create_table(table))

            yield self._enter(ReplicationState.CREATING_CREATABLE_FIELDS)
            for table in tables:
                for f in table.creatable_fields:
                    if not self._is_primary(table, f.name):
                        yield self._item(self._create_field(table, f, self._add_creatable))
                for f in table.auto_system_fields:
                    if not self._is_primary(table, f.name):
                        yield self._item(self._informational(
                            table, f,
                            f'Airtable creates this automatically: add a "{f.type}" field '
                            f'named "{f.name}" and it fills itself',
                        ))

            yield self._enter(ReplicationState.CREATING_LINK_FIELDS)
            for table in tables:
                for f in table.link_fields:
                    if f.linked_table_name in self._out_of_scope:
                        yield self._item(self._informational(
                            table, f, f'links to "{f.linked_table_name}", which is not part of this install',
                        ))
                    else:
                        yield self._item(self._create_field(table, f, self._add_link))
                for f in table.inverse_link_fields:
                    yield self._item(self._informational(
                        table, f,
                        "Airtable creates this automatically with the link field "
                        f'in "{f.linked_table_name or "the linked table"}"',
                    ))

            yield self._enter(ReplicationState.CREATING_MANUAL_FIELDS)
            for table in tables:
                for f in table.manual_fields:
                    if not self._is_primary(table, f.name):
                        yield self._item(self._create_field(table, f, self._add_manual))

            yield self._enter(ReplicationState.INSERTING_INSTRUCTION_ROWS)
            for table in tables:
                if table.manual_fields and self._has_instruction_row(table):
                    yield self._item(ItemOutcome("record", table.name, "instruction row", "skipped",
                                                 reason="already present in the target base"))
                elif table.manual_fields:
                    yield self._item(self._attempt(
                        "record", table.name, "instruction row", None,
                        lambda: self._insert_instruction_row(table),
                    ))

        except RelayUnreachable as e:
            log.error("replication into base %s aborted: %s", self.base_id, e)
            self.result.fatal_error = str(e)
            yield self._enter(ReplicationState.FAILED)
        else:
            yield self._enter(ReplicationState.DONE)

        log.info("replication into base %s finished: %s", self.base_id, self.result.summary())
        yield ProgressEvent("summary", self.state, summary=self.result.summary())

    # -----------------------------------------------------------------
    # Dependency resolution
    # -----------------------------------------------------------------
    def resolve_table_id(self, table_name: str) -> str:
        """Target id of an already created table."""
        if table_name not in self._table_names:
            raise UnresolvedDependency(f'table "{table_name}" is not part of this schema')
        if table_name in self._failed_tables:
            raise SkippedDueToDependencyFailure(f'table "{table_name}" could not be created')
        if table_name not in self.table_ids:
            raise UnresolvedDependency(f'table "{table_name}" has no target id yet')
        return self.table_ids[table_name]

    def _load_existing(self) -> None:
        """
        Read what the target base already holds so a re-run only creates
        what is missing. A base we cannot read is treated as empty.
        """
        try:
            body = self.client.get_base_schema(self.base_id)
        except CreateCallFailed as e:
            log.warning("could not read base %s before replicating, assuming it is empty: %s", self.base_id, e)
            return
        tables = body.get("tables") if isinstance(body, dict) else None
        for t in tables or []:
            if t.get("name") in self._table_names and t.get("id"):
                self._existing_tables[t["name"]] = t
                for f in t.get("fields") or []:
                    self._existing_fields.add((t["name"], f.get("name")))
        if self._existing_tables:
            log.info("base %s already has %d of the tables, resuming", self.base_id, len(self._existing_tables))

    def _is_primary(self, table: NormalizedTable, field_name: str) -> bool:
        primary = self._primary.get(table.name)
        return primary is not None and primary["name"] == field_name

    # -----------------------------------------------------------------
    # Pass 1: tables
    # -----------------------------------------------------------------
    def _primary_payload(self, table: NormalizedTable) -> Tuple[Dict, str]:
        """The field a table is created with, plus a note for the progress log."""
        primary = table.primary_field()
        if isinstance(primary, CreatableField):
            return field_payload(primary), ""
        if isinstance(primary, ManualField):
            return manual_payload(primary), f'primary field "{primary.name}" created as a Long Text placeholder'
        if isinstance(primary, AutoSystemField):
            payload = {
                "name": primary.name,
                "type": "singleLineText",
                "description": f'Placeholder primary field: change its type to "{primary.type}" in Airtable',
            }
            return payload, f'primary field "{primary.name}" created as single line text; change it to {primary.type}'
        if table.creatable_fields:
            return field_payload(table.creatable_fields[0]), ""
        return {"name": "Name", "type": "singleLineText"}, 'no usable primary field, created "Name"'

    def _adopt_table(self, table: NormalizedTable) -> ItemOutcome:
        existing = self._existing_tables[table.name]
        self.table_ids[table.name] = existing["id"]
        fields = existing.get("fields") or []
        for f in fields:
            self.field_ids[(table.name, f["name"])] = f["id"]
        primary = next((f for f in fields if f["id"] == existing.get("primaryFieldId")), None)
        if primary:
            self._primary[table.name] = {"name": primary["name"], "type": primary["type"]}
        return ItemOutcome("table", table.name, table.name, "skipped",
                           reason="already exists in the target base", target_id=existing["id"])

    def _create_table(self, table: NormalizedTable) -> ItemOutcome:
        if table.name in self._existing_tables:
            return self._adopt_table(table)
        primary, note = self._primary_payload(table)

        def create():
            payload = {"name": table.name, "fields": [primary]}
            if table.description:
                payload["description"] = table.description
            created = self.client.create_table(self.base_id, payload)
            self.table_ids[table.name] = created["id"]
            for f in created.get("fields", []):
                self.field_ids[(table.name, f["name"])] = f["id"]
            self._primary[table.name] = primary
            return created["id"]

        outcome = self._attempt("table", table.name, table.name, None, create)
        if outcome.status == "created":
            outcome.reason = note
        else:
            self._failed_tables.add(table.name)
        return outcome

    # -----------------------------------------------------------------
    # Passes 2-4: fields
    # -----------------------------------------------------------------
    def _create_field(self, table: NormalizedTable, f, add: Callable) -> ItemOutcome:
        if (table.name, f.name) in self._existing_fields:
            return ItemOutcome("field", table.name, f.name, "skipped", reason="already exists in the target base",
                               category=f.category, target_id=self.field_ids.get((table.name, f.name)))

        def create():
            created = add(table, f)
            self.field_ids[(table.name, f.name)] = created["id"]
            return created["id"]
        return self._attempt("field", table.name, f.name, f.category, create)

    def _add_creatable(self, table: NormalizedTable, f: CreatableField) -> Dict:
        table_id = self.resolve_table_id(table.name)
        return self.client.create_field(self.base_id, table_id, field_payload(f))

    def _add_link(self, table: NormalizedTable, f: LinkField) -> Dict:
        # Checked before our own table so a dangling reference is reported as such.
        if f.linked_table_name not in self._table_names:
            raise UnresolvedDependency(f'linked table "{f.linked_table_name}" is not part of this schema')
        table_id = self.resolve_table_id(table.name)
        linked_id = self.resolve_table_id(f.linked_table_name)
        return self.client.create_field(self.base_id, table_id, link_payload(f, linked_id))

    def _add_manual(self, table: NormalizedTable, f: ManualField) -> Dict:
        table_id = self.resolve_table_id(table.name)
        return self.client.create_field(self.base_id, table_id, manual_payload(f))

    # -----------------------------------------------------------------
    # Pass 5: instruction rows
    # -----------------------------------------------------------------
    def _insert_instruction_row(self, table: NormalizedTable) -> Optional[str]:
        table_id = self.resolve_table_id(table.name)
        cells: Dict[str, str] = {}
        for f in table.manual_fields:
            fid = self.field_ids.get((table.name, f.name))
            if fid:
                cells[fid] = f.manual_cell_instructions
        if not cells:
            raise SkippedDueToDependencyFailure("none of the placeholder fields were created")

        primary = self._primary.get(table.name) or {}
        marker_id = self.field_ids.get((table.name, primary.get("name")))
        if marker_id and marker_id not in cells and primary.get("type") in TEXT_TYPES:
            cells[marker_id] = INSTRUCTION_ROW_MARKER
        else:
            # No free text primary: lead the first instruction cell with the marker.
            first = next(iter(cells))
            cells[first] = f"{INSTRUCTION_ROW_MARKER}\n\n{cells[first]}"

        records = self.client.create_records(self.base_id, table_id, [cells])
        return records[0].get("id") if records else None

    def _has_instruction_row(self, table: NormalizedTable) -> bool:
        if table.name not in self._existing_tables:
            return False
        try:
            records = self.client.list_records(self.base_id, self.table_ids[table.name])
        except CreateCallFailed as e:
            log.warning('could not read records of "%s", inserting its instruction row: %s', table.name, e)
            return False
        return any(
            isinstance(value, str) and INSTRUCTION_ROW_MARKER in value
            for r in records
            for value in (r.get("fields") or {}).values()
        )

    # -----------------------------------------------------------------
    # Bookkeeping
    # -----------------------------------------------------------------
    def _attempt(self, kind: str, table: str, name: str, category: Optional[str], create: Callable) -> ItemOutcome:
        try:
            target_id = create()
        except SkippedDueToDependencyFailure as e:
            return ItemOutcome(kind, table, name, "skipped", reason=str(e),
                               error=type(e).__name__, category=category)
        except (CreateCallFailed, UnresolvedDependency) as e:
            return ItemOutcome(kind, table, name, "failed", reason=str(e),
                               error=type(e).__name__, category=category)
        return ItemOutcome(kind, table, name, "created", category=category, target_id=target_id)

    def _informational(self, table: NormalizedTable, f, reason: str) -> ItemOutcome:
        return ItemOutcome("field", table.name, f.name, "skipped", reason=reason, category=f.category)

    def _item(self, outcome: ItemOutcome) -> ProgressEvent:
        self.result.record(outcome)
        if outcome.status == "failed":
            log.warning(outcome.line())
        else:
            log.info(outcome.line())
        return ProgressEvent("item", self.state, item=outcome)

    def _enter(self, state: ReplicationState) -> ProgressEvent:
        self.state = state
        self.result.state = state
        log.debug("base %s: %s", self.base_id, state.value)
        return ProgressEvent("state", state)
