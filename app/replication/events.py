# app/replication/events.py
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ReplicationState(str, Enum):
    IDLE = "idle"
    CREATING_TABLES = "creating_tables"
    CREATING_CREATABLE_FIELDS = "creating_creatable_fields"
    CREATING_LINK_FIELDS = "creating_link_fields"
    CREATING_MANUAL_FIELDS = "creating_manual_fields"
    INSERTING_INSTRUCTION_ROWS = "inserting_instruction_rows"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ReplicationState.DONE, ReplicationState.FAILED})

_MARKS = {"created": "✓", "skipped": "-", "failed": "✗"}


@dataclass
class ItemOutcome:
    """What happened to one table, field or record."""
    kind: str                       # "table" | "field" | "record"
    table: str
    name: str
    status: str                     # "created" | "skipped" | "failed"
    reason: str = ""
    error: Optional[str] = None     # error class name for skipped/failed items
    category: Optional[str] = None  # field category, for fields
    target_id: Optional[str] = None

    def line(self) -> str:
        """One human-readable line for the progress log."""
        if self.kind == "table":
            what = f'table "{self.table}"'
        else:
            what = f'{self.kind} "{self.name}" in "{self.table}"'
        text = f"{_MARKS.get(self.status, '?')} {self.status} {what}"
        return f"{text}: {self.reason}" if self.reason else text

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["line"] = self.line()
        return out


@dataclass
class ReplicationResult:
    base_id: str
    schema_name: str
    state: ReplicationState = ReplicationState.IDLE
    created: List[ItemOutcome] = field(default_factory=list)
    skipped: List[ItemOutcome] = field(default_factory=list)
    failed: List[ItemOutcome] = field(default_factory=list)
    fatal_error: Optional[str] = None
    table_ids: Dict[str, str] = field(default_factory=dict)

    def record(self, outcome: ItemOutcome) -> None:
        getattr(self, outcome.status).append(outcome)

    @property
    def ok(self) -> bool:
        return self.state == ReplicationState.DONE and not self.failed

    def summary(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "ok": self.ok,
            "created": len(self.created),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "fatal_error": self.fatal_error,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_id": self.base_id,
            "schema_name": self.schema_name,
            **self.summary(),
            "table_ids": dict(self.table_ids),
            "items": {
                "created": [o.to_dict() for o in self.created],
                "skipped": [o.to_dict() for o in self.skipped],
                "failed": [o.to_dict() for o in self.failed],
            },
        }


@dataclass
class ProgressEvent:
    type: str                        # "state" | "item" | "summary"
    state: ReplicationState
    item: Optional[ItemOutcome] = None
    summary: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type, "state": self.state.value}
        if self.item is not None:
            out["item"] = self.item.to_dict()
        if self.summary is not None:
            out["summary"] = self.summary
        return out
