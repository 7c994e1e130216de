import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import ReplicationRun, SchemaArtifact
from app.normalizers.types import NormalizedSchema
from app.replication.events import ReplicationResult

log = logging.getLogger(__name__)


def save_schema(db: Session, schema: NormalizedSchema, source_base_id: Optional[str] = None) -> SchemaArtifact:
    """Persist a normalized schema as a new artifact row (caller commits)."""
    row = SchemaArtifact(
        name=schema.name,
        source_base_id=source_base_id,
        exported_at=schema.exported_at,
        table_count=schema.table_count,
        payload=json.dumps(schema.to_json_dict()),
    )
    db.add(row)
    db.flush()
    log.info("stored schema artifact %s (%s, %d tables)", row.schema_id, row.name, row.table_count)
    return row


def load_schema(row: SchemaArtifact) -> NormalizedSchema:
    """
    Rebuild the schema from its stored JSON.
    Raises ValueError when the stored document does not validate.
    """
    try:
        return NormalizedSchema.model_validate(json.loads(row.payload))
    except (ValidationError, json.JSONDecodeError) as e:
        log.exception("schema artifact %s is unreadable", row.schema_id)
        raise ValueError(f"schema artifact {row.schema_id} is unreadable: {e}") from e


def get_schema_row(db: Session, schema_id: int) -> Optional[SchemaArtifact]:
    return db.get(SchemaArtifact, schema_id)


def list_schemas(db: Session, limit: int = 100, offset: int = 0) -> List[SchemaArtifact]:
    q = select(SchemaArtifact).order_by(SchemaArtifact.schema_id.desc()).offset(offset).limit(limit)
    return list(db.execute(q).scalars().all())


def start_run(db: Session, schema_id: int, target_base_id: str, table_name: Optional[str] = None) -> ReplicationRun:
    row = ReplicationRun(
        schema_id=schema_id,
        target_base_id=target_base_id,
        table_name=table_name,
        state="idle",
    )
    db.add(row)
    db.flush()
    return row


def finish_run(db: Session, row: ReplicationRun, result: ReplicationResult) -> ReplicationRun:
    """Copy the terminal result onto the run row (caller commits)."""
    row.state         = result.state.value
    row.created_count = len(result.created)
    row.skipped_count = len(result.skipped)
    row.failed_count  = len(result.failed)
    row.result        = json.dumps(result.to_dict())
    row.finished_at   = datetime.now(timezone.utc)
    db.merge(row)
    log.info("run %s into base %s finished: %s", row.run_id, row.target_base_id, result.summary())
    return row


def run_to_dict(row: ReplicationRun) -> Dict[str, Any]:
    return {
        "run_id": row.run_id,
        "schema_id": row.schema_id,
        "target_base_id": row.target_base_id,
        "table": row.table_name,
        "state": row.state,
        "created": row.created_count,
        "skipped": row.skipped_count,
        "failed": row.failed_count,
        "started_at": row.started_at,
        "finished_at": row.finished_at,
        "result": json.loads(row.result) if row.result else None,
    }
