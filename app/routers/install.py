import json
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.airtable.client import build_target_client
from app.db import get_db
from app.models import ReplicationRun
from app.normalizers import subset_for_table
from app.normalizers.types import NormalizedSchema
from app.replication.driver import SchemaReplicator
from app.repositories import finish_run, get_schema_row, load_schema, run_to_dict, start_run

log = logging.getLogger(__name__)

# --------------------------------------------------------------------
# Router setup
# --------------------------------------------------------------------
router = APIRouter(prefix="", tags=["install"])


class InstallRequest(BaseModel):
    schema_id: int              # stored artifact to install
    base_id: str                # the student's (empty) target base
    api_key: str                # the student's token; used for this run only
    table: Optional[str] = None # install one table plus its link dependencies


def _prepare(req: InstallRequest, db: Session) -> Tuple[NormalizedSchema, ReplicationRun, SchemaReplicator]:
    base_id = (req.base_id or "").strip()
    token = (req.api_key or "").strip()
    if not base_id or not token:
        raise HTTPException(400, "base_id and api_key are required")

    row = get_schema_row(db, req.schema_id)
    if row is None:
        raise HTTPException(404, "Schema not found")
    try:
        schema = load_schema(row)
    except ValueError as e:
        raise HTTPException(500, str(e))
    if req.table:
        try:
            schema = subset_for_table(schema, req.table)
        except KeyError:
            raise HTTPException(404, f"Table {req.table!r} not in schema")

    run = start_run(db, req.schema_id, base_id, table_name=req.table)
    replicator = SchemaReplicator(schema, build_target_client(token), base_id)
    return schema, run, replicator


@router.post("/install")
def install(req: InstallRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Replicate a stored schema into the student's base and return the
    itemized result once the run is over.

    Response JSON:
      {"run_id": 3, "state": "done", "ok": true, "created": 7, "skipped": 2,
       "failed": 0, "items": {"created": [...], "skipped": [...], "failed": [...]}, ...}
    """
    _, run, replicator = _prepare(req, db)
    result = replicator.run()
    finish_run(db, run, result)
    db.commit()
    return {"run_id": run.run_id, **result.to_dict()}


@router.post("/install/stream")
def install_stream(req: InstallRequest, db: Session = Depends(get_db)):
    """
    Same as /install but streams progress as NDJSON, one event per line:
      {"type": "run", "run_id": 3}
      {"type": "state", "state": "creating_tables"}
      {"type": "item", "state": "...", "item": {..., "line": "✓ created table \"A\""}}
      ...
      {"type": "summary", "state": "done", "summary": {...}}
    """
    _, run, replicator = _prepare(req, db)
    db.commit()
    run_id = run.run_id

    def _lines():
        yield json.dumps({"type": "run", "run_id": run_id}) + "\n"
        for event in replicator.events():
            yield json.dumps(event.to_dict()) + "\n"
        row = db.get(ReplicationRun, run_id)
        finish_run(db, row, replicator.result)
        db.commit()

    return StreamingResponse(_lines(), media_type="application/x-ndjson")


@router.get("/runs/{run_id}")
def get_run(run_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    row = db.get(ReplicationRun, run_id)
    if row is None:
        raise HTTPException(404, "Run not found")
    return run_to_dict(row)
