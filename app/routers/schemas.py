from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.airtable.client import fetch_base_schema
from app.db import get_db
from app.errors import SourceFetchError, UnresolvedDependency
from app.normalizers import get_default_normalizer, subset_for_table
from app.normalizers.types import NormalizedSchema, NormalizedTable
from app.repositories import get_schema_row, list_schemas, load_schema, save_schema

# --------------------------------------------------------------------
# Router setup
# --------------------------------------------------------------------
router = APIRouter(prefix="/schemas", tags=["schemas"])


class ExportRequest(BaseModel):
    base_id: str                # source base (appXXXX)
    api_key: str                # admin token; used for this call only, never stored
    name: Optional[str] = None  # human-readable schema name


def _table_summary(t: NormalizedTable) -> Dict[str, Any]:
    return {
        "name": t.name,
        "fields": len(t.creatable_fields),
        "links": len(t.link_fields),
        "manual": len(t.manual_fields),
        "auto_system_skipped": len(t.auto_system_fields),
        "inverse_links_skipped": len(t.inverse_link_fields),
    }


def _stored(row, schema: NormalizedSchema) -> Dict[str, Any]:
    return {
        "ok": True,
        "schema_id": row.schema_id,
        "name": schema.name,
        "table_count": schema.table_count,
        "warnings": schema.warnings,
        "tables": [_table_summary(t) for t in schema.tables],
    }


@router.post("/export")
def export_schema(req: ExportRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Fetch a source base's schema, normalize it and store it as an artifact.

    Response JSON:
      {"ok": True, "schema_id": 1, "name": "...", "table_count": 2,
       "warnings": [...], "tables": [{"name": "A", "fields": 2, ...}, ...]}
    """
    base_id = (req.base_id or "").strip()
    if not base_id or not (req.api_key or "").strip():
        raise HTTPException(400, "base_id and api_key are required")

    try:
        raw = fetch_base_schema(base_id, req.api_key.strip())
        schema = get_default_normalizer().normalize(raw, req.name)
    except SourceFetchError as e:
        raise HTTPException(502, str(e))
    except (ValidationError, UnresolvedDependency) as e:
        raise HTTPException(502, f"Source schema could not be normalized: {e}")

    row = save_schema(db, schema, source_base_id=base_id)
    db.commit()
    return _stored(row, schema)


@router.post("")
def import_schema(payload: Dict[str, Any], db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Store an already normalized schema document (e.g. one exported elsewhere)."""
    try:
        schema = NormalizedSchema.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(400, f"Not a normalized schema: {e.error_count()} error(s)")
    row = save_schema(db, schema)
    db.commit()
    return _stored(row, schema)


@router.get("")
def get_schemas(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """List stored artifacts, newest first."""
    return [
        {
            "schema_id": r.schema_id,
            "name": r.name,
            "source_base_id": r.source_base_id,
            "table_count": r.table_count,
            "exported_at": r.exported_at,
        }
        for r in list_schemas(db, limit=limit, offset=offset)
    ]


@router.get("/{schema_id}")
def get_schema(
    schema_id: int,
    table: Optional[str] = Query(None, description="Only this table plus the tables its links need"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Return the artifact document (camelCase keys), optionally narrowed to one table."""
    row = get_schema_row(db, schema_id)
    if row is None:
        raise HTTPException(404, "Schema not found")
    try:
        schema = load_schema(row)
    except ValueError as e:
        raise HTTPException(500, str(e))
    if table:
        try:
            schema = subset_for_table(schema, table)
        except KeyError:
            raise HTTPException(404, f"Table {table!r} not in schema")
    return schema.to_json_dict()
