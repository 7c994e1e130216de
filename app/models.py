from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from .db import Base

def _now():
    return datetime.now(timezone.utc)

# -----------------------------
# ORM models (tables) for exported schemas and install runs.
# Tokens are never stored.
# -----------------------------
class SchemaArtifact(Base):
    __tablename__ = "schema_artifacts"
    # One normalized schema export, stored as its JSON document
    schema_id      = Column(Integer, primary_key=True, autoincrement=True)
    name           = Column(String, index=True, nullable=False)
    source_base_id = Column(String)                            # appXXXX of the exported base, if known
    exported_at    = Column(DateTime(timezone=True))
    table_count    = Column(Integer, nullable=False, default=0)
    payload        = Column(Text, nullable=False)              # NormalizedSchema JSON (camelCase)
    created_at     = Column(DateTime(timezone=True), default=_now)

    def __repr__(self):
        return f"<SchemaArtifact(schema_id={self.schema_id}, name={self.name}, tables={self.table_count})>"


class ReplicationRun(Base):
    __tablename__ = "replication_runs"
    # One install of an artifact into a student's base
    run_id         = Column(Integer, primary_key=True, autoincrement=True)
    schema_id      = Column(Integer, ForeignKey("schema_artifacts.schema_id"), index=True, nullable=False)
    target_base_id = Column(String, nullable=False)
    table_name     = Column(String)                            # set for per-table installs
    state          = Column(String, nullable=False)            # ReplicationState value
    created_count  = Column(Integer, default=0)
    skipped_count  = Column(Integer, default=0)
    failed_count   = Column(Integer, default=0)
    result         = Column(Text)                              # ReplicationResult.to_dict() JSON
    started_at     = Column(DateTime(timezone=True), default=_now)
    finished_at    = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<ReplicationRun(run_id={self.run_id}, base={self.target_base_id}, state={self.state})>"
