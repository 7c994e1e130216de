# tests/conftest.py
import copy
import json
import os
import tempfile
from itertools import count

# Keep the app's own engine off disk; tests use their own temp DB below.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.db import Base, get_db
from app.airtable.client import AirtableClient
from app.errors import RelayUnreachable
from app.models import SchemaArtifact
from app.normalizers import get_default_normalizer

API_PREFIX = "https://api.airtable.com/v0/"


# --- Temporary SQLite DB file for the whole test session ---
@pytest.fixture(scope="session")
def tmp_db_url():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(tmp_db_url):
    eng = create_engine(tmp_db_url, connect_args={"check_same_thread": False}, future=True)
    Base.metadata.create_all(bind=eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    db = TestingSession()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


# --- Override FastAPI's DB dependency to use our test session ---
@pytest.fixture(autouse=True)
def override_get_db(db_session):
    def _get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


# --- Utility: clear tables in FK-safe order ---
def _clear_all(db):
    db.execute(text("DELETE FROM replication_runs"))
    db.execute(text("DELETE FROM schema_artifacts"))
    db.commit()


# --------------------------------------------------------------------
# Source schemas
# --------------------------------------------------------------------
def _ab_schema():
    """
    Table A: Name (text), Score (number), plus the inverse side of B.Owner.
    Table B: Name (text), Owner (link -> A), Total (rollup of Owner.Score, sum).
    """
    return {
        "tables": [
            {
                "id": "tblAAAAAAAAAAAAAA",
                "name": "A",
                "description": "",
                "primaryFieldId": "fldAName000000000",
                "fields": [
                    {"id": "fldAName000000000", "name": "Name", "type": "singleLineText"},
                    {"id": "fldAScore00000000", "name": "Score", "type": "number",
                     "options": {"precision": 0}},
                    {"id": "fldAInverse000000", "name": "B", "type": "multipleRecordLinks",
                     "options": {"linkedTableId": "tblBBBBBBBBBBBBBB", "isReversed": True,
                                 "inverseLinkFieldId": "fldBOwner00000000",
                                 "prefersSingleRecordLink": False}},
                ],
            },
            {
                "id": "tblBBBBBBBBBBBBBB",
                "name": "B",
                "description": "Things owned by A",
                "primaryFieldId": "fldBName000000000",
                "fields": [
                    {"id": "fldBName000000000", "name": "Name", "type": "singleLineText"},
                    {"id": "fldBOwner00000000", "name": "Owner", "type": "multipleRecordLinks",
                     "options": {"linkedTableId": "tblAAAAAAAAAAAAAA", "isReversed": False,
                                 "inverseLinkFieldId": "fldAInverse000000",
                                 "prefersSingleRecordLink": True}},
                    {"id": "fldBTotal00000000", "name": "Total", "type": "rollup",
                     "options": {"fieldIdInLinkedTable": "fldAScore00000000",
                                 "recordLinkFieldId": "fldBOwner00000000",
                                 "formula": "SUM(values)",
                                 "result": {"type": "number", "options": {"precision": 0}}}},
                ],
            },
        ]
    }


@pytest.fixture
def raw_ab_schema():
    return _ab_schema()


@pytest.fixture
def raw_rich_schema():
    """A/B plus a Tasks table exercising every category and option cleanup."""
    raw = _ab_schema()
    raw["tables"].append({
        "id": "tblTTTTTTTTTTTTTT",
        "name": "Tasks",
        "primaryFieldId": "fldTTitle00000000",
        "fields": [
            {"id": "fldTTitle00000000", "name": "Title", "type": "formula",
             "options": {"formula": "CONCATENATE({fldTStep000000000}, ' - ', {fldTStatus0000000})",
                         "referencedFieldIds": ["fldTStep000000000", "fldTStatus0000000"]}},
            {"id": "fldTStep000000000", "name": "Step", "type": "singleLineText", "description": "What to do"},
            {"id": "fldTStatus0000000", "name": "Status", "type": "singleSelect",
             "options": {"choices": [
                 {"id": "selAAAAAAAAAAAAAA", "name": "Todo", "color": "redLight2"},
                 {"id": "selBBBBBBBBBBBBBB", "name": "Done"},
             ]}},
            {"id": "fldTProject000000", "name": "Project", "type": "multipleRecordLinks",
             "options": {"linkedTableId": "tblBBBBBBBBBBBBBB", "isReversed": False,
                         "inverseLinkFieldId": "fldBTasks00000000", "prefersSingleRecordLink": False}},
            {"id": "fldTOwnerName0000", "name": "Owner name", "type": "multipleLookupValues",
             "options": {"fieldIdInLinkedTable": "fldBName000000000", "recordLinkFieldId": "fldTProject000000",
                         "isValid": True}},
            {"id": "fldTCount00000000", "name": "Project count", "type": "count",
             "options": {"recordLinkFieldId": "fldTProject000000"}},
            {"id": "fldTNumber0000000", "name": "Number", "type": "autoNumber"},
            {"id": "fldTCreated000000", "name": "Created", "type": "createdTime",
             "options": {"result": {"type": "dateTime"}}},
        ],
    })
    # inverse side of Tasks.Project lives in B
    raw["tables"][1]["fields"].append(
        {"id": "fldBTasks00000000", "name": "Tasks", "type": "multipleRecordLinks",
         "options": {"linkedTableId": "tblTTTTTTTTTTTTTT", "isReversed": True,
                     "inverseLinkFieldId": "fldTProject000000"}}
    )
    return raw


@pytest.fixture
def ab_schema(raw_ab_schema):
    return get_default_normalizer().normalize(raw_ab_schema, "Course base")


@pytest.fixture
def rich_schema(raw_rich_schema):
    return get_default_normalizer().normalize(raw_rich_schema, "Course base")


# --------------------------------------------------------------------
# In-memory Airtable
# --------------------------------------------------------------------
class FakeAirtable:
    """
    Behaves like the metadata/records endpoints for the calls the installer makes.
    Knobs:
      fail_tables / fail_fields     names answered with 422
      rate_limit[name] = n          answer the first n calls for that name with 429
      unreachable_after = n         raise RelayUnreachable from call n+1 on
    """

    def __init__(self):
        self.bases = {}
        self.calls = []
        self.fail_tables = set()
        self.fail_fields = set()
        self.rate_limit = {}
        self.unreachable_after = None
        self._ids = count(1)

    # -- helpers -----------------------------------------------------
    def _id(self, prefix):
        return f"{prefix}{next(self._ids):014d}"

    def base(self, base_id):
        return self.bases.setdefault(base_id, {"tables": [], "records": {}})

    def table(self, base_id, name):
        return next(t for t in self.base(base_id)["tables"] if t["name"] == name)

    def field(self, base_id, table_name, field_name):
        return next(f for f in self.table(base_id, table_name)["fields"] if f["name"] == field_name)

    def records(self, base_id, table_name):
        return self.base(base_id)["records"].get(self.table(base_id, table_name)["id"], [])

    def created_names(self, kind):
        """Names submitted for creation, in call order (kind: 'table' | 'field')."""
        out = []
        for method, url, payload in self.calls:
            if method != "POST" or not url.startswith(API_PREFIX + "meta/"):
                continue
            is_field = url.endswith("/fields")
            if (kind == "field") == is_field:
                out.append(payload["name"])
        return out

    @staticmethod
    def _err(status, kind, message=""):
        return status, {"error": {"type": kind, "message": message}}

    def _new_field(self, payload):
        field = {"id": self._id("fld"), "name": payload["name"], "type": payload["type"]}
        if payload.get("description"):
            field["description"] = payload["description"]
        if payload.get("options"):
            field["options"] = copy.deepcopy(payload["options"])
        return field

    # -- Transport ---------------------------------------------------
    def send(self, method, url, token, payload=None):
        if self.unreachable_after is not None and len(self.calls) >= self.unreachable_after:
            raise RelayUnreachable("relay down")
        self.calls.append((method, url, copy.deepcopy(payload)))

        name = (payload or {}).get("name")
        if name in self.rate_limit and self.rate_limit[name] > 0:
            self.rate_limit[name] -= 1
            return self._err(429, "RATE_LIMIT_REACHED")

        path = url[len(API_PREFIX):].split("/")
        if path[0] == "meta":
            base = self.base(path[2])
            if len(path) == 4 and method == "GET":
                return 200, {"tables": copy.deepcopy(base["tables"])}
            if len(path) == 4 and method == "POST":
                return self._create_table(base, payload)
            if len(path) == 6 and path[5] == "fields" and method == "POST":
                return self._create_field(base, path[4], payload)
        elif len(path) == 2 and method == "POST":
            return self._create_records(self.base(path[0]), path[1], payload)
        elif len(path) == 2 and method == "GET":
            return 200, {"records": copy.deepcopy(self.base(path[0])["records"].get(path[1], []))}
        return self._err(404, "NOT_FOUND")

    def _create_table(self, base, payload):
        if payload["name"] in self.fail_tables:
            return self._err(422, "INVALID_REQUEST_UNKNOWN", "table rejected")
        if any(t["name"] == payload["name"] for t in base["tables"]):
            return self._err(422, "DUPLICATE_TABLE_NAME")
        fields = [self._new_field(f) for f in payload["fields"]]
        table = {
            "id": self._id("tbl"),
            "name": payload["name"],
            "description": payload.get("description", ""),
            "primaryFieldId": fields[0]["id"],
            "fields": fields,
        }
        base["tables"].append(table)
        return 200, copy.deepcopy(table)

    def _create_field(self, base, table_id, payload):
        table = next((t for t in base["tables"] if t["id"] == table_id), None)
        if table is None:
            return self._err(404, "TABLE_NOT_FOUND")
        if payload["name"] in self.fail_fields:
            return self._err(422, "INVALID_FIELD_TYPE_OPTIONS_FOR_CREATE", "field rejected")
        if any(f["name"] == payload["name"] for f in table["fields"]):
            return self._err(422, "DUPLICATE_OR_EMPTY_FIELD_NAME")

        field = self._new_field(payload)
        if payload["type"] == "multipleRecordLinks":
            linked_id = payload.get("options", {}).get("linkedTableId")
            linked = next((t for t in base["tables"] if t["id"] == linked_id), None)
            if linked is None:
                return self._err(422, "INVALID_FIELD_TYPE_OPTIONS_FOR_CREATE", "unknown linkedTableId")
            field["options"]["isReversed"] = False
            if linked is not table:
                inverse = {
                    "id": self._id("fld"),
                    "name": table["name"],
                    "type": "multipleRecordLinks",
                    "options": {"linkedTableId": table["id"], "isReversed": True,
                                "inverseLinkFieldId": field["id"], "prefersSingleRecordLink": False},
                }
                field["options"]["inverseLinkFieldId"] = inverse["id"]
                linked["fields"].append(inverse)
        table["fields"].append(field)
        return 200, copy.deepcopy(field)

    def _create_records(self, base, table_id, payload):
        if not any(t["id"] == table_id for t in base["tables"]):
            return self._err(404, "TABLE_NOT_FOUND")
        created = [{"id": self._id("rec"), "fields": r["fields"]} for r in payload["records"]]
        base["records"].setdefault(table_id, []).extend(created)
        return 200, {"records": copy.deepcopy(created)}


@pytest.fixture
def fake_airtable():
    return FakeAirtable()


@pytest.fixture
def target_client(fake_airtable):
    return AirtableClient("patSTUDENT", fake_airtable, max_attempts=3, backoff_seconds=0)


# --- Seed fixture: one stored artifact ---
@pytest.fixture
def seed_schema(db_session, ab_schema):
    _clear_all(db_session)
    row = SchemaArtifact(
        name=ab_schema.name,
        source_base_id="appSOURCE00000000",
        exported_at=ab_schema.exported_at,
        table_count=ab_schema.table_count,
        payload=json.dumps(ab_schema.to_json_dict()),
    )
    db_session.add(row)
    db_session.commit()
    return row.schema_id


@pytest.fixture
def clean_db(db_session):
    _clear_all(db_session)
    return db_session
