import os, json, requests
from dotenv import load_dotenv
load_dotenv()
API = os.getenv("API_BASE_URL", "http://localhost:8000")
S = requests.Session(); S.headers.update({"Content-Type":"application/json"})

def healthz():   r=S.get(f"{API}/healthz",timeout=10); r.raise_for_status(); return r.json()
def schemas(**p):r=S.get(f"{API}/schemas",params=p,timeout=30); r.raise_for_status(); return r.json()
def schema(schema_id: int, table: str | None = None):
    params = {}
    if table:
        params["table"] = table
    r = S.get(f"{API}/schemas/{schema_id}", params=params, timeout=30)
    r.raise_for_status()
    return r.json()

def export_schema(base_id, api_key, name=None):
    body = {"base_id": base_id, "api_key": api_key, "name": name or None}
    r=S.post(f"{API}/schemas/export",json=body,timeout=120); r.raise_for_status(); return r.json()

def import_schema(doc): r=S.post(f"{API}/schemas",json=doc,timeout=30); r.raise_for_status(); return r.json()
def run(run_id: int):   r=S.get(f"{API}/runs/{run_id}",timeout=30); r.raise_for_status(); return r.json()

def install_stream(schema_id, base_id, api_key, table=None):
    """Yield progress events (dicts) as the server reports them."""
    body = {"schema_id": int(schema_id), "base_id": base_id, "api_key": api_key, "table": table or None}
    with S.post(f"{API}/install/stream", json=body, stream=True, timeout=(10, None)) as r:
        r.raise_for_status()
        for line in r.iter_lines(decode_unicode=True):
            if line:
                yield json.loads(line)
