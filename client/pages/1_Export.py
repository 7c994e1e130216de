# client/pages/1_Export.py
import json
import requests
import streamlit as st
import api as API
from components import show_table, show_json

st.title("📤 Export a schema")

c1, c2 = st.columns(2)
with c1:
    base_id = st.text_input("Source base ID", placeholder="appXXXXXXXXXXXXXX")
    name = st.text_input("Schema name (shown to students)", placeholder="Course CRM")
with c2:
    api_key = st.text_input("Personal access token", type="password", placeholder="patXXXX...")
    st.caption("Needs `schema.bases:read` on the source base. It is not stored.")

if st.button("Export", disabled=not (base_id and api_key)):
    try:
        res = API.export_schema(base_id.strip(), api_key.strip(), name.strip() or None)
        st.success(f"Stored schema #{res['schema_id']}: {res['name']} ({res['table_count']} tables)")
        show_table(res["tables"], caption="Per-table summary")
        for w in res.get("warnings") or []:
            st.warning(w)
    except requests.HTTPError as e:
        msg = e.response.text[:400] if e.response is not None else str(e)
        st.error(f"Export failed: {msg}")
    except Exception as e:
        st.error(e)

st.divider()

# ------------------------
# Import / browse stored schemas
# ------------------------
up = st.file_uploader("Or import a normalized schema JSON", type=["json"])
if up and st.button("Import uploaded schema"):
    try:
        res = API.import_schema(json.load(up))
        st.success(f"Stored schema #{res['schema_id']}: {res['name']}")
    except Exception as e:
        st.error(e)

try:
    stored = API.schemas()
    show_table(stored, caption="Stored schemas")
    if stored:
        pick = st.selectbox("Preview", [s["schema_id"] for s in stored])
        if st.button("Show document"):
            show_json(API.schema(pick))
except Exception as e:
    st.error(f"Could not list schemas: {e}")
