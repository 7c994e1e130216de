# client/pages/2_Install.py
import requests
import streamlit as st
import api as API
from components import show_item, show_table

st.title("📥 Install into your base")

try:
    stored = API.schemas()
except Exception as e:
    st.error(f"Could not list schemas: {e}")
    st.stop()

if not stored:
    st.info("No schemas yet. Ask your instructor to export one.")
    st.stop()

labels = {f"#{s['schema_id']} {s['name']} ({s['table_count']} tables)": s["schema_id"] for s in stored}
schema_id = labels[st.selectbox("Schema", list(labels))]
tables = [t["name"] for t in API.schema(schema_id)["tables"]]

c1, c2 = st.columns(2)
with c1:
    base_id = st.text_input("Your base ID", placeholder="appXXXXXXXXXXXXXX")
    only = st.selectbox("Tables", ["All tables"] + tables)
with c2:
    api_key = st.text_input("Your personal access token", type="password")
    st.caption("Needs `schema.bases:write` and `data.records:write` on your base.")

if st.button("Install", disabled=not (base_id and api_key)):
    table = None if only == "All tables" else only
    status = st.empty()
    summary = None
    try:
        for event in API.install_stream(schema_id, base_id.strip(), api_key.strip(), table):
            if event["type"] == "state":
                status.caption(f"Step: {event['state'].replace('_', ' ')}")
            elif event["type"] == "item":
                show_item(event["item"])
            elif event["type"] == "summary":
                summary = event["summary"]
            elif event["type"] == "run":
                st.session_state.last_run = event["run_id"]
    except requests.HTTPError as e:
        msg = e.response.text[:400] if e.response is not None else str(e)
        st.error(f"Install failed: {msg}")
    except Exception as e:
        st.error(e)

    if summary:
        if summary["ok"]:
            st.success(f"Done: {summary['created']} created, {summary['skipped']} skipped.")
        elif summary["fatal_error"]:
            st.error(f"Stopped: {summary['fatal_error']}. Run the install again to pick up where it left off.")
        else:
            st.warning(f"Finished with {summary['failed']} failure(s). Run the install again into the "
                       "same base: what already exists is kept and only the missing items are created.")
        st.caption("Fields marked with ⚠️ need manual setup: follow the instruction row in each table, then delete it.")

if st.session_state.get("last_run"):
    with st.expander("Last run details"):
        run = API.run(st.session_state.last_run)
        show_table(run["result"]["items"]["failed"] if run.get("result") else [], caption="Failed items")
