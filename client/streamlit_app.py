# client/streamlit_app.py
import os
import requests
import streamlit as st

st.set_page_config(page_title="Schema Installer", layout="wide")
st.title("🧱 Airtable Schema Installer")

st.markdown("""
This is the home page.

Use the **sidebar Pages** to open:
- **📤 Export** (instructor): Read a source base's schema with your token and store it. Shows per-table field counts and any warnings.
- **📥 Install** (student): Pick a stored schema and install it into your own empty base. Every table, field and instruction row is reported as it happens.
""")

with st.sidebar:
    st.header("Settings")
    api_url = os.getenv("API_BASE_URL", "http://localhost:8000")
    st.text_input("API Base URL (from env)", value=api_url, disabled=True)
    if st.button("Health check"):
        try:
            r = requests.get(f"{api_url}/healthz", timeout=5)
            st.success(r.json())
        except Exception as e:
            st.error(f"Health check failed: {e}")

st.info("Tip: set `API_BASE_URL` in `client/.env` or export it before running `streamlit run client/streamlit_app.py`.")
