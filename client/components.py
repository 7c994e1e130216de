# client/components.py
import streamlit as st
import pandas as pd

def show_table(rows, caption: str | None = None):
    """Render a list[dict] as a dataframe; otherwise show JSON."""
    if caption:
        st.caption(caption)
    if isinstance(rows, list):
        if rows and isinstance(rows[0], dict):
            st.dataframe(pd.DataFrame(rows))
        else:
            st.write(rows)
    else:
        st.write(rows)

def show_json(obj, caption: str | None = None):
    if caption:
        st.caption(caption)
    st.json(obj)

def show_item(item: dict):
    """One progress line, colored by outcome."""
    line = item.get("line") or f"{item.get('status')} {item.get('name')}"
    status = item.get("status")
    if status == "failed":
        st.error(line)
    elif status == "skipped":
        if item.get("error"):
            st.warning(line)
        else:
            st.info(line)
    else:
        st.write(line)