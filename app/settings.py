# app/settings.py
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(PROJECT_ROOT / ".env")

# Upstream API. The relay refuses to forward anywhere else.
AIRTABLE_API_URL = "https://api.airtable.com"

# When set, target-side calls go through the relay instead of straight to Airtable.
RELAY_URL = os.getenv("RELAY_URL") or None

# Comma-separated origins the relay accepts; "*" allows any (classroom default).
RELAY_ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("RELAY_ALLOWED_ORIGINS", "*").split(",") if o.strip()
]

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{PROJECT_ROOT / 'schema_installer.sqlite3'}")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# Airtable allows 5 requests/sec per base and asks clients to back off on 429.
RATE_LIMIT_MAX_ATTEMPTS = int(os.getenv("RATE_LIMIT_MAX_ATTEMPTS", "5"))
RATE_LIMIT_BACKOFF_SECONDS = float(os.getenv("RATE_LIMIT_BACKOFF_SECONDS", "1"))
RATE_LIMIT_BACKOFF_MAX_SECONDS = float(os.getenv("RATE_LIMIT_BACKOFF_MAX_SECONDS", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Field descriptions are capped by the API.
FIELD_DESCRIPTION_LIMIT = 20000

# Primary-field value of the per-table instruction record.
INSTRUCTION_ROW_MARKER = "⚠️ SETUP INSTRUCTIONS (delete this row when done)"
