from fastapi import FastAPI

from .db import engine, Base
from . import models  # noqa: F401  (register tables on Base.metadata)
from .routers.schemas import router as schemas_router
from .routers.install import router as install_router
from .routers.relay import router as relay_router
from app.setup_logging import setup_logging
from app.settings import RELAY_URL

# --------------------------------------------------------------------
# App bootstrap
# --------------------------------------------------------------------
setup_logging() # Init Logging

# Create database tables if they don’t exist.
Base.metadata.create_all(bind=engine)

# Create the FastAPI app instance
app = FastAPI(title="Airtable Schema Installer")

# --------------------------------------------------------------------
# Routes
# --------------------------------------------------------------------
@app.get("/healthz")
def health():
    """
    Simple health probe for monitoring.
    Returns:
      - ok: static True if the app is alive
      - relay: whether target calls go through a relay
    """
    return {
        "ok": True,
        "service": "schema-installer",
        "version": 1,
        "relay": bool(RELAY_URL),
    }

# Register API routers:
app.include_router(schemas_router)
app.include_router(install_router)
app.include_router(relay_router)
