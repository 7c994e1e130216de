import asyncio
import logging
from typing import Dict, Optional

import requests
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from app.settings import AIRTABLE_API_URL, HTTP_TIMEOUT_SECONDS, RELAY_ALLOWED_ORIGINS

log = logging.getLogger(__name__)

# --------------------------------------------------------------------
# Router setup
# --------------------------------------------------------------------
router = APIRouter(prefix="", tags=["relay"])

# Only URLs under this prefix are ever forwarded.
UPSTREAM_PREFIX = f"{AIRTABLE_API_URL}/"
ALLOW_HEADERS = "Content-Type, Authorization, X-Airtable-Target-Url, X-Airtable-Method"
BODY_METHODS = {"POST", "PATCH", "PUT"}


def _origin_allowed(origin: str) -> bool:
    if "*" in RELAY_ALLOWED_ORIGINS:
        return True
    return origin in RELAY_ALLOWED_ORIGINS


def _cors_headers(origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
    }


def _error(msg: str, status: int, origin: str = "*") -> JSONResponse:
    return JSONResponse({"error": msg}, status_code=status,
                        headers={"Access-Control-Allow-Origin": origin or "*"})


def _forward(method: str, url: str, headers: Dict[str, str], body: Optional[bytes]) -> requests.Response:
    """The only place the relay talks to the upstream API."""
    return requests.request(method, url, headers=headers, data=body, timeout=HTTP_TIMEOUT_SECONDS)


@router.options("/relay")
def relay_preflight(request: Request):
    """CORS preflight: 204 with permissive headers, 403 for origins not on the allowlist."""
    origin = request.headers.get("origin", "")
    if not _origin_allowed(origin):
        return Response(status_code=403)
    headers = _cors_headers(origin)
    headers["Access-Control-Max-Age"] = "86400"
    return Response(status_code=204, headers=headers)


@router.api_route("/relay", methods=["GET", "PUT", "PATCH", "DELETE"])
def relay_wrong_method():
    return _error("Method not allowed. Use POST.", 405)


@router.post("/relay")
async def relay(request: Request):
    """
    Stateless pass-through to the Airtable API for browser clients.

    Headers:
      X-Airtable-Target-Url  full upstream URL, must start with https://api.airtable.com/
      X-Airtable-Method      upstream method (default POST)
      Authorization          forwarded verbatim, never logged or stored

    Returns the upstream status and body unchanged, plus CORS headers.
    """
    origin = request.headers.get("origin", "")
    if not _origin_allowed(origin):
        return _error("Origin not allowed", 403)

    target_url = request.headers.get("x-airtable-target-url") or ""
    method = (request.headers.get("x-airtable-method") or "POST").upper()
    if not target_url.startswith(UPSTREAM_PREFIX):
        log.warning("relay rejected target url from origin=%r", origin)
        return _error(
            f"Invalid or missing X-Airtable-Target-Url. Must start with {UPSTREAM_PREFIX}", 400, origin
        )

    fwd_headers = {"Content-Type": "application/json"}
    auth = request.headers.get("authorization")
    if auth:
        fwd_headers["Authorization"] = auth
    body = await request.body() if method in BODY_METHODS else None

    try:
        upstream = await asyncio.to_thread(_forward, method, target_url, fwd_headers, body)
    except requests.RequestException as e:
        log.warning("relay upstream call failed: %s %s: %s", method, target_url, e)
        return _error(f"Proxy fetch failed: {e}", 502, origin)

    headers = _cors_headers(origin)
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type="application/json",
        headers=headers,
    )
