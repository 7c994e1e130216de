# app/airtable/client.py
import logging
from typing import Any, Dict, List, Optional

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.errors import CreateCallFailed, RateLimited, RelayUnreachable, SourceFetchError
from app.settings import (
    AIRTABLE_API_URL,
    RATE_LIMIT_BACKOFF_MAX_SECONDS,
    RATE_LIMIT_BACKOFF_SECONDS,
    RATE_LIMIT_MAX_ATTEMPTS,
    RELAY_URL,
)
from .transport import DirectTransport, RelayTransport, Transport

log = logging.getLogger(__name__)


def _error_message(body: Any) -> str:
    """Airtable errors look like {"error": {"type", "message"}} or {"error": "NOT_FOUND"}."""
    if isinstance(body, dict):
        err = body.get("error", body)
        if isinstance(err, dict):
            parts = [str(err[k]) for k in ("type", "message") if err.get(k)]
            return ": ".join(parts) or str(err)
        return str(err)
    return str(body)


def _with_id(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict) or not body.get("id"):
        raise CreateCallFailed(200, f"create response carried no id: {str(body)[:200]}")
    return body


class AirtableClient:
    """
    Thin wrapper over the metadata and records endpoints used by the installer.
    Calls are made one at a time; a 429 is retried with exponential backoff
    and only then reported as CreateCallFailed.
    """

    def __init__(
        self,
        token: str,
        transport: Optional[Transport] = None,
        *,
        max_attempts: int = RATE_LIMIT_MAX_ATTEMPTS,
        backoff_seconds: float = RATE_LIMIT_BACKOFF_SECONDS,
        backoff_max_seconds: float = RATE_LIMIT_BACKOFF_MAX_SECONDS,
    ):
        self.token = token
        self.transport = transport or DirectTransport()
        self.max_attempts = max_attempts
        self._retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=backoff_seconds, max=backoff_max_seconds),
            retry=retry_if_exception_type(RateLimited),
            before_sleep=before_sleep_log(log, logging.WARNING),
            reraise=True,
        )

    # -----------------------------------------------------------------
    # Low level
    # -----------------------------------------------------------------
    def _send_once(self, method: str, url: str, payload: Optional[Any]) -> Any:
        status, body = self.transport.send(method, url, self.token, payload)
        if status == 429:
            raise RateLimited(f"{method} {url} rate limited")
        if status >= 400:
            raise CreateCallFailed(status, _error_message(body))
        return body

    def _call(self, method: str, url: str, payload: Optional[Any] = None) -> Any:
        try:
            return self._retrying(self._send_once, method, url, payload)
        except RateLimited as e:
            raise CreateCallFailed(429, f"rate limited after {self.max_attempts} attempts") from e
        except requests.Timeout as e:
            raise CreateCallFailed(0, f"request timed out: {e}") from e
        except requests.RequestException as e:
            raise CreateCallFailed(0, f"request failed: {e}") from e

    @staticmethod
    def meta_url(base_id: str, *parts: str) -> str:
        return "/".join([f"{AIRTABLE_API_URL}/v0/meta/bases/{base_id}/tables", *parts])

    # -----------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------
    def get_base_schema(self, base_id: str) -> Dict[str, Any]:
        return self._call("GET", self.meta_url(base_id))

    def create_table(self, base_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """payload: {name, description?, fields: [...]}; returns the created table model."""
        return _with_id(self._call("POST", self.meta_url(base_id), payload))

    def create_field(self, base_id: str, table_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return _with_id(self._call("POST", self.meta_url(base_id, table_id, "fields"), payload))

    def list_records(self, base_id: str, table_id: str) -> List[Dict[str, Any]]:
        """First page of records; enough to spot an instruction row in a freshly built table."""
        body = self._call("GET", f"{AIRTABLE_API_URL}/v0/{base_id}/{table_id}")
        return body.get("records", []) if isinstance(body, dict) else []

    def create_records(self, base_id: str, table_id: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        url = f"{AIRTABLE_API_URL}/v0/{base_id}/{table_id}"
        body = self._call("POST", url, {"records": [{"fields": r} for r in records]})
        return body.get("records", []) if isinstance(body, dict) else []


def fetch_base_schema(base_id: str, token: str, transport: Optional[Transport] = None) -> Dict[str, Any]:
    """Read the source schema; any failure is a SourceFetchError."""
    client = AirtableClient(token, transport)
    try:
        body = client.get_base_schema(base_id)
    except (CreateCallFailed, RelayUnreachable) as e:
        raise SourceFetchError(f"Could not read schema of base {base_id}: {e}") from e
    if not isinstance(body, dict) or not isinstance(body.get("tables"), list):
        raise SourceFetchError(f"Unexpected schema payload for base {base_id}")
    log.info("fetched schema for base %s: %d table(s)", base_id, len(body["tables"]))
    return body


def build_target_client(token: str) -> AirtableClient:
    """Client for the student's base: through the relay when one is configured."""
    transport = RelayTransport(RELAY_URL) if RELAY_URL else DirectTransport()
    return AirtableClient(token, transport)
