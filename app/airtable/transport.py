# app/airtable/transport.py
import json
import logging
from typing import Any, Optional, Protocol, Tuple

import requests

from app.errors import RelayUnreachable
from app.settings import AIRTABLE_API_URL, HTTP_TIMEOUT_SECONDS

log = logging.getLogger(__name__)


class Transport(Protocol):
    def send(self, method: str, url: str, token: str, payload: Optional[Any] = None) -> Tuple[int, Any]:
        """Perform one HTTP call against an Airtable URL. Returns (status, decoded body)."""
        ...


def _decode(r: requests.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return {"error": r.text[:500]}


class DirectTransport:
    """Calls api.airtable.com straight from this process."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT_SECONDS):
        self.session = session or requests.Session()
        self.timeout = timeout

    def send(self, method, url, token, payload=None):
        headers = {"Authorization": f"Bearer {token}"}
        try:
            r = self.session.request(method, url, headers=headers, json=payload, timeout=self.timeout)
        except requests.ConnectionError as e:
            raise RelayUnreachable(f"Could not reach {AIRTABLE_API_URL}: {e}") from e
        return r.status_code, _decode(r)


class RelayTransport:
    """
    Sends every call as a POST to the relay, naming the real URL and method
    in headers. The relay forwards Authorization and the body verbatim.
    """

    def __init__(self, relay_url: str, session: Optional[requests.Session] = None,
                 timeout: float = HTTP_TIMEOUT_SECONDS):
        self.relay_url = relay_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def send(self, method, url, token, payload=None):
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-Airtable-Target-Url": url,
            "X-Airtable-Method": method.upper(),
        }
        body = json.dumps(payload) if payload is not None else None
        try:
            r = self.session.post(self.relay_url, headers=headers, data=body, timeout=self.timeout)
        except requests.ConnectionError as e:
            raise RelayUnreachable(f"Could not reach relay {self.relay_url}: {e}") from e
        return r.status_code, _decode(r)
