from .client import AirtableClient, build_target_client, fetch_base_schema
from .transport import DirectTransport, RelayTransport, Transport

__all__ = [
    "AirtableClient",
    "build_target_client",
    "fetch_base_schema",
    "DirectTransport",
    "RelayTransport",
    "Transport",
]
