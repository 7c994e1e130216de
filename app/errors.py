# app/errors.py
"""
Error taxonomy for exporting and installing schemas.

Only SourceFetchError (export) and RelayUnreachable (install) end a step.
Everything else is recorded against a single table, field or record and
the run moves on.
"""


class SchemaCopyError(Exception):
    """Base class for all schema export/install errors."""


class SourceFetchError(SchemaCopyError):
    """Reading the source base's schema failed (network, auth, bad payload)."""


class UnresolvedDependency(SchemaCopyError):
    """A link or manual field points at a table/field missing from the schema."""


class CreateCallFailed(SchemaCopyError):
    """The target API rejected a single create call."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Airtable API error {status}: {message}")
        self.status = status
        self.message = message


class RateLimited(SchemaCopyError):
    """HTTP 429 from the target API. Retried before becoming CreateCallFailed."""


class SkippedDueToDependencyFailure(SchemaCopyError):
    """The table an item depends on could not be created."""


class RelayUnreachable(SchemaCopyError):
    """The relay (or the API itself, when called directly) could not be reached."""
