"""
Error taxonomy shared by the repositories, services and dashboards.

HTTP status mapping lives in app.main.
"""

from app.db.helpers import DatabaseError
from app.models.domain.analytics import BatchResult


class StoreUnavailable(DatabaseError):
    """The record store could not be reached or rejected the query."""


class Unauthenticated(Exception):
    """A create was attempted without an actor identity."""

    def __init__(self, message: str = "User is not authenticated"):
        super().__init__(message)


class RecordNotFound(Exception):
    """Update/delete targeted an id the store does not know."""

    def __init__(self, domain: str, record_id: str):
        super().__init__(f"{domain} record {record_id} not found")
        self.domain = domain
        self.record_id = record_id


class PartialBatchFailure(Exception):
    """Some items of a batch failed; the succeeded ones stay committed."""

    def __init__(self, result: BatchResult):
        failed = ", ".join(result.failed_ids)
        super().__init__(f"{len(result.failures)} batch item(s) failed: {failed}")
        self.result = result


class NothingToExport(Exception):
    """Report export was requested for an empty record set."""
