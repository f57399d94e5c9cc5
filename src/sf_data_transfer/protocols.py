"""Protocols defining the contract between the transfer engine and an org.

The transfer architecture separates concerns into three layers:

1. OrgClient: Talks to one org over its REST API (describe, query, create)
2. Engine components: Extractor, RelationshipResolver, BatchWriter, ...
3. TransferOrchestrator: Drives the per-entity pipelines and builds the report

This separation allows:
- Testing the engine against in-memory fake orgs
- Keeping wire-level request/response shapes inside the client
- Swapping the REST client for another transport without touching the engine
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .models import Connection, QueryResult, Record, SaveResult


class OrgClient(Protocol):
    """Protocol for a connection to a single org.

    Every method raises ApiError when the remote call fails. Implementations
    translate raw error payloads into ApiFailure values before raising, so
    nothing downstream has to inspect response shapes.

    Example implementations:
        - SalesforceRestClient: requests-based client for the REST API
        - FakeOrg (tests): in-memory org with scripted schemas and records
    """

    def identity(self) -> dict[str, Any]:
        """Perform a cheap authenticated call to verify the connection works."""
        ...

    def describe_global(self) -> list[dict[str, Any]]:
        """Return the summary of every entity type visible in the org.

        Each entry carries at least ``name``, ``queryable`` and ``createable``.
        """
        ...

    def describe(self, entity_type: str) -> dict[str, Any]:
        """Return the describe payload for one entity type (``name`` and ``fields``)."""
        ...

    def query(self, soql: str) -> QueryResult:
        """Run a query and return its first page of results."""
        ...

    def create(self, entity_type: str, records: list[Record]) -> list[SaveResult]:
        """Create records in one request.

        A single record uses the direct create endpoint; more than one uses the
        composite endpoint with partial success allowed. The returned list is
        aligned with ``records``. Per-record validation failures are returned
        as unsuccessful SaveResults, not raised.
        """
        ...


class ClientFactory(Protocol):
    """Builds an OrgClient for a resolved connection."""

    def __call__(self, connection: Connection) -> OrgClient: ...
