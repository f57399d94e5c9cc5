"""
Custom exception classes for the Salesforce data transfer tool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ApiFailure


class TransferError(Exception):
    """Base exception for transfer errors."""


class TransferConnectionError(TransferError):
    """Raised when the source or target org cannot be reached. Aborts the run."""


class CredentialError(TransferError):
    """Raised when no valid, non-expired access token exists for an org."""


class ApiError(TransferError):
    """Raised by the REST client when a request fails."""

    status: int | None
    failures: list[ApiFailure]

    def __init__(self, message: str, status: int | None = None, failures: list[ApiFailure] | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.failures = failures or []


class SchemaFetchError(TransferError):
    """Raised when an entity type cannot be described."""


class QueryParseError(TransferError):
    """Raised when the entity type cannot be derived from a query."""


class ExternalIdConfigurationError(TransferError):
    """Raised when upsert mode has no external id field for a parent entity type."""


class RecordWriteError(TransferError):
    """Raised when a single record cannot be written to the target."""


class RelationshipLookupError(TransferError):
    """Raised when parent records cannot be looked up for id remapping."""
