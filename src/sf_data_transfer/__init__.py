"""
Salesforce Data Transfer Tool

Transfers records of one or more object types between Salesforce orgs while
preserving lookups to parent records and tolerating partial failure.
"""

from __future__ import annotations

from .cli import main
from .error_report import stringify
from .exceptions import (
    ApiError,
    CredentialError,
    ExternalIdConfigurationError,
    QueryParseError,
    RecordWriteError,
    RelationshipLookupError,
    SchemaFetchError,
    TransferConnectionError,
    TransferError,
)
from .models import Connection, IdentifierMap, TransferConfig, TransferMode, TransferResult
from .orchestrator import TransferOrchestrator
from .rest_client import SalesforceRestClient
from .sanitizer import sanitize
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "Connection",
    "CredentialError",
    "ExternalIdConfigurationError",
    "IdentifierMap",
    "QueryParseError",
    "RecordWriteError",
    "RelationshipLookupError",
    "SalesforceRestClient",
    "SchemaFetchError",
    "TransferConfig",
    "TransferConnectionError",
    "TransferError",
    "TransferMode",
    "TransferOrchestrator",
    "TransferResult",
    "main",
    "sanitize",
    "setup_logging",
    "stringify",
]
