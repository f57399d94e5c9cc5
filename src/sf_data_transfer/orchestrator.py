"""Transfer orchestrator that coordinates the source and target orgs.

The TransferOrchestrator is the central coordinator for a transfer. It:
1. Verifies both connections before anything is read or written
2. Runs one pipeline per entity type (or one for a custom query)
3. Collects every failure into a single TransferResult

Transfer Flow
-------------
Phase 1: Connections
    - Build a client per org and call its identity endpoint
    - Failure here is fatal: TransferConnectionError aborts the run

Phase 2: Per entity type, strictly in the requested order
    a. Describe the entity type (schema is cached for the run)
    b. Extract records from the source (first page only)
    c. For each batch of ``batch_size`` records:
       - Sanitize: drop system-managed fields
       - Resolve parents (if relationships are included) and remap
         reference fields through the IdentifierMap
       - Filter the payload to creatable fields
       - Write the batch with one create call

    Entity types and batches are processed sequentially. This keeps the
    write order stable and avoids rate-limit contention with the org.

Pipeline per batch
------------------

    source records
           │
           ▼
    ┌──────────────────┐
    │ sanitize()       │ ──► records without system fields
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ Relationship     │ ──► IdentifierMap: {parent type: {source id: target id}}
    │ Resolver         │     (parents created or matched in target)
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ BatchWriter      │ ──► per-record SaveResults
    └──────────────────┘

Error Handling
--------------
- Connection errors: raised, the run is aborted
- Schema, query and parse errors: recorded, the entity type is skipped
- Parent resolution errors: recorded, affected ids stay unresolved
- Per-record write errors: recorded, the batch and run continue

A run that gets past Phase 1 always returns a TransferResult. ``success``
is true only when no error was recorded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

from .error_report import stringify
from .exceptions import ApiError, TransferConnectionError, TransferError
from .extractor import Extractor, parse_query_entity
from .models import TransferResult
from .relationships import RelationshipResolver, remap_references
from .rest_client import create_client
from .sanitizer import sanitize
from .schema import SchemaInspector
from .writer import BatchWriter, chunks

if TYPE_CHECKING:
    from .models import Connection, EntitySchema, QueryResult, Record, TransferConfig
    from .protocols import ClientFactory, OrgClient

logger: logging.Logger = logging.getLogger(__name__)

# Name suffixes of internal, history, audit and change-event entity types
EXCLUDED_SUFFIXES: Final[tuple[str, ...]] = (
    "__History",
    "__Share",
    "__Feed",
    "__Tag",
    "__c2g__",
    "__ChangeEvent",
    "__e",
    "__mdt",
    "__x",
    "__hd",
)
EXCLUDED_STANDARD_SUFFIXES: Final[tuple[str, ...]] = ("History", "Share", "Feed", "ChangeEvent")

# Suffixes that mark a custom entity type, not a namespace
_TYPE_SUFFIXES: Final[frozenset[str]] = frozenset(
    {"c", "e", "mdt", "x", "b", "kav", "hd", "Share", "History", "Feed", "Tag", "ChangeEvent"}
)


class TransferState(StrEnum):
    UNINITIALIZED = "uninitialized"
    CONNECTIONS_VERIFIED = "connections_verified"
    EXTRACTING = "extracting"
    RESOLVING = "resolving"
    WRITING = "writing"
    COMPLETED = "completed"


def entity_namespace(name: str) -> str | None:
    """Return the managed package namespace of an entity type, if any.

    ``ns__Invoice__c`` -> ``ns``; ``Invoice__c`` and ``Account`` -> None.
    """
    if name.startswith("__"):
        return None
    parts = name.split("__")
    if len(parts) >= 3:
        return parts[0]
    if len(parts) == 2 and parts[1] not in _TYPE_SUFFIXES:
        return parts[0]
    return None


def is_transferable_entity(summary: dict[str, Any]) -> bool:
    """Check if a describe-global entry names an entity type worth transferring."""
    name: str = summary.get("name", "")
    if not name or not summary.get("queryable", False):
        return False
    if name.endswith(EXCLUDED_SUFFIXES):
        return False
    if "__" in name:
        return True
    return bool(summary.get("createable", False)) and not name.endswith(EXCLUDED_STANDARD_SUFFIXES)


def _entity_sort_key(name: str) -> tuple[bool, str, str]:
    namespace = entity_namespace(name)
    return (namespace is not None, (namespace or "").lower(), name.lower())


@dataclass
class TransferContext:
    """Everything one transfer run works with.

    Created fresh for every call to ``transfer`` so repeated runs never share
    schema caches or identifier maps.
    """

    source: OrgClient
    target: OrgClient
    config: TransferConfig
    inspector: SchemaInspector
    extractor: Extractor
    writer: BatchWriter
    resolver: RelationshipResolver

    @classmethod
    def create(cls, source: OrgClient, target: OrgClient, config: TransferConfig) -> TransferContext:
        inspector = SchemaInspector(source)
        writer = BatchWriter(target)
        return cls(
            source=source,
            target=target,
            config=config,
            inspector=inspector,
            extractor=Extractor(source),
            writer=writer,
            resolver=RelationshipResolver(source, target, inspector, writer, config),
        )


class TransferOrchestrator:
    """Transfers records between two orgs.

    Usage:
        orchestrator = TransferOrchestrator()
        orchestrator.initialize(source_connection, target_connection)
        result = orchestrator.transfer(TransferConfig(entity_types=["Account", "Contact"]))
    """

    _client_factory: ClientFactory
    _source: OrgClient | None
    _target: OrgClient | None
    _state: TransferState

    def __init__(self, client_factory: ClientFactory = create_client) -> None:
        self._client_factory = client_factory
        self._source = None
        self._target = None
        self._state = TransferState.UNINITIALIZED

    @property
    def state(self) -> TransferState:
        return self._state

    def initialize(self, source: Connection, target: Connection) -> None:
        """Connect to both orgs and verify access.

        Raises:
            TransferConnectionError: If either org cannot be reached
        """
        if not source.access_token or not target.access_token:
            msg = "Access tokens are required for both source and target orgs"
            raise TransferConnectionError(msg)

        source_client = self._client_factory(source)
        target_client = self._client_factory(target)
        try:
            source_client.identity()
            logger.info(f"Source org access validated: {source.alias or source.instance_url}")
            target_client.identity()
            logger.info(f"Target org access validated: {target.alias or target.instance_url}")
        except ApiError as e:
            msg = f"Failed to initialize Salesforce connections: {e}"
            raise TransferConnectionError(msg) from e

        self._source = source_client
        self._target = target_client
        self._state = TransferState.CONNECTIONS_VERIFIED

    def _require_source(self) -> OrgClient:
        if self._source is None:
            msg = "Source connection not initialized"
            raise TransferError(msg)
        return self._source

    def transfer(self, config: TransferConfig) -> TransferResult:
        """Run a transfer and return its result.

        Raises:
            TransferError: If ``initialize`` has not succeeded
        """
        if self._source is None or self._target is None:
            msg = "Connections not initialized"
            raise TransferError(msg)

        context = TransferContext.create(self._source, self._target, config)
        result = TransferResult()

        if config.custom_query is not None:
            self._transfer_by_query(context, config.custom_query, result)
        else:
            for entity_type in config.entity_types or []:
                self._transfer_entity(context, entity_type, result)

        self._state = TransferState.COMPLETED
        result.finish()
        logger.info(
            f"Transfer finished: {result.records_transferred} records transferred, {len(result.errors)} errors"
        )
        return result

    def _transfer_entity(self, context: TransferContext, entity_type: str, result: TransferResult) -> None:
        logger.info(f"Transferring {entity_type}")
        self._state = TransferState.EXTRACTING
        try:
            schema = context.inspector.describe(entity_type)
            records = context.extractor.extract_entity(
                schema,
                include_relationships=context.config.include_relationships,
                limit=context.config.record_limits.get(entity_type),
            )
        except TransferError as e:
            result.add_error(f"Error transferring {entity_type}: {stringify(e)}")
            return

        self._transfer_records(context, entity_type, schema, records, result)

    def _transfer_by_query(self, context: TransferContext, query: str, result: TransferResult) -> None:
        self._state = TransferState.EXTRACTING
        try:
            entity_type = context.config.query_entity_type or parse_query_entity(query)
        except TransferError as e:
            result.add_error(f"Transfer failed: {stringify(e)}")
            return

        logger.info(f"Transferring {entity_type} by custom query")
        try:
            records = context.extractor.extract_query(query, entity_type)
            if not records:
                return
            schema = context.inspector.describe(entity_type)
        except TransferError as e:
            result.add_error(f"Error transferring by query for {entity_type}: {stringify(e)}")
            return

        self._transfer_records(context, entity_type, schema, records, result)

    def _transfer_records(
        self,
        context: TransferContext,
        entity_type: str,
        schema: EntitySchema,
        records: list[Record],
        result: TransferResult,
    ) -> None:
        for batch in chunks(records, context.config.batch_size):
            try:
                self._transfer_batch(context, entity_type, schema, batch, result)
            except TransferError as e:
                result.add_error(f"Error transferring {entity_type}: {stringify(e)}")

    def _transfer_batch(
        self,
        context: TransferContext,
        entity_type: str,
        schema: EntitySchema,
        batch: list[Record],
        result: TransferResult,
    ) -> None:
        cleaned = [sanitize(record) for record in batch]

        if context.config.include_relationships:
            self._state = TransferState.RESOLVING
            id_map = context.resolver.resolve(entity_type, schema, batch, result)
            cleaned = [
                remap_references(record, original, schema, id_map)
                for record, original in zip(cleaned, batch, strict=True)
            ]

        self._state = TransferState.WRITING
        payload = [schema.creatable_payload(record) for record in cleaned]
        outcome = context.writer.write(entity_type, payload)

        if outcome.request_error is not None:
            result.add_error(f"{entity_type}: batch of {len(batch)} records failed: {outcome.request_error}")
            return

        result.records_transferred += outcome.succeeded
        for failure in outcome.failures:
            result.add_error(f"{entity_type}: {stringify(failure.errors) or 'Unknown error'}")

    def list_entity_types(self) -> list[str]:
        """Return the transferable entity types of the source org.

        Standard (un-namespaced) types come first, then managed package types
        by namespace and name.
        """
        summaries = SchemaInspector(self._require_source()).describe_global()
        names = [s["name"] for s in summaries if is_transferable_entity(s)]
        return sorted(names, key=_entity_sort_key)

    def run_query(self, query: str) -> QueryResult:
        """Run a read-only query against the source org (first page only).

        Raises:
            TransferError: If the query fails
        """
        try:
            return self._require_source().query(query)
        except ApiError as e:
            msg = f"Failed to execute query: {e}"
            raise TransferError(msg) from e

    def analyze_relationships(self, entity_types: list[str]) -> dict[str, list[str]]:
        """Map each entity type to the types in ``entity_types`` it references.

        Raises:
            SchemaFetchError: If an entity type cannot be described
        """
        inspector = SchemaInspector(self._require_source())
        wanted = set(entity_types)
        relationships: dict[str, list[str]] = {}
        for entity_type in entity_types:
            schema = inspector.describe(entity_type)
            related = [f.reference_targets[0] for f in schema.reference_fields if f.reference_targets[0] in wanted]
            if related:
                relationships[entity_type] = list(dict.fromkeys(related))
        return relationships
