"""Data models exchanged between the REST client and the transfer engine.

These models are the normalized form of what the remote API returns. Raw
response payloads never leave ``rest_client``; everything downstream works
with the dataclasses defined here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# A record as returned by a query: field name -> value, source id under "Id".
Record = dict[str, Any]


@dataclass(frozen=True)
class Connection:
    """Endpoint and bearer credential for one org.

    Owned by the orchestrator for the duration of a run; never persisted.
    """

    instance_url: str
    access_token: str = field(repr=False)
    alias: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "instance_url", self.instance_url.rstrip("/"))


@dataclass(frozen=True)
class FieldDescriptor:
    """A single field of an entity type, as described by the source org."""

    name: str
    type: str
    creatable: bool = False
    updateable: bool = False
    reference_targets: tuple[str, ...] = ()
    relationship_name: str | None = None
    is_external_id: bool = False
    is_calculated: bool = False
    is_auto_number: bool = False

    @property
    def is_reference(self) -> bool:
        return self.type == "reference" and len(self.reference_targets) > 0

    @property
    def is_writable(self) -> bool:
        return self.creatable or self.updateable

    @classmethod
    def from_describe(cls, data: dict[str, Any]) -> FieldDescriptor:
        """Build a descriptor from one entry of a describe response's ``fields`` list."""
        return cls(
            name=data["name"],
            type=data.get("type", ""),
            creatable=bool(data.get("createable", False)),
            updateable=bool(data.get("updateable", False)),
            reference_targets=tuple(data.get("referenceTo") or ()),
            relationship_name=data.get("relationshipName"),
            is_external_id=bool(data.get("externalId", False)),
            is_calculated=bool(data.get("calculated", False)),
            is_auto_number=bool(data.get("autoNumber", False)),
        )


@dataclass(frozen=True)
class EntitySchema:
    """Field metadata for one entity type. Field order follows the describe response."""

    name: str
    fields: tuple[FieldDescriptor, ...]

    @classmethod
    def from_describe(cls, data: dict[str, Any]) -> EntitySchema:
        return cls(
            name=data["name"],
            fields=tuple(FieldDescriptor.from_describe(f) for f in data.get("fields", [])),
        )

    def field(self, name: str) -> FieldDescriptor | None:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None

    @property
    def reference_fields(self) -> list[FieldDescriptor]:
        return [f for f in self.fields if f.is_reference]

    def creatable_payload(self, record: Record) -> Record:
        """Return a copy of ``record`` holding only keys that name creatable fields.

        Relationship projections (nested objects such as ``Account.Id``) and
        read-only fields selected by a custom query are dropped here.
        """
        creatable = {f.name for f in self.fields if f.creatable}
        return {key: value for key, value in record.items() if key in creatable}


class TransferMode(StrEnum):
    """How parent records referenced by transferred records are resolved."""

    INSERT = "insert"
    UPSERT = "upsert"


@dataclass
class TransferConfig:
    """User-chosen settings for one transfer run.

    Exactly one of ``entity_types`` and ``custom_query`` must be set.
    ``query_entity_type`` names the entity a custom query reads; when omitted
    it is derived from the query's FROM clause.
    """

    entity_types: list[str] | None = None
    custom_query: str | None = None
    include_relationships: bool = False
    batch_size: int = 200
    record_limits: dict[str, int] = field(default_factory=dict)
    external_id_mapping: dict[str, str] = field(default_factory=dict)
    mode: TransferMode = TransferMode.INSERT
    query_entity_type: str | None = None

    def __post_init__(self) -> None:
        self.mode = TransferMode(self.mode)

        has_query = self.custom_query is not None
        if has_query == (self.entity_types is not None):
            msg = "Exactly one of entity_types or custom_query must be set"
            raise ValueError(msg)
        if self.custom_query is not None and not self.custom_query.strip():
            msg = "custom_query must not be blank"
            raise ValueError(msg)
        if self.entity_types is not None and not self.entity_types:
            msg = "entity_types must name at least one entity type"
            raise ValueError(msg)
        if self.batch_size < 1:
            msg = f"batch_size must be a positive integer, got {self.batch_size}"
            raise ValueError(msg)
        for entity_type, limit in self.record_limits.items():
            if limit < 1:
                msg = f"Record limit for {entity_type} must be a positive integer, got {limit}"
                raise ValueError(msg)


@dataclass
class IdentifierMap:
    """Source id -> target id, kept separately for each parent entity type."""

    _by_entity: dict[str, dict[str, str]] = field(default_factory=dict)

    def add(self, entity_type: str, source_id: str, target_id: str) -> None:
        self._by_entity.setdefault(entity_type, {})[source_id] = target_id

    def get(self, entity_type: str, source_id: str) -> str | None:
        return self._by_entity.get(entity_type, {}).get(source_id)

    def for_entity(self, entity_type: str) -> dict[str, str]:
        return dict(self._by_entity.get(entity_type, {}))

    @property
    def entity_types(self) -> list[str]:
        return list(self._by_entity)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._by_entity

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._by_entity.values())


@dataclass
class TransferResult:
    """Accumulated outcome of a transfer run.

    ``success`` means "no errors were recorded", not "every requested record
    was transferred".
    """

    success: bool = False
    records_transferred: int = 0
    errors: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def finish(self) -> TransferResult:
        self.success = not self.errors
        return self


@dataclass
class QueryResult:
    """One page of query results."""

    records: list[Record]
    total_available: int
    is_complete: bool
    next_records_url: str | None = None


@dataclass(frozen=True)
class ApiFailure:
    """A single failure reported by the remote API, normalized at the client boundary."""

    message: str
    status_code: str | None = None
    fields: tuple[str, ...] = ()


@dataclass
class SaveResult:
    """Per-record outcome of a create call."""

    id: str | None
    success: bool
    errors: list[ApiFailure] = field(default_factory=list)


@dataclass
class WriteOutcome:
    """Outcome of one write call.

    ``results`` is aligned with the written batch. When the whole request
    failed, ``results`` is empty and ``request_error`` holds the reason.
    """

    results: list[SaveResult] = field(default_factory=list)
    request_error: str | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failures(self) -> list[SaveResult]:
        return [r for r in self.results if not r.success]
