"""Entity metadata lookup and field insertability rules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

from .exceptions import ApiError, SchemaFetchError
from .models import EntitySchema

if TYPE_CHECKING:
    from .models import FieldDescriptor
    from .protocols import OrgClient

logger: logging.Logger = logging.getLogger(__name__)

# Fields managed by the platform; never selected for insert
NON_INSERTABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "Id",
        "Owner",  # use OwnerId
        "CreatedDate",
        "CreatedById",
        "LastModifiedDate",
        "LastModifiedById",
        "SystemModstamp",
        "LastActivityDate",
        "LastViewedDate",
        "LastReferencedDate",
        "IsDeleted",
        "MasterRecordId",
        "PhotoUrl",
    }
)

# Person account fields surfaced on Account are read-only
READ_ONLY_SUFFIX: Final[str] = "__pc"


def is_insertable(field: FieldDescriptor) -> bool:
    """Check if a field should be selected when fetching records for insert."""
    if field.name in NON_INSERTABLE_FIELDS:
        return False
    if field.name.endswith(READ_ONLY_SUFFIX):
        return False
    return not (field.is_calculated or field.type == "formula")


class SchemaInspector:
    """Describes entity types through one org client, caching per instance.

    One inspector is created per transfer run, so the cache never outlives
    the run.
    """

    _client: OrgClient
    _cache: dict[str, EntitySchema]

    def __init__(self, client: OrgClient) -> None:
        self._client = client
        self._cache = {}

    def describe(self, entity_type: str) -> EntitySchema:
        """Return the schema of ``entity_type``.

        Raises:
            SchemaFetchError: If the org rejects the describe call
        """
        cached = self._cache.get(entity_type)
        if cached is not None:
            return cached

        try:
            payload = self._client.describe(entity_type)
        except ApiError as e:
            msg = f"Failed to describe {entity_type}: {e}"
            raise SchemaFetchError(msg) from e

        schema = EntitySchema.from_describe(payload)
        logger.debug(f"Described {entity_type}: {len(schema.fields)} fields")
        self._cache[entity_type] = schema
        return schema

    def describe_global(self) -> list[dict[str, Any]]:
        """Return the summaries of all entity types in the org."""
        try:
            return self._client.describe_global()
        except ApiError as e:
            msg = f"Failed to list entity types: {e}"
            raise SchemaFetchError(msg) from e
