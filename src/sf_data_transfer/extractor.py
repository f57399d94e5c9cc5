"""Reading records from the source org."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Final

from .exceptions import QueryParseError
from .schema import is_insertable

if TYPE_CHECKING:
    from .models import EntitySchema, QueryResult, Record
    from .protocols import OrgClient

logger: logging.Logger = logging.getLogger(__name__)

_FROM_ENTITY: Final[re.Pattern[str]] = re.compile(r"\bFROM\s+([A-Za-z0-9_]+)\b", re.IGNORECASE)


def parse_query_entity(query: str) -> str:
    """Return the entity type a query reads from.

    Best-effort: takes the first identifier after a FROM keyword, so
    sub-selects in the field list are not understood.

    Raises:
        QueryParseError: If no FROM clause with an identifier is found
    """
    match = _FROM_ENTITY.search(query)
    if not match:
        msg = f"Unable to determine object type from SOQL query: {query!r}"
        raise QueryParseError(msg)
    return match.group(1)


def build_entity_query(schema: EntitySchema, *, include_relationships: bool = False, limit: int | None = None) -> str:
    """Build the query selecting every writable, insertable field of an entity type.

    With ``include_relationships`` the parent of each reference field is
    projected as ``<relationshipName>.Id`` for inspection only; the projection
    is never written back.
    """
    columns = ["Id"]
    columns.extend(f.name for f in schema.fields if f.is_writable and is_insertable(f) and f.name not in columns)

    if include_relationships:
        columns.extend(
            f"{f.relationship_name}.Id"
            for f in schema.reference_fields
            if f.relationship_name and f.is_writable and is_insertable(f)
        )

    query = f"SELECT {', '.join(columns)} FROM {schema.name}"
    if limit:
        query += f" LIMIT {limit}"
    return query


class Extractor:
    """Issues read queries against the source org.

    Only the first page of results is returned. Incomplete results are logged
    and passed on as they are.
    """

    _client: OrgClient

    def __init__(self, client: OrgClient) -> None:
        self._client = client

    def _run(self, query: str) -> list[Record]:
        result: QueryResult = self._client.query(query)
        if not result.is_complete:
            logger.warning(
                f"Query returned {len(result.records)} of {result.total_available} records; "
                "only the first page is transferred"
            )
        return list(result.records)

    def extract_entity(
        self,
        schema: EntitySchema,
        *,
        include_relationships: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        """Read all writable fields of an entity type, up to ``limit`` records.

        Raises:
            ApiError: If the source rejects the query
        """
        query = build_entity_query(schema, include_relationships=include_relationships, limit=limit)
        records = self._run(query)
        logger.info(f"Extracted {len(records)} {schema.name} records")
        return records

    def extract_query(self, query: str, entity_type: str | None = None) -> list[Record]:
        """Read records with a user-supplied query, used verbatim.

        Args:
            query: The SOQL query to run against the source
            entity_type: Entity type the query reads; derived from the query when omitted

        Raises:
            QueryParseError: If the entity type cannot be derived (before any remote call)
            ApiError: If the source rejects the query
        """
        resolved = entity_type or parse_query_entity(query)
        records = self._run(query)
        logger.info(f"Extracted {len(records)} {resolved} records with custom query")
        return records
