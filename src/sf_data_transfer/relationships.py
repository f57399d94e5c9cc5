"""Parent record resolution and reference remapping.

Records being transferred point at parent records (lookups) by source id.
Before a batch is written, each referenced parent is either created in the
target (insert mode) or matched to an existing target record through an
external id field (upsert mode). The resulting IdentifierMap is used to
rewrite the reference values of the batch.

Only one hop is resolved: references held by the parents themselves are
stripped before the parents are created. Polymorphic references resolve
against their first declared target only.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

from .error_report import stringify
from .exceptions import ApiError, ExternalIdConfigurationError, RelationshipLookupError, TransferError
from .models import IdentifierMap, TransferMode
from .sanitizer import sanitize
from .schema import is_insertable
from .writer import chunks

if TYPE_CHECKING:
    from .models import EntitySchema, Record, TransferConfig, TransferResult
    from .protocols import OrgClient
    from .schema import SchemaInspector
    from .writer import BatchWriter

logger: logging.Logger = logging.getLogger(__name__)

# Keeps "WHERE ... IN (...)" clauses under the query length limit
LOOKUP_CHUNK_SIZE: Final[int] = 1000


def soql_literal(value: Any) -> str:  # noqa: ANN401 - any scalar field value
    """Render a scalar as a SOQL literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def match_key(value: Any) -> Any:  # noqa: ANN401 - any scalar field value
    """Key for comparing external id values, which the target matches case-insensitively."""
    return value.casefold() if isinstance(value, str) else value


def collect_parent_ids(schema: EntitySchema, batch: list[Record]) -> dict[str, list[str]]:
    """Group the parent ids referenced by ``batch`` by parent entity type.

    Ids keep first-seen order and appear once per parent type.
    """
    parent_ids: dict[str, dict[str, None]] = {}
    for record in batch:
        for ref in schema.reference_fields:
            parent_id = record.get(ref.name)
            if isinstance(parent_id, str) and parent_id:
                parent_ids.setdefault(ref.reference_targets[0], {})[parent_id] = None
    return {parent_type: list(ids) for parent_type, ids in parent_ids.items()}


def remap_references(cleaned: Record, original: Record, schema: EntitySchema, id_map: IdentifierMap) -> Record:
    """Return ``cleaned`` with reference values replaced by their target ids.

    Only keys still present after sanitization are touched. Unresolved ids are
    left as they are and will be rejected by the target.
    """
    remapped = dict(cleaned)
    for ref in schema.reference_fields:
        if ref.name not in remapped:
            continue
        source_id = original.get(ref.name)
        if not isinstance(source_id, str):
            continue
        target_id = id_map.get(ref.reference_targets[0], source_id)
        if target_id:
            remapped[ref.name] = target_id
    return remapped


class RelationshipResolver:
    """Builds the source id -> target id map for the parents of a batch."""

    _source: OrgClient
    _target: OrgClient
    _inspector: SchemaInspector
    _writer: BatchWriter
    _config: TransferConfig

    def __init__(
        self,
        source: OrgClient,
        target: OrgClient,
        inspector: SchemaInspector,
        writer: BatchWriter,
        config: TransferConfig,
    ) -> None:
        self._source = source
        self._target = target
        self._inspector = inspector
        self._writer = writer
        self._config = config

    def resolve(
        self,
        entity_type: str,
        schema: EntitySchema,
        batch: list[Record],
        result: TransferResult,
    ) -> IdentifierMap:
        """Resolve the parents referenced by ``batch``.

        Problems are recorded on ``result`` and leave the affected ids out of
        the returned map; nothing is raised.
        """
        id_map = IdentifierMap()
        if not schema.reference_fields:
            return id_map

        parent_ids = collect_parent_ids(schema, batch)
        logger.debug(
            f"{entity_type}: resolving parents "
            + ", ".join(f"{parent}={len(ids)}" for parent, ids in parent_ids.items())
        )

        for parent_type, ids in parent_ids.items():
            if self._config.mode == TransferMode.INSERT:
                self._insert_parents(parent_type, ids, id_map, result)
            else:
                self._match_parents(parent_type, ids, id_map, result)

        return id_map

    def _fetch_by_ids(self, entity_type: str, columns: list[str], ids: list[str]) -> list[Record]:
        records: list[Record] = []
        for chunk in chunks(ids, LOOKUP_CHUNK_SIZE):
            in_clause = ", ".join(soql_literal(i) for i in chunk)
            soql = f"SELECT {', '.join(columns)} FROM {entity_type} WHERE Id IN ({in_clause})"
            records.extend(self._source.query(soql).records)
        return records

    def _insert_parents(self, parent_type: str, ids: list[str], id_map: IdentifierMap, result: TransferResult) -> None:
        """Insert mode: create the parents in the target and map their new ids.

        Parents are created again on every run; nothing is matched against
        records created by earlier runs.
        """
        try:
            parent_schema = self._inspector.describe(parent_type)
            columns = [
                f.name
                for f in parent_schema.fields
                if f.creatable and not f.is_auto_number and not f.is_reference and is_insertable(f)
            ]
            if not columns:
                logger.debug(f"{parent_type} has no insertable fields; parents left unresolved")
                return

            parents = self._fetch_by_ids(parent_type, ["Id", *columns], ids)
            if not parents:
                return

            reference_names = {f.name for f in parent_schema.reference_fields}
            for parent_batch in chunks(parents, self._config.batch_size):
                payload = [
                    {k: v for k, v in sanitize(parent).items() if k not in reference_names} for parent in parent_batch
                ]
                outcome = self._writer.write(parent_type, payload)
                if outcome.request_error is not None:
                    result.add_error(f"Failed to insert parent {parent_type}: {outcome.request_error}")
                    continue
                for parent, saved in zip(parent_batch, outcome.results, strict=True):
                    if saved.success and saved.id:
                        id_map.add(parent_type, parent["Id"], saved.id)
                    else:
                        result.add_error(f"Failed to insert parent {parent_type}: {stringify(saved.errors)}")

            logger.info(f"Created {len(id_map.for_entity(parent_type))} of {len(parents)} {parent_type} parents")
        except TransferError as e:
            result.add_error(f"Error handling insert mode parents for {parent_type}: {stringify(e)}")

    def _external_id_field(self, parent_type: str) -> str:
        field_name = self._config.external_id_mapping.get(parent_type)
        if not field_name:
            msg = (
                f"No external ID field specified for {parent_type}. "
                "Please configure external ID mapping for upsert mode."
            )
            raise ExternalIdConfigurationError(msg)
        return field_name

    def _lookup_chunk(self, parent_type: str, external_id_field: str, chunk: list[Any]) -> list[Record]:
        """Query the target for one chunk of external id values.

        Raises:
            RelationshipLookupError: If the lookup query fails
        """
        in_clause = ", ".join(soql_literal(v) for v in chunk)
        soql = f"SELECT Id, {external_id_field} FROM {parent_type} WHERE {external_id_field} IN ({in_clause})"
        try:
            return self._target.query(soql).records
        except ApiError as e:
            msg = f"Error looking up parent {parent_type} by {external_id_field}: {stringify(e)}"
            raise RelationshipLookupError(msg) from e

    def _lookup_target_ids(
        self, parent_type: str, external_id_field: str, values: list[Any], result: TransferResult
    ) -> tuple[dict[Any, str], set[Any]]:
        """Find target records by external id value, one query per chunk.

        A failed chunk is recorded on ``result`` and the remaining chunks are
        still queried. Returns the matches keyed by ``match_key`` and the keys
        of the values whose chunk failed.
        """
        found: dict[Any, str] = {}
        failed: set[Any] = set()
        for chunk in chunks(values, LOOKUP_CHUNK_SIZE):
            try:
                records = self._lookup_chunk(parent_type, external_id_field, chunk)
            except RelationshipLookupError as e:
                result.add_error(str(e))
                failed.update(match_key(v) for v in chunk)
                continue
            for record in records:
                found.setdefault(match_key(record.get(external_id_field)), record["Id"])
        return found, failed

    def _match_parents(self, parent_type: str, ids: list[str], id_map: IdentifierMap, result: TransferResult) -> None:
        """Upsert mode: match parents to existing target records by external id."""
        try:
            external_id_field = self._external_id_field(parent_type)
        except ExternalIdConfigurationError as e:
            result.add_error(str(e))
            return

        try:
            parents = self._fetch_by_ids(parent_type, ["Id", external_id_field], ids)
        except TransferError as e:
            result.add_error(f"Error handling upsert mode parents for {parent_type}: {stringify(e)}")
            return

        keyed = [p for p in parents if p.get(external_id_field) not in (None, "")]
        values = list({match_key(p[external_id_field]): p[external_id_field] for p in keyed}.values())
        found, failed = self._lookup_target_ids(parent_type, external_id_field, values, result)

        for parent in keyed:
            value = parent[external_id_field]
            key = match_key(value)
            target_id = found.get(key)
            if target_id:
                id_map.add(parent_type, parent["Id"], target_id)
            elif key not in failed:
                result.add_error(
                    f"Parent record {parent_type} with {external_id_field} = '{value}' not found in target org. "
                    "Consider running parent transfer first."
                )
