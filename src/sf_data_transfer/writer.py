"""Writing records to the target org in bounded batches."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from .error_report import stringify
from .exceptions import ApiError, RecordWriteError
from .models import WriteOutcome

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from .models import Record
    from .protocols import OrgClient

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunks(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        msg = f"Chunk size must be positive, got {size}"
        raise ValueError(msg)
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class BatchWriter:
    """Creates records in the target org, one create call per batch.

    Partial success inside a batch is normal. A request-level failure is
    reported on the outcome instead of being raised so the caller can move on
    to the next batch.
    """

    _client: OrgClient
    write_calls: int

    def __init__(self, client: OrgClient) -> None:
        self._client = client
        self.write_calls = 0

    def write(self, entity_type: str, batch: list[Record]) -> WriteOutcome:
        """Create ``batch`` in one request.

        Raises:
            RecordWriteError: If the response cannot be matched to the records sent
        """
        if not batch:
            return WriteOutcome()

        self.write_calls += 1
        try:
            results = self._client.create(entity_type, batch)
        except ApiError as e:
            logger.debug(f"Create request for {len(batch)} {entity_type} records failed: {e}")
            return WriteOutcome(request_error=stringify(e))

        if len(results) != len(batch):
            msg = f"Create returned {len(results)} results for {len(batch)} {entity_type} records"
            raise RecordWriteError(msg)

        outcome = WriteOutcome(results=results)
        logger.info(f"{entity_type}: {outcome.succeeded}/{len(batch)} records created")
        return outcome
