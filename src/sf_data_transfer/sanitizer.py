"""
Removal of system-managed fields from records before they are written.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from .schema import READ_ONLY_SUFFIX

if TYPE_CHECKING:
    from .models import Record

SYSTEM_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "Id",
        "attributes",
        "CreatedDate",
        "CreatedById",
        "LastModifiedDate",
        "LastModifiedById",
        "SystemModstamp",
        "LastActivityDate",
        "LastViewedDate",
        "LastReferencedDate",
        "Owner",
        "IsDeleted",
        "MasterRecordId",
        "ConnectionReceivedId",
        "ConnectionSentId",
        "PhotoUrl",
    }
)

_TIMESTAMP_NAME: Final[re.Pattern[str]] = re.compile(r"(Date|Time)$", re.IGNORECASE)

# Timestamp-like fields set by the platform. Other *Date/*Time fields are business data.
SYSTEM_TIMESTAMPS: Final[frozenset[str]] = frozenset({"LastLoginDate", "LastPasswordChangeDate", "EmailBouncedDate"})


def is_system_field(key: str, value: object = None) -> bool:
    if key in SYSTEM_FIELDS or key.endswith(READ_ONLY_SUFFIX):
        return True
    return bool(_TIMESTAMP_NAME.search(key)) and isinstance(value, str) and key in SYSTEM_TIMESTAMPS


def sanitize(record: Record) -> Record:
    """Return a copy of ``record`` without fields the target will reject.

    Never rejects a record; a record may come back empty.
    """
    return {key: value for key, value in record.items() if not is_system_field(key, value)}
