"""Rendering of failures into readable report lines."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any, Final

from .models import ApiFailure

# Long messages listing several "X__c: Field name provided ..." problems
_FIELD_NAME_PROBLEM: Final[re.Pattern[str]] = re.compile(r"(\w+__c): Field name provided")
_LONG_MESSAGE: Final[int] = 200


def _clean_message(message: str) -> str:
    if "Field name provided" not in message or len(message) <= _LONG_MESSAGE:
        return message
    affected = _FIELD_NAME_PROBLEM.findall(message)
    if len(affected) > 1:
        return f"Multiple fields have External ID/indexing issues: {', '.join(affected)}. Check field configurations."
    return message


def _render(message: str, status: object, fields: Sequence[str]) -> str:
    pieces: list[str] = []
    if message:
        pieces.append(_clean_message(message))
    if status:
        pieces.append(f"code={status}")
    if fields:
        pieces.append(f"fields={','.join(fields)}")
    return " ".join(pieces)


def stringify(error: Any) -> str:  # noqa: ANN401 - accepts any failure shape
    """Render a failure, or a sequence of failures, as one line.

    Identical messages in a sequence are merged: a single message repeated N
    times becomes "<message> (occurred N times)"; otherwise the distinct
    messages are joined with "; " in first-seen order.
    """
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    if isinstance(error, ApiFailure):
        return _render(error.message, error.status_code, error.fields)
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, Sequence):
        messages = [m for m in (stringify(e) for e in error) if m]
        unique = list(dict.fromkeys(messages))
        if len(unique) == 1 and len(messages) > 1:
            return f"{unique[0]} (occurred {len(messages)} times)"
        return "; ".join(unique)
    if isinstance(error, Mapping):
        fields = error.get("fields")
        rendered = _render(
            str(error.get("message") or ""),
            error.get("statusCode") or error.get("status"),
            [str(f) for f in fields] if isinstance(fields, list) else [],
        )
        if rendered:
            return rendered
        try:
            return json.dumps(error)
        except (TypeError, ValueError):
            return str(error)
    return str(error)
