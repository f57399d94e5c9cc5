"""
Utility functions for the Salesforce data transfer tool.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


def setup_logging(*, verbose: bool = False) -> None:
    """Configure logging for the transfer process."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(), logging.FileHandler("transfer.log", mode="a")],
    )


def parse_assignments(patterns: Sequence[str] | None, *, separator: str = "=") -> dict[str, str]:
    """Parse ``"key=value"`` patterns into a dict.

    Raises:
        ValueError: If a pattern has no separator or an empty side
    """
    assignments: dict[str, str] = {}
    for pattern in patterns or []:
        if separator not in pattern:
            msg = f"Invalid pattern format: {pattern}"
            raise ValueError(msg)
        key, value = (part.strip() for part in pattern.split(separator, 1))
        if not key or not value:
            msg = f"Invalid pattern format: {pattern}"
            raise ValueError(msg)
        assignments[key] = value
    return assignments


def parse_limits(patterns: Sequence[str] | None) -> dict[str, int]:
    """Parse ``"Entity=N"`` record limits."""
    limits: dict[str, int] = {}
    for key, value in parse_assignments(patterns).items():
        try:
            limits[key] = int(value)
        except ValueError as e:
            msg = f"Invalid record limit for {key}: {value}"
            raise ValueError(msg) from e
    return limits
