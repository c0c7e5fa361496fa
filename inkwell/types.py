"""
Shared helpers for inkwell.

Timestamp handling lives here so models, storage backends and the HTTP
layer agree on one representation: timezone-aware UTC datetimes in memory,
ISO 8601 strings on the wire.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Union

from dateutil.parser import isoparse


def utc_now() -> datetime:
    """Get current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ParseDatetimeError(ValueError):
    """Structured parse failure for ISO datetime strings."""

    def __init__(self, value: str, cause: Exception):
        super().__init__(f"Invalid ISO datetime string: {value!r}")
        self.value = value
        self.cause = cause


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO datetime string (or pass a datetime through).

    Accepts the variants PostgREST emits (any fractional-second precision,
    ``Z`` suffix). Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = isoparse(value)
        except (TypeError, ValueError) as exc:
            raise ParseDatetimeError(value, exc) from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO 8601, passing None through."""
    return value.isoformat() if value else None


CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Coerce a number or numeric string to a 2-place Decimal.

    Floats go through ``str`` first so 10.1 stays 10.10 rather than
    10.0999999....
    """
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
