# family_expenses/month_utils.py

"""Grouping of expense rows into calendar-month buckets."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Tuple

from .errors import InvalidInput

MONTH_KEY_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


@dataclass
class ExpenseMonth:
    month: str  # YYYY-MM
    year: int
    expenses: List[Any] = field(default_factory=list)
    total: Decimal = Decimal("0")
    last_modified_at: Optional[datetime] = None
    last_modified_by: Optional[str] = None


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def parse_month_key(value: str) -> Tuple[int, int]:
    """Split 'YYYY-MM' into (year, month)."""
    match = MONTH_KEY_RE.match(value or "")
    if not match:
        raise InvalidInput(f"Invalid month '{value}', expected YYYY-MM")
    return int(match.group(1)), int(match.group(2))


def _as_decimal(amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return Decimal(str(amount))


def group_by_month(expenses: Iterable[Any]) -> List[ExpenseMonth]:
    """
    Bucket expenses by the calendar month of their own date.

    Every record needs `amount` and `date`; `updated_at` and `created_by`
    are used for the bucket's last-modified stamp when present. Buckets come
    back in first-seen order with totals recomputed from their members.
    """
    buckets = {}
    for expense in expenses:
        key = month_key(expense.date)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = ExpenseMonth(month=key, year=expense.date.year)
            buckets[key] = bucket
        bucket.expenses.append(expense)

    for bucket in buckets.values():
        bucket.total = sum((_as_decimal(e.amount) for e in bucket.expenses), Decimal("0"))

        stamped = [e for e in bucket.expenses if getattr(e, "updated_at", None) is not None]
        if stamped:
            latest = max(stamped, key=lambda e: e.updated_at)
            bucket.last_modified_at = latest.updated_at
            bucket.last_modified_by = getattr(latest, "created_by", None)

    return list(buckets.values())


def sort_months_desc(months: List[ExpenseMonth]) -> List[ExpenseMonth]:
    return sorted(months, key=lambda m: m.month, reverse=True)
