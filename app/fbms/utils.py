from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def parse_int(s: str | None) -> int | None:
    if s is None:
        return None
    s = str(s).strip()
    if not s:
        return None
    return int(s)


def parse_decimal(s: str | None) -> Decimal | None:
    if s is None:
        return None
    s = str(s).strip().replace(",", "")
    if not s:
        return None
    try:
        value = Decimal(s)
    except InvalidOperation as e:
        raise ValueError(f"invalid number: {s!r}") from e
    if not value.is_finite():
        raise ValueError(f"invalid number: {s!r}")
    return value


def parse_bool(s: str | None) -> bool:
    return (s or "").strip().lower() in ("1", "true", "yes", "on", "y")


def parse_list(s: str | None) -> list[str] | None:
    """Comma or newline separated text -> list of non-empty stripped items."""
    if not s:
        return None
    items = [part.strip() for chunk in s.splitlines() for part in chunk.split(",")]
    items = [i for i in items if i]
    return items or None


def add_months(d: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    for day in (d.day, 30, 29, 28):
        try:
            return date(year, month, min(d.day, day))
        except ValueError:
            continue
    return date(year, month, 28)
