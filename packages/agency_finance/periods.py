"""Month-bucket normalization and calendar helpers.

``to_month_key`` is the single place where a record's date becomes a
:data:`~agency_finance.models.MonthKey`. Values that carry no time of day are
anchored at midday in the reporting zone before the month is taken, so a
record dated on the 1st can never drift into the previous month because of a
UTC/local offset. Keys are always derived by truncating a real ``date`` to
day 1, never by slicing the incoming string.
"""

from __future__ import annotations

import calendar
import re
from datetime import UTC, date, datetime, time, timedelta, timezone, tzinfo

from .models import DataIntegrityError, MonthKey, RawDate

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_KEY_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")
_UTC_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")

_MIDDAY = time(12, 0)

_PT_BR_MONTHS = (
    "Jan",
    "Fev",
    "Mar",
    "Abr",
    "Mai",
    "Jun",
    "Jul",
    "Ago",
    "Set",
    "Out",
    "Nov",
    "Dez",
)


# ---------------------------
# Normalization
# ---------------------------


def _anchor_midday(d: date, tz: tzinfo | None) -> datetime:
    return datetime.combine(d, _MIDDAY, tzinfo=tz)


def _parse_string(raw: str) -> date | datetime:
    s = raw.strip()
    if not s:
        raise DataIntegrityError("empty date string")
    try:
        if _DATE_ONLY_RE.match(s):
            return date.fromisoformat(s)
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        return datetime.fromisoformat(s)
    except ValueError as exc:
        raise DataIntegrityError(f"unparseable date {raw!r}") from exc


def to_month_key(value: RawDate | None, *, tz: tzinfo | None = None) -> MonthKey:
    """Return the ``YYYY-MM`` bucket for ``value``.

    Parameters
    ----------
    value:
        A ``date``, ``datetime`` or ISO-8601 string (date-only or with time,
        optionally with an offset or trailing ``Z``).
    tz:
        Reporting zone. Aware datetimes are converted into it; naive
        datetimes are taken as wall-clock time; date-only values are pinned
        to 12:00 in it.

    Raises
    ------
    DataIntegrityError
        When ``value`` is missing or cannot be read as a calendar date.
    """

    if value is None:
        raise DataIntegrityError("missing date")
    parsed: date | datetime
    if isinstance(value, str):
        parsed = _parse_string(value)
    elif isinstance(value, date):
        parsed = value
    else:
        raise DataIntegrityError(f"unsupported date value {value!r}")

    if isinstance(parsed, datetime):
        moment = parsed
        if moment.tzinfo is not None and tz is not None:
            moment = moment.astimezone(tz)
    else:
        moment = _anchor_midday(parsed, tz)

    first = moment.date().replace(day=1)
    return f"{first.year:04d}-{first.month:02d}"


def parse_month_key(key: MonthKey) -> tuple[int, int]:
    """Split ``"YYYY-MM"`` into ``(year, month)``; reject anything else."""

    m = _MONTH_KEY_RE.match(key or "")
    if not m:
        raise DataIntegrityError(f"invalid month key {key!r}")
    return int(m.group(1)), int(m.group(2))


# ---------------------------
# Calendar arithmetic
# ---------------------------


def _shift(key: MonthKey, months: int) -> MonthKey:
    year, month = parse_month_key(key)
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def previous_month(key: MonthKey) -> MonthKey:
    """Calendar month before ``key`` (``2024-01`` -> ``2023-12``)."""

    return _shift(key, -1)


def next_month(key: MonthKey) -> MonthKey:
    return _shift(key, 1)


def month_range(first: MonthKey, last: MonthKey) -> list[MonthKey]:
    """Inclusive list of month keys from ``first`` to ``last``."""

    parse_month_key(first)
    parse_month_key(last)
    out: list[MonthKey] = []
    current = first
    while current <= last:
        out.append(current)
        current = next_month(current)
    return out


def month_start(key: MonthKey) -> date:
    year, month = parse_month_key(key)
    return date(year, month, 1)


def year_of(key: MonthKey) -> int:
    return parse_month_key(key)[0]


def add_months(d: date, months: int) -> date:
    """Step ``d`` by whole calendar months, clamping the day to the month end.

    ``add_months(date(2025, 1, 31), 1)`` is ``date(2025, 2, 28)``.
    """

    index = d.year * 12 + (d.month - 1) + months
    year, month = index // 12, index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def month_label(key: MonthKey) -> str:
    """Short pt-BR column label, e.g. ``"Jan 2025"``."""

    year, month = parse_month_key(key)
    return f"{_PT_BR_MONTHS[month - 1]} {year}"


# ---------------------------
# Reporting zone
# ---------------------------


def parse_utc_offset(text: str | None) -> tzinfo:
    """Parse ``"+HH:MM"``/``"-HH:MM"`` (or ``"Z"``/``"UTC"``) into a fixed zone.

    Empty input yields UTC. Raises ``ValueError`` on anything else.
    """

    if text is None or not text.strip() or text.strip().upper() in {"Z", "UTC"}:
        return UTC
    m = _UTC_OFFSET_RE.match(text.strip())
    if not m:
        raise ValueError(f"invalid UTC offset {text!r}; expected ±HH:MM")
    sign, hours, minutes = m.group(1), int(m.group(2)), int(m.group(3))
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid UTC offset {text!r}; expected ±HH:MM")
    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if sign == "-" else delta)


__all__ = [
    "to_month_key",
    "parse_month_key",
    "previous_month",
    "next_month",
    "month_range",
    "month_start",
    "year_of",
    "add_months",
    "month_label",
    "parse_utc_offset",
]
