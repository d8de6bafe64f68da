"""Posted-date normalization.

Job boards show the posting date as free text ("2 days ago",
"vor 3 Wochen", "Posted today"). The store keys postings on an absolute
calendar date, so every such string is converted relative to a reference
time. Anything unrecognized maps to the reference date itself.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta

_DAYS_RE = re.compile(r"(\d+)\+?\s*day")
_WEEKS_RE = re.compile(r"(\d+)\+?\s*week")
_MONTHS_RE = re.compile(r"(\d+)\+?\s*month")

_DE_DAYS_RE = re.compile(r"vor\s*(\d+)\s*tag")
_DE_WEEKS_RE = re.compile(r"vor\s*(\d+)\s*woche")
_DE_MONTHS_RE = re.compile(r"vor\s*(\d+)\s*monat")

_ABSOLUTE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%d.%m.%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
]


def subtract_months(day: date, months: int) -> date:
    """Step back whole calendar months, clamping to the month's last day."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _parse_absolute(text: str) -> date | None:
    for fmt in _ABSOLUTE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_posted_date(text: str | None, now: datetime | date) -> date:
    """Convert a displayed posting date into an absolute calendar date.

    Patterns are tried in a fixed order and the first one that matches
    wins: today/hours, yesterday, days, weeks, months, then the German
    forms (heute, gestern, vor N Tagen/Wochen/Monaten), then absolute
    dates. Unparseable or empty input returns the reference date.
    """
    today = now.date() if isinstance(now, datetime) else now
    if not text:
        return today

    lower = text.strip().lower()

    if "today" in lower or "hour" in lower or "minute" in lower or "just now" in lower:
        return today
    if "yesterday" in lower:
        return today - timedelta(days=1)

    m = _DAYS_RE.search(lower)
    if m:
        return today - timedelta(days=int(m.group(1)))
    m = _WEEKS_RE.search(lower)
    if m:
        return today - timedelta(weeks=int(m.group(1)))
    m = _MONTHS_RE.search(lower)
    if m:
        return subtract_months(today, int(m.group(1)))

    # German
    if "heute" in lower or "stunde" in lower:
        return today
    if "gestern" in lower:
        return today - timedelta(days=1)
    if "vor" in lower:
        m = _DE_DAYS_RE.search(lower)
        if m:
            return today - timedelta(days=int(m.group(1)))
        m = _DE_WEEKS_RE.search(lower)
        if m:
            return today - timedelta(weeks=int(m.group(1)))
        m = _DE_MONTHS_RE.search(lower)
        if m:
            return subtract_months(today, int(m.group(1)))

    parsed = _parse_absolute(text.strip())
    if parsed is not None:
        return parsed

    return today
