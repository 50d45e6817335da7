"""Expand a recurring event into its concrete occurrence dates."""
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta


FREQUENCIES = ('daily', 'weekly', 'monthly')
DEFAULT_RECURRENCE_MONTHS = 6


class InvalidRangeError(ValueError):
    """Raised when a recurrence ends before it starts."""

    def __init__(self, start_day, until_day):
        super().__init__(f"Recurrence end {until_day.isoformat()} is before start {start_day.isoformat()}")
        self.start_day = start_day
        self.until_day = until_day


def _as_date(value):
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_rrule_frequency(rule):
    """Map an RRULE string onto daily/weekly/monthly; unknown rules repeat weekly."""
    upper = (rule or '').upper()
    if 'FREQ=DAILY' in upper:
        return 'daily'
    if 'FREQ=WEEKLY' in upper:
        return 'weekly'
    if 'FREQ=MONTHLY' in upper:
        return 'monthly'
    return 'weekly'


def default_until(start_day, months=DEFAULT_RECURRENCE_MONTHS):
    return _as_date(start_day) + relativedelta(months=months)


def _occurrence(start_day, frequency, n):
    if frequency == 'daily':
        return start_day + timedelta(days=n)
    if frequency == 'weekly':
        return start_day + timedelta(weeks=n)
    # Anchored on the start day so short months clamp without drifting
    # (Jan 31 -> Feb 29 -> Mar 31).
    return start_day + relativedelta(months=n)


def iter_occurrences(start_day, frequency, until_day):
    start_day = _as_date(start_day)
    until_day = _as_date(until_day)
    if frequency not in FREQUENCIES:
        raise ValueError(f"Unsupported frequency: {frequency}")
    if until_day < start_day:
        raise InvalidRangeError(start_day, until_day)
    return _walk(start_day, frequency, until_day)


def _walk(start_day, frequency, until_day):
    n = 0
    current = start_day
    while current <= until_day:
        yield current
        n += 1
        current = _occurrence(start_day, frequency, n)


def expand(start_day, frequency, until_day):
    """Return ISO dates from ``start_day`` through ``until_day`` inclusive."""
    return [d.isoformat() for d in iter_occurrences(start_day, frequency, until_day)]
