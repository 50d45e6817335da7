import re
from datetime import date, datetime, time


TASK_TYPES = ("event", "task", "goal", "sleep", "eat", "selfcare")

_TIME_PATTERN = re.compile(
    r"^(?P<hour>\d{1,2})(:(?P<minute>\d{1,2}))?(:(?P<second>\d{1,2}))?(?P<ampm>a|p|am|pm)?$"
)


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


def parse_time_str(val):
    """Parse 24h, HH:MM:SS or am/pm strings into a time object; return None on failure."""
    if not val:
        return None
    if isinstance(val, time):
        return val
    s = str(val).strip().lower().replace(" ", "")
    m = _TIME_PATTERN.match(s)
    if not m:
        return None
    hour = int(m.group("hour"))
    minute = int(m.group("minute") or 0)
    if m.group("second") is not None and not (0 <= int(m.group("second")) <= 59):
        return None
    ampm = m.group("ampm")
    if ampm:
        if not (1 <= hour <= 12):
            return None
        if ampm in ("p", "pm") and hour != 12:
            hour += 12
        if ampm in ("a", "am") and hour == 12:
            hour = 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return time(hour=hour, minute=minute)


def format_clock_time(value):
    """Zero-padded HH:MM, the only clock format the timeline accepts."""
    if value is None:
        return None
    return f"{value.hour:02d}:{value.minute:02d}"


def normalize_clock_string(raw):
    """Sanitize user input into HH:MM, or None when it is not a clock time."""
    return format_clock_time(parse_time_str(raw))


def parse_day_value(raw):
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def normalize_task_type(raw, default="task"):
    value = str(raw or "").strip().lower()
    return value if value in TASK_TYPES else default
