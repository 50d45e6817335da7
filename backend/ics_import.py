"""
Turn an uploaded .ics payload into import drafts for the user to review.

Nothing here touches the database; accepted drafts are persisted by the caller.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional

import pytz
from icalendar import Calendar

from backend.drafts import CalendarEventDraft
from backend.recurrence import default_until


logger = logging.getLogger(__name__)

ICS_CONFIDENCE = 0.9
MAX_ICS_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = ('text/calendar', 'text/plain')


class IcsParseError(ValueError):
    """The payload as a whole is not readable calendar data."""


class _MissingStart(Exception):
    pass


@dataclass
class CalendarParseResult:
    drafts: List[CalendarEventDraft] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def total_events(self):
        return len(self.drafts)

    def to_dict(self):
        return {
            'drafts': [d.to_dict() for d in self.drafts],
            'total_events': self.total_events,
            'errors': list(self.errors),
        }


@dataclass
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None


def validate_ics_upload(filename, size, content_type=None, max_bytes=MAX_ICS_BYTES):
    """Cheap pre-checks on an upload; parse_ics is the real validation."""
    if not (filename or '').lower().endswith('.ics'):
        return ValidationResult(False, 'File must have .ics extension')
    if size is not None and size > max_bytes:
        return ValidationResult(False, f'File size must be less than {max_bytes // (1024 * 1024)}MB')
    if content_type and not any(allowed in content_type for allowed in ALLOWED_CONTENT_TYPES):
        return ValidationResult(False, 'File must be a calendar file')
    return ValidationResult(True)


def _to_datetime(value, tz=None):
    if isinstance(value, datetime):
        if value.tzinfo is not None and tz:
            return value.astimezone(pytz.timezone(tz))
        return value
    return datetime.combine(value, time.min)


def _duration(start_dt, end_dt):
    if (start_dt.tzinfo is None) != (end_dt.tzinfo is None):
        start_dt = start_dt.replace(tzinfo=None)
        end_dt = end_dt.replace(tzinfo=None)
    return end_dt - start_dt


def _prop_text(component, name):
    value = component.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _recurrence_end(rrule, start_dt, tz=None, default_months=6):
    until_values = rrule.get('UNTIL') or []
    for until in until_values:
        if isinstance(until, datetime):
            if until.tzinfo is not None:
                until = until.astimezone(pytz.timezone(tz) if tz else pytz.UTC)
            return until.date().isoformat()
        if isinstance(until, date):
            return until.isoformat()
    return default_until(start_dt.date(), default_months).isoformat()


def _event_to_draft(component, index, tz=None, default_months=6):
    title = _prop_text(component, 'summary') or f"Event {index + 1}"

    dtstart = component.get('dtstart')
    start_value = getattr(dtstart, 'dt', None)
    if start_value is None:
        raise _MissingStart(f'Event "{title}" has no start date')
    start_dt = _to_datetime(start_value, tz)

    dtend = component.get('dtend')
    duration = component.get('duration')
    if getattr(dtend, 'dt', None) is not None:
        end_dt = _to_datetime(dtend.dt, tz)
    elif isinstance(getattr(duration, 'dt', None), timedelta):
        end_dt = start_dt + duration.dt
    else:
        end_dt = start_dt

    span = _duration(start_dt, end_dt)
    is_event = timedelta(0) < span < timedelta(hours=24)

    rrule = component.get('rrule')
    is_recurring = rrule is not None
    recurrence_rule = None
    recurrence_end_date = None
    if is_recurring:
        recurrence_rule = rrule.to_ical().decode('utf-8')
        recurrence_end_date = _recurrence_end(rrule, start_dt, tz, default_months)

    reasoning = 'Parsed from calendar: ' + ('Scheduled event' if is_event else 'Task with deadline')
    if is_recurring:
        reasoning += ' (recurring)'

    return CalendarEventDraft(
        id=f"ics-{index}-{uuid.uuid4().hex[:8]}",
        title=title,
        description=_prop_text(component, 'description'),
        location=_prop_text(component, 'location'),
        start_date=start_dt.date().isoformat(),
        end_date=end_dt.date().isoformat(),
        start_time=start_dt.strftime('%H:%M'),
        end_time=end_dt.strftime('%H:%M'),
        type='event' if is_event else 'task',
        confidence=ICS_CONFIDENCE,
        reasoning=reasoning,
        is_recurring=is_recurring,
        recurrence_rule=recurrence_rule,
        recurrence_end_date=recurrence_end_date,
    )


def parse_ics(raw_content, tz=None, default_months=6):
    """
    Parse calendar text into drafts.

    Bad individual entries land in ``errors`` and parsing continues.
    Raises IcsParseError when the payload is not calendar data at all.
    """
    if isinstance(raw_content, bytes):
        raw_content = raw_content.decode('utf-8', errors='replace')
    if not (raw_content or '').strip():
        raise IcsParseError('Failed to parse ICS file: file is empty')

    try:
        calendar_obj = Calendar.from_ical(raw_content)
    except Exception as exc:
        raise IcsParseError(f'Failed to parse ICS file: {exc}') from exc
    if getattr(calendar_obj, 'name', None) != 'VCALENDAR':
        raise IcsParseError('Failed to parse ICS file: no VCALENDAR component')

    result = CalendarParseResult()
    for index, component in enumerate(calendar_obj.walk('VEVENT')):
        try:
            result.drafts.append(_event_to_draft(component, index, tz, default_months))
        except _MissingStart as exc:
            result.errors.append(str(exc))
            logger.warning("Skipping calendar entry %s: %s", index + 1, exc)
        except Exception as exc:
            result.errors.append(f"Error parsing event {index + 1}: {exc}")
            logger.warning("Skipping calendar entry %s: %s", index + 1, exc)

    logger.info("Parsed %s calendar entries (%s skipped)", result.total_events, len(result.errors))
    return result
