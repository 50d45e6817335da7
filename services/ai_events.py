"""
Natural-language event extraction.

Free text ("Dentist next Monday at 10:30am") goes to the chat model and comes
back as import drafts. When the model is unreachable a regex fallback
produces a single low-confidence draft instead.
"""
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from backend.drafts import CalendarEventDraft
from backend.ics_import import CalendarParseResult
from backend.time_utils import MINUTES_PER_DAY, clock_to_minutes, minutes_to_clock
from services.ai_gateway import call_chat_json, is_ai_configured
from services.validation_service import format_clock_time, parse_day_value, parse_time_str

logger = logging.getLogger(__name__)

AI_DEFAULT_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.6

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

TASK_KEYWORDS = [
    'study', 'learn', 'practice', 'exercise', 'workout', 'gym', 'run', 'walk',
    'read', 'write', 'call', 'email', 'clean', 'organize', 'plan', 'prepare',
    'review', 'quiz', 'test', 'exam', 'homework', 'project', 'assignment',
]

TIME_PATTERNS = [
    re.compile(r"(\d{1,2}):?(\d{2})?\s*(am|pm)", re.IGNORECASE),
    re.compile(r"(\d{1,2}):(\d{2})"),
]
NEXT_WEEKDAY_PATTERN = re.compile(r"next\s+(" + "|".join(WEEKDAYS) + r")", re.IGNORECASE)
TITLE_NOISE_PATTERN = re.compile(
    r"\b(at\s+\d{1,2}(:\d{2})?\s*(am|pm)?|\d{1,2}(:\d{2})?\s*(am|pm)|tomorrow|today|next\s+\w+|more|for|before|this\s+week)\b",
    re.IGNORECASE,
)

NOT_CONFIGURED_ERROR = "OpenAI API key is required for AI event parsing. Set OPENAI_API_KEY in your environment."
NO_EVENTS_ERROR = (
    "I couldn't identify any specific events in your input. Try being more specific about dates and times. "
    "Examples: 'Meeting with John tomorrow at 2pm' or 'Doctor appointment next Monday at 10:30am'"
)


@dataclass
class UserContext:
    current_date: date
    timezone: str = 'UTC'
    goals: List[Dict[str, Any]] = field(default_factory=list)
    existing_tasks: List[Dict[str, Any]] = field(default_factory=list)
    preferences_text: Optional[str] = None


SYSTEM_PROMPT = """You turn natural language into calendar events and tasks.

Extract every event or task in the user's message, even vague ones. For each provide:
1. title
2. date (YYYY-MM-DD, resolve relative dates against the current date)
3. startTime (HH:MM, 24-hour)
4. endTime (HH:MM, 24-hour; one hour after the start if not stated)
5. type: "event" for meetings/appointments, "task" for things to do
6. confidence between 0 and 1
7. reasoning: a short explanation
8. goalId (an existing goal id when one fits) and goalTitle

When no time is given, suggest one: study 14:00 or 19:00, exercise 18:00 or 07:00,
work 09:00 or 14:00, personal errands 10:00 or 15:00. Avoid slots already taken
by existing tasks on the same date.

Return JSON: {"events": [{"title": ..., "goalId": ..., "goalTitle": ..., "date": ...,
"startTime": ..., "endTime": ..., "type": ..., "confidence": ..., "reasoning": ...}], "errors": []}
Only return an empty events list if the message has nothing to do with scheduling."""


def build_user_prompt(text, context):
    today = context.current_date
    todays = [t for t in context.existing_tasks if t.get('date') == today.isoformat()]
    busy = ", ".join(
        f"{t.get('start_time')} - {t.get('end_time') or t.get('start_time')}: {t.get('title')}" for t in todays
    ) or "None"
    goals = ", ".join(f"{g['id']}: {g['title']}" for g in context.goals) or "None"
    lines = [
        f"Current date: {today.isoformat()} ({WEEKDAYS[today.weekday()].title()})",
        f"Tomorrow: {(today + timedelta(days=1)).isoformat()}",
        f"Timezone: {context.timezone}",
        f"Available goals: {goals}",
        f"Existing tasks today: {busy}",
    ]
    if context.preferences_text:
        lines.append(f"User preferences: {context.preferences_text}")
    lines.append(f'User input: "{text}"')
    return "\n".join(lines)


def add_one_hour(time_string):
    """One hour later, held at 23:59 so the end stays on the start's day."""
    return minutes_to_clock(min(clock_to_minutes(time_string) + 60, MINUTES_PER_DAY - 1))


def is_task_like_input(text):
    lowered = text.lower()
    return any(keyword in lowered for keyword in TASK_KEYWORDS)


def suggest_smart_time(text):
    lowered = text.lower()
    if 'before tomorrow' in lowered or 'today' in lowered:
        return '19:00'
    if any(k in lowered for k in ('study', 'learn', 'quiz', 'exam')):
        return '14:00'
    if any(k in lowered for k in ('exercise', 'workout', 'gym', 'run')):
        return '18:00'
    if any(k in lowered for k in ('meeting', 'work', 'call')):
        return '09:00'
    if any(k in lowered for k in ('clean', 'organize', 'plan')):
        return '10:00'
    return '15:00'


def next_weekday(current, weekday_name):
    """The first ``weekday_name`` strictly after ``current``."""
    target = WEEKDAYS.index(weekday_name.lower())
    days_ahead = (target - current.weekday() - 1) % 7 + 1
    return current + timedelta(days=days_ahead)


def _find_time(text):
    for pattern in TIME_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        meridiem = match.group(3).lower() if pattern.groups >= 3 and match.group(3) else None
        if meridiem == 'pm' and hours != 12:
            hours += 12
        if meridiem == 'am' and hours == 12:
            hours = 0
        if 0 <= hours <= 23 and 0 <= minutes <= 59:
            return f"{hours:02d}:{minutes:02d}"
    return None


def _find_date(text, current):
    lowered = text.lower()
    if 'tomorrow' in lowered:
        return current + timedelta(days=1)
    if 'today' in lowered:
        return current
    match = NEXT_WEEKDAY_PATTERN.search(text)
    if match:
        return next_weekday(current, match.group(1))
    return None


def fallback_parse(text, context):
    """Best-effort single draft from common phrasing, or None."""
    found_time = _find_time(text)
    found_date = _find_date(text, context.current_date)
    task_like = is_task_like_input(text)
    if not (found_time or found_date or task_like):
        return None

    title = re.sub(r"\s{2,}", " ", TITLE_NOISE_PATTERN.sub('', text)).strip() or 'Task'
    start_time = found_time or suggest_smart_time(text)
    day = (found_date or context.current_date).isoformat()
    return CalendarEventDraft(
        id=f"fallback-{uuid.uuid4().hex[:8]}",
        title=title,
        start_date=day,
        end_date=day,
        start_time=start_time,
        end_time=add_one_hour(start_time),
        type='task' if task_like else 'event',
        confidence=FALLBACK_CONFIDENCE,
        reasoning='Fallback parsing with smart time suggestion - please review carefully',
        goal_title='General',
    )


def _goal_fields(raw_goal_id, raw_goal_title, context):
    known = {str(g['id']): g for g in context.goals}
    goal = known.get(str(raw_goal_id)) if raw_goal_id is not None else None
    if goal:
        return goal['id'], goal['title']
    title = (raw_goal_title or (raw_goal_id if isinstance(raw_goal_id, str) else None) or '').strip()
    return None, title or None


def normalize_ai_event(raw, index, context):
    """Validate one model-produced event; raises ValueError for unusable ones."""
    title = (raw.get('title') or '').strip()
    if not title:
        raise ValueError(f"Event {index + 1} has no title")
    day = parse_day_value(raw.get('date') or context.current_date.isoformat())
    if not day:
        raise ValueError(f'Event "{title}" has an invalid date: {raw.get("date")}')
    start = parse_time_str(raw.get('startTime') or raw.get('start_time'))
    if not start:
        raise ValueError(f'Event "{title}" has an invalid start time')
    start_time = format_clock_time(start)
    end = parse_time_str(raw.get('endTime') or raw.get('end_time'))
    end_time = format_clock_time(end) if end else add_one_hour(start_time)

    try:
        confidence = float(raw.get('confidence') or AI_DEFAULT_CONFIDENCE)
    except (TypeError, ValueError):
        confidence = AI_DEFAULT_CONFIDENCE
    goal_id, goal_title = _goal_fields(raw.get('goalId'), raw.get('goalTitle'), context)

    return CalendarEventDraft(
        id=str(raw.get('id') or f"ai-event-{uuid.uuid4().hex[:8]}-{index}"),
        title=title,
        start_date=day.isoformat(),
        end_date=day.isoformat(),
        start_time=start_time,
        end_time=end_time,
        type='task' if raw.get('type') == 'task' else 'event',
        confidence=min(1.0, max(0.0, confidence)),
        reasoning=raw.get('reasoning') or 'AI-generated event',
        goal_id=goal_id,
        goal_title=goal_title,
    )


def _with_fallback(text, context, reason):
    draft = fallback_parse(text, context)
    if draft is None:
        return CalendarParseResult(errors=[f"AI parsing failed: {reason}"])
    logger.info("Using fallback parsing for input")
    return CalendarParseResult(
        drafts=[draft],
        errors=["AI parsing failed, but I found a potential event using fallback parsing. Please review carefully."],
    )


def parse_events_with_ai(text, context, chat_fn=call_chat_json):
    """Extract drafts from free text. Never raises for model problems."""
    text = (text or '').strip()
    if not text:
        return CalendarParseResult(errors=["Please describe at least one event."])
    if chat_fn is call_chat_json and not is_ai_configured():
        return CalendarParseResult(errors=[NOT_CONFIGURED_ERROR])

    parsed = chat_fn(SYSTEM_PROMPT, build_user_prompt(text, context), logger=logger)
    if parsed is None:
        return _with_fallback(text, context, 'no usable response from the model')
    events = parsed.get('events')
    if not isinstance(events, list):
        return _with_fallback(text, context, 'invalid response structure from the model')
    if not events:
        logger.warning("Model returned no events")
        return CalendarParseResult(errors=[NO_EVENTS_ERROR])

    result = CalendarParseResult(errors=[str(e) for e in (parsed.get('errors') or [])])
    for index, raw in enumerate(events):
        if not isinstance(raw, dict):
            result.errors.append(f"Event {index + 1} is not an object")
            continue
        try:
            result.drafts.append(normalize_ai_event(raw, index, context))
        except ValueError as exc:
            result.errors.append(str(exc))
    return result
