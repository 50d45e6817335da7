"""Import drafts: parsed events awaiting a user's accept/reject decision."""
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, List, Optional

from backend.recurrence import default_until, expand, parse_rrule_frequency
from services.validation_service import parse_bool


DRAFT_TYPES = ('event', 'task')

PROPOSED = 'proposed'
ACCEPTED = 'accepted'
REJECTED = 'rejected'


def _mapping(data, what):
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TypeError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _goal_id(value):
    if value is None or value == '':
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise TypeError(f"goal_id must be an integer, got {value!r}")


@dataclass(frozen=True)
class CalendarEventDraft:
    id: str
    title: str
    start_date: str
    end_date: str
    start_time: str
    end_time: str
    type: str = 'event'
    confidence: float = 0.8
    reasoning: str = ''
    description: Optional[str] = None
    location: Optional[str] = None
    is_recurring: bool = False
    recurrence_rule: Optional[str] = None
    recurrence_end_date: Optional[str] = None
    goal_id: Optional[int] = None
    goal_title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarEventDraft":
        known = {f.name for f in fields(cls)}
        payload = {k: v for k, v in _mapping(data, 'Draft').items() if k in known}
        missing = [name for name in ('id', 'title', 'start_date', 'start_time') if not payload.get(name)]
        if missing:
            raise ValueError(f"Draft is missing {', '.join(missing)}")
        payload.setdefault('end_date', payload['start_date'])
        payload.setdefault('end_time', payload['start_time'])
        if payload.get('type') not in DRAFT_TYPES:
            payload['type'] = 'event'
        payload['is_recurring'] = parse_bool(payload.get('is_recurring'))
        payload['goal_id'] = _goal_id(payload.get('goal_id'))
        return cls(**payload)


@dataclass(frozen=True)
class DraftOverride:
    """User edits applied to a draft at accept time. ``None`` keeps the draft's value."""
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    type: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurrence_rule: Optional[str] = None
    recurrence_end_date: Optional[str] = None
    goal_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DraftOverride":
        known = {f.name for f in fields(cls)}
        payload = {k: v for k, v in _mapping(data, 'Override').items() if k in known}
        if payload.get('is_recurring') is not None:
            payload['is_recurring'] = parse_bool(payload['is_recurring'])
        payload['goal_id'] = _goal_id(payload.get('goal_id'))
        return cls(**payload)


def merge_draft(draft: CalendarEventDraft, override: Optional[DraftOverride]) -> CalendarEventDraft:
    if override is None:
        return draft
    changes = {f.name: getattr(override, f.name) for f in fields(override) if getattr(override, f.name) is not None}
    return replace(draft, **changes)


class DraftDecisionError(ValueError):
    pass


class DraftReview:
    """Tracks accept/reject decisions for one batch of drafts."""

    def __init__(self, drafts):
        self._drafts = {d.id: d for d in drafts}
        self._status = {d.id: PROPOSED for d in drafts}
        self._overrides = {}

    def status(self, draft_id):
        if draft_id not in self._status:
            raise KeyError(draft_id)
        return self._status[draft_id]

    def _decide(self, draft_id, outcome):
        current = self.status(draft_id)
        if current != PROPOSED:
            raise DraftDecisionError(f"Draft {draft_id} is already {current}")
        self._status[draft_id] = outcome

    def accept(self, draft_id, override=None):
        self._decide(draft_id, ACCEPTED)
        if override is not None:
            self._overrides[draft_id] = override

    def reject(self, draft_id):
        self._decide(draft_id, REJECTED)

    def accepted(self) -> List[CalendarEventDraft]:
        return [
            merge_draft(draft, self._overrides.get(draft_id))
            for draft_id, draft in self._drafts.items()
            if self._status[draft_id] == ACCEPTED
        ]

    def rejected_ids(self) -> List[str]:
        return [draft_id for draft_id, status in self._status.items() if status == REJECTED]


def _draft_notes(draft):
    parts = []
    if draft.description:
        parts.append(draft.description.strip())
    if draft.location:
        parts.append(f"Location: {draft.location.strip()}")
    return "\n".join(p for p in parts if p) or None


def occurrence_dates(draft: CalendarEventDraft, default_months: int = 6) -> List[str]:
    """Dates a draft lands on; recurring drafts expand, others occur once.

    Raises InvalidRangeError when the recurrence ends before it starts.
    """
    if not draft.is_recurring:
        return [draft.start_date]
    frequency = parse_rrule_frequency(draft.recurrence_rule)
    until = draft.recurrence_end_date or default_until(draft.start_date, default_months).isoformat()
    return expand(draft.start_date, frequency, until)


def draft_to_task_payloads(draft: CalendarEventDraft, default_months: int = 6) -> List[Dict[str, Any]]:
    notes = _draft_notes(draft)
    return [
        {
            'title': draft.title,
            'type': draft.type,
            'date': day,
            'start_time': draft.start_time,
            'end_time': draft.end_time,
            'notes': notes,
        }
        for day in occurrence_dates(draft, default_months)
    ]
