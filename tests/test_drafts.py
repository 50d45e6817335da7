import pytest

from backend.drafts import (
    ACCEPTED,
    PROPOSED,
    REJECTED,
    CalendarEventDraft,
    DraftDecisionError,
    DraftOverride,
    DraftReview,
    draft_to_task_payloads,
    merge_draft,
    occurrence_dates,
)
from backend.recurrence import InvalidRangeError


def make_draft(**kwargs):
    values = dict(
        id='d1',
        title='Yoga',
        start_date='2024-01-01',
        end_date='2024-01-01',
        start_time='07:00',
        end_time='08:00',
    )
    values.update(kwargs)
    return CalendarEventDraft(**values)


def test_merge_applies_only_set_fields():
    draft = make_draft(description='Stretch')
    merged = merge_draft(draft, DraftOverride(title='Morning yoga', start_time='06:30'))
    assert merged.title == 'Morning yoga'
    assert merged.start_time == '06:30'
    assert merged.description == 'Stretch'
    assert draft.title == 'Yoga'


def test_merge_without_override_returns_draft():
    draft = make_draft()
    assert merge_draft(draft, None) is draft


def test_from_dict_ignores_unknown_keys_and_fills_defaults():
    draft = CalendarEventDraft.from_dict({
        'id': 'x', 'title': 'Dentist', 'start_date': '2024-02-02', 'start_time': '10:30',
        'type': 'appointment', 'extra': 'ignored',
    })
    assert draft.end_date == '2024-02-02'
    assert draft.end_time == '10:30'
    assert draft.type == 'event'


def test_from_dict_requires_core_fields():
    with pytest.raises(ValueError):
        CalendarEventDraft.from_dict({'id': 'x', 'title': 'No date'})


def test_review_moves_each_draft_once():
    a, b = make_draft(id='a'), make_draft(id='b')
    review = DraftReview([a, b])
    assert review.status('a') == PROPOSED

    review.accept('a', DraftOverride(title='Renamed'))
    review.reject('b')
    assert review.status('a') == ACCEPTED
    assert review.status('b') == REJECTED
    assert [d.title for d in review.accepted()] == ['Renamed']
    assert review.rejected_ids() == ['b']

    with pytest.raises(DraftDecisionError):
        review.reject('a')
    with pytest.raises(DraftDecisionError):
        review.accept('b')


def test_review_unknown_draft():
    with pytest.raises(KeyError):
        DraftReview([]).accept('missing')


def test_single_draft_produces_one_task():
    draft = make_draft(description='Bring mat', location='Studio 2', type='task')
    payloads = draft_to_task_payloads(draft)
    assert payloads == [{
        'title': 'Yoga',
        'type': 'task',
        'date': '2024-01-01',
        'start_time': '07:00',
        'end_time': '08:00',
        'notes': 'Bring mat\nLocation: Studio 2',
    }]


def test_recurring_draft_expands_into_dated_tasks():
    draft = make_draft(is_recurring=True, recurrence_rule='FREQ=WEEKLY;BYDAY=MO', recurrence_end_date='2024-01-22')
    assert [p['date'] for p in draft_to_task_payloads(draft)] == [
        '2024-01-01', '2024-01-08', '2024-01-15', '2024-01-22',
    ]


def test_recurring_draft_without_end_uses_default_horizon():
    draft = make_draft(is_recurring=True, recurrence_rule='FREQ=MONTHLY')
    dates = occurrence_dates(draft, default_months=2)
    assert dates == ['2024-01-01', '2024-02-01', '2024-03-01']


def test_recurring_draft_ending_before_start_is_rejected():
    draft = make_draft(is_recurring=True, recurrence_rule='FREQ=DAILY', recurrence_end_date='2023-12-01')
    with pytest.raises(InvalidRangeError):
        draft_to_task_payloads(draft)


def test_from_dict_reads_string_flags_as_booleans():
    base = {'id': 'x', 'title': 'Dentist', 'start_date': '2024-02-02', 'start_time': '10:30'}
    assert CalendarEventDraft.from_dict({**base, 'is_recurring': 'false'}).is_recurring is False
    assert CalendarEventDraft.from_dict({**base, 'is_recurring': 'true'}).is_recurring is True
    assert CalendarEventDraft.from_dict({**base, 'goal_id': '7'}).goal_id == 7
    with pytest.raises(TypeError):
        CalendarEventDraft.from_dict({**base, 'goal_id': 'Fitness'})


def test_from_dict_rejects_non_mappings():
    with pytest.raises(TypeError):
        CalendarEventDraft.from_dict(['not', 'a', 'draft'])
    with pytest.raises(TypeError):
        DraftOverride.from_dict('oops')


def test_override_flags_are_coerced():
    override = DraftOverride.from_dict({'is_recurring': '0', 'goal_id': 3})
    assert override.is_recurring is False
    assert override.goal_id == 3
    assert DraftOverride.from_dict({'title': 'Renamed'}).is_recurring is None
