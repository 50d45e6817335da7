import pytest

from backend.ics_import import ICS_CONFIDENCE, IcsParseError, parse_ics, validate_ics_upload


def _calendar(*events):
    body = "\r\n".join(events)
    return (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "PRODID:-//journey//tests//EN\r\n"
        f"{body}\r\n"
        "END:VCALENDAR\r\n"
    )


def _event(*lines):
    return "\r\n".join(["BEGIN:VEVENT", *lines, "END:VEVENT"])


STANDUP = _event(
    "UID:standup@example.com",
    "SUMMARY:Team standup",
    "DESCRIPTION:Daily sync",
    "LOCATION:Room 4",
    "DTSTART:20240115T093000",
    "DTEND:20240115T094500",
)
DEADLINE = _event(
    "UID:deadline@example.com",
    "SUMMARY:Report due",
    "DTSTART;VALUE=DATE:20240120",
    "DTEND;VALUE=DATE:20240121",
)
NO_START = _event(
    "UID:broken@example.com",
    "SUMMARY:Mystery meeting",
)


def test_partial_failure_keeps_good_entries():
    result = parse_ics(_calendar(STANDUP, NO_START, DEADLINE))
    assert len(result.drafts) == 2
    assert len(result.errors) == 1
    assert 'Mystery meeting' in result.errors[0]
    assert result.total_events == 2


def test_timed_entry_becomes_event_draft():
    draft = parse_ics(_calendar(STANDUP)).drafts[0]
    assert draft.title == 'Team standup'
    assert draft.description == 'Daily sync'
    assert draft.location == 'Room 4'
    assert draft.start_date == '2024-01-15'
    assert draft.end_date == '2024-01-15'
    assert draft.start_time == '09:30'
    assert draft.end_time == '09:45'
    assert draft.type == 'event'
    assert draft.confidence == ICS_CONFIDENCE
    assert draft.reasoning == 'Parsed from calendar: Scheduled event'
    assert draft.is_recurring is False
    assert draft.id.startswith('ics-0-')


def test_all_day_entry_becomes_task_draft():
    draft = parse_ics(_calendar(DEADLINE)).drafts[0]
    assert draft.type == 'task'
    assert draft.start_time == '00:00'
    assert draft.reasoning == 'Parsed from calendar: Task with deadline'


def test_entry_without_end_is_a_task():
    event = _event("SUMMARY:Reminder", "DTSTART:20240301T080000")
    draft = parse_ics(_calendar(event)).drafts[0]
    assert draft.type == 'task'
    assert draft.end_time == '08:00'


def test_duration_is_used_when_dtend_is_missing():
    event = _event("SUMMARY:Call", "DTSTART:20240301T080000", "DURATION:PT30M")
    draft = parse_ics(_calendar(event)).drafts[0]
    assert draft.type == 'event'
    assert draft.end_time == '08:30'


def test_missing_summary_gets_positional_title():
    event = _event("DTSTART:20240301T080000", "DTEND:20240301T090000")
    result = parse_ics(_calendar(STANDUP, event))
    assert result.drafts[1].title == 'Event 2'


def test_recurring_entry_with_until():
    event = _event(
        "SUMMARY:Gym",
        "DTSTART:20240101T180000",
        "DTEND:20240101T190000",
        "RRULE:FREQ=DAILY;UNTIL=20240110T235959Z",
    )
    draft = parse_ics(_calendar(event)).drafts[0]
    assert draft.is_recurring is True
    assert 'FREQ=DAILY' in draft.recurrence_rule
    assert draft.recurrence_end_date == '2024-01-10'
    assert draft.reasoning.endswith('(recurring)')


def test_recurring_entry_without_until_defaults_to_six_months():
    event = _event(
        "SUMMARY:Piano lesson",
        "DTSTART:20240115T170000",
        "DTEND:20240115T180000",
        "RRULE:FREQ=WEEKLY;BYDAY=MO",
    )
    draft = parse_ics(_calendar(event)).drafts[0]
    assert draft.recurrence_end_date == '2024-07-15'


def test_utc_times_are_shown_in_viewer_timezone():
    event = _event("SUMMARY:Call", "DTSTART:20240115T150000Z", "DTEND:20240115T160000Z")
    draft = parse_ics(_calendar(event), tz='America/New_York').drafts[0]
    assert draft.start_time == '10:00'
    assert draft.end_time == '11:00'
    assert draft.start_date == '2024-01-15'


@pytest.mark.parametrize('payload', ['', 'this is not a calendar', b'\x00\x01garbage'])
def test_unreadable_payload_raises(payload):
    with pytest.raises(IcsParseError):
        parse_ics(payload)


def test_bytes_payload_is_accepted():
    result = parse_ics(_calendar(STANDUP).encode('utf-8'))
    assert len(result.drafts) == 1


def test_to_dict_shape():
    data = parse_ics(_calendar(STANDUP, NO_START)).to_dict()
    assert data['total_events'] == 1
    assert data['drafts'][0]['title'] == 'Team standup'
    assert len(data['errors']) == 1


def test_validate_upload():
    assert validate_ics_upload('work.ics', 1024, 'text/calendar').is_valid
    assert validate_ics_upload('WORK.ICS', 1024).is_valid
    assert validate_ics_upload('work.ics', 1024, 'text/plain; charset=utf-8').is_valid

    wrong_ext = validate_ics_upload('work.csv', 10, 'text/calendar')
    assert not wrong_ext.is_valid
    assert wrong_ext.error == 'File must have .ics extension'

    too_big = validate_ics_upload('work.ics', 5 * 1024 * 1024 + 1, 'text/calendar')
    assert not too_big.is_valid
    assert 'less than 5MB' in too_big.error

    wrong_type = validate_ics_upload('work.ics', 10, 'application/pdf')
    assert wrong_type.error == 'File must be a calendar file'
