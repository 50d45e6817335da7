"""Mapping between clock times (HH:MM) and positions on a 24-hour timeline.

Positions are percentages: 0 is midnight, 23:59 lands just short of 100.
Everything here is pure; callers pass the current time in explicitly and
only fall back to the wall clock when they do not.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

import pytz


MINUTES_PER_DAY = 24 * 60

NowValue = Union[datetime, str, None]


def clock_to_minutes(time_string: str) -> int:
    hours, minutes = time_string.split(':')[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_clock(total_minutes: int) -> str:
    hours = (total_minutes // 60) % 24
    mins = total_minutes % 60
    return f"{hours:02d}:{mins:02d}"


def compare_clock_times(a: str, b: str) -> int:
    """Return -1, 0 or 1 comparing two clock times numerically."""
    left, right = clock_to_minutes(a), clock_to_minutes(b)
    return (left > right) - (left < right)


def time_to_position(time_string: str) -> float:
    position = clock_to_minutes(time_string) / MINUTES_PER_DAY * 100
    return min(100.0, max(0.0, position))


def position_to_time(position: float) -> str:
    # Python's round() is banker's rounding; half-minutes must round up.
    minutes = int((position / 100) * MINUTES_PER_DAY + 0.5)
    return minutes_to_clock(minutes)


def _wall_clock(tz: Optional[str] = None) -> datetime:
    if tz:
        return datetime.now(pytz.timezone(tz))
    return datetime.now()


def get_current_time_string(now: NowValue = None, tz: Optional[str] = None) -> str:
    if isinstance(now, str):
        return minutes_to_clock(clock_to_minutes(now))
    if now is None:
        now = _wall_clock(tz)
    return f"{now.hour:02d}:{now.minute:02d}"


def get_current_time_position(now: NowValue = None, tz: Optional[str] = None) -> float:
    return time_to_position(get_current_time_string(now, tz))


def calculate_scroll_offset(target_position: float, container_width: float) -> float:
    """Horizontal offset that centres ``target_position`` in a container."""
    target_x = (target_position / 100) * container_width
    return container_width / 2 - target_x


def _meridiem_label(hour: int) -> str:
    if hour == 0:
        return '12 AM'
    if hour < 12:
        return f'{hour} AM'
    if hour == 12:
        return '12 PM'
    return f'{hour - 12} PM'


def generate_time_scale_markers() -> List[Dict[str, Any]]:
    markers = []
    for hour in range(0, 24, 2):
        time_string = f"{hour:02d}:00"
        markers.append({
            'time': time_string,
            'position': time_to_position(time_string),
            'label': _meridiem_label(hour),
        })
    return markers


def generate_hour_markers() -> List[Dict[str, Any]]:
    markers = []
    for hour in range(24):
        time_string = f"{hour:02d}:00"
        markers.append({
            'time': time_string,
            'position': time_to_position(time_string),
            'is_major': hour % 2 == 0,
        })
    return markers


def task_time(task) -> str:
    if isinstance(task, dict):
        return task['time']
    return task.time


def _task_created_at(task):
    if isinstance(task, dict):
        return task.get('created_at')
    return getattr(task, 'created_at', None)


def sort_tasks_by_time(tasks: Iterable) -> list:
    """Stable sort by clock time; same-time tasks order by created_at, then input order."""
    def key(task):
        created = _task_created_at(task)
        return (clock_to_minutes(task_time(task)), created is None, created or '')
    return sorted(tasks, key=key)


def get_next_upcoming_task(tasks: Iterable, now: NowValue = None, tz: Optional[str] = None):
    current = clock_to_minutes(get_current_time_string(now, tz))
    for task in sort_tasks_by_time(tasks):
        if clock_to_minutes(task_time(task)) > current:
            return task
    return None


def get_current_task(tasks: Iterable, now: NowValue = None, tz: Optional[str] = None):
    """Most recently started task: the last one at or before ``now``."""
    current = clock_to_minutes(get_current_time_string(now, tz))
    started = [t for t in sort_tasks_by_time(tasks) if clock_to_minutes(task_time(t)) <= current]
    return started[-1] if started else None
