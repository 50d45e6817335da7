"""Road layout: places a day's tasks and the "now" van along the timeline."""
from backend.time_utils import (
    generate_hour_markers,
    generate_time_scale_markers,
    get_current_task,
    get_current_time_position,
    get_next_upcoming_task,
    position_to_time,
    sort_tasks_by_time,
    task_time,
    time_to_position,
)


CURRENT_DAY_ROAD_ID = 'current-day'
LAST_MINUTE_POSITION = time_to_position('23:59')


def _task_payload(task):
    data = dict(task) if isinstance(task, dict) else task.to_dict()
    data['position'] = time_to_position(task_time(task))
    return data


def build_road(road_id, title, tasks, now, is_current_day=False):
    """Layout for one road. ``now`` is captured once by the caller and reused."""
    tasks = list(tasks)
    now_position = get_current_time_position(now)
    current = get_current_task(tasks, now)
    upcoming = get_next_upcoming_task(tasks, now)
    return {
        'id': road_id,
        'title': title,
        'is_current_day': is_current_day,
        'tasks': [_task_payload(t) for t in sort_tasks_by_time(tasks)],
        'now_position': now_position,
        'van_position': now_position if is_current_day else None,
        'current_task': _task_payload(current) if current is not None else None,
        'next_task': _task_payload(upcoming) if upcoming is not None else None,
        'time_scale': generate_time_scale_markers(),
        'hour_markers': generate_hour_markers(),
    }


def build_road_system(day_tasks, goals, now):
    """Today's road followed by one road per goal, all sharing the same ``now``.

    ``goals`` is a sequence of ``(goal_id, title, tasks)``.
    """
    return {
        'current_day': build_road(CURRENT_DAY_ROAD_ID, "Today's Route", day_tasks, now, is_current_day=True),
        'goal_roads': [build_road(goal_id, title, tasks, now) for goal_id, title, tasks in goals],
    }


def time_for_drop(position):
    """Clock time for a marker dropped at ``position``; drops past 23:59 stay on 23:59."""
    return position_to_time(min(LAST_MINUTE_POSITION, max(0.0, float(position))))
