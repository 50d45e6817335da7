"""Goal/task persistence helpers shared by the routes and the seed script."""
import logging

from models import db, Goal, Task
from services.validation_service import normalize_task_type, parse_day_value, parse_time_str

logger = logging.getLogger(__name__)


def _payload_time(payload, key, title):
    raw = payload.get(key)
    if not raw:
        return None
    value = parse_time_str(raw)
    if value is None:
        raise ValueError(f'Invalid {key} for task "{title}"')
    return value


def build_task(user_id, payload, goal_id=None):
    """Task row from a plain payload (title/type/date/start_time/end_time/notes)."""
    title = (payload.get('title') or '').strip()
    if not title:
        raise ValueError('Task title is required')
    raw_date = payload.get('date')
    day = parse_day_value(raw_date) if raw_date else None
    if raw_date and not day:
        raise ValueError(f'Invalid date for task "{title}"')
    return Task(
        user_id=user_id,
        goal_id=goal_id,
        title=title,
        type=normalize_task_type(payload.get('type')),
        date=day,
        start_time=_payload_time(payload, 'start_time', title),
        end_time=_payload_time(payload, 'end_time', title),
        notes=(payload.get('notes') or '').strip() or None,
    )


def create_goal(user, title, description=None, tasks=None):
    title = (title or '').strip()
    if not title:
        raise ValueError('Goal title is required')
    goal = Goal(user_id=user.id, title=title, description=(description or '').strip() or None)
    db.session.add(goal)
    db.session.flush()
    for payload in tasks or []:
        db.session.add(build_task(user.id, payload, goal_id=goal.id))
    db.session.commit()
    return goal


def delete_goal(goal):
    """Remove a goal and every task on it."""
    tasks = list(goal.tasks)
    for task in tasks:
        db.session.delete(task)
    removed = len(tasks)
    db.session.delete(goal)
    db.session.commit()
    logger.info("Deleted goal %s with %s tasks", goal.id, removed)
    return removed


def list_goals(user):
    return Goal.query.filter_by(user_id=user.id).order_by(Goal.created_at.desc(), Goal.id.desc()).all()


def list_tasks_for_date(user, day):
    return Task.query.filter_by(user_id=user.id, date=day).order_by(
        Task.start_time.asc(),
        Task.created_at.asc(),
        Task.id.asc()
    ).all()


def resolve_import_goal(user, goal_id=None, goal_title=None):
    """Existing goal by id, a new goal by title, or None for standalone tasks."""
    if goal_id is not None:
        goal = Goal.query.filter_by(id=goal_id, user_id=user.id).first()
        if not goal:
            raise LookupError('Goal not found')
        return goal
    title = (goal_title or '').strip()
    if not title:
        return None
    goal = Goal.query.filter_by(user_id=user.id, title=title).first()
    if goal:
        return goal
    goal = Goal(user_id=user.id, title=title)
    db.session.add(goal)
    db.session.flush()
    return goal


def persist_task_payloads(user, payloads, goal=None, commit=True):
    created = [build_task(user.id, payload, goal_id=goal.id if goal else None) for payload in payloads]
    db.session.add_all(created)
    if commit:
        db.session.commit()
    return created


def summarize_progress(tasks):
    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)
    return {
        'total': total,
        'completed': completed,
        'percentage': int(completed / total * 100 + 0.5) if total else 0,
    }
