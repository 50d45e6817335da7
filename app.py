import os
from datetime import datetime

import pytz
from dotenv import load_dotenv
from flask import Flask, request, jsonify, session

load_dotenv()

from backend.drafts import CalendarEventDraft, DraftOverride, DraftReview, DraftDecisionError, draft_to_task_payloads
from backend.ics_import import IcsParseError, parse_ics, validate_ics_upload
from backend.recurrence import InvalidRangeError
from backend.timeline import build_road_system, time_for_drop
from models import db, User, Goal, Task, UserPreferences
from services.ai_events import UserContext, parse_events_with_ai
from services.ai_gateway import is_ai_configured
from services.goal_service import (
    build_task,
    create_goal,
    delete_goal,
    list_goals,
    list_tasks_for_date,
    persist_task_payloads,
    resolve_import_goal,
    summarize_progress,
)
from services.validation_service import (
    normalize_clock_string,
    normalize_task_type,
    parse_bool,
    parse_day_value,
    parse_time_str,
)

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///journey.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['PERMANENT_SESSION_LIFETIME'] = 365 * 24 * 60 * 60  # 1 year in seconds
app.config['API_SHARED_KEY'] = os.environ.get('API_SHARED_KEY')  # Optional shared key for API callers
app.config['APP_TIMEZONE'] = os.environ.get('APP_TIMEZONE', 'UTC')
app.config['ICS_MAX_BYTES'] = int(os.environ.get('ICS_MAX_BYTES', 5 * 1024 * 1024))
app.config['DEFAULT_RECURRENCE_MONTHS'] = int(os.environ.get('DEFAULT_RECURRENCE_MONTHS', 6))

db.init_app(app)


def get_current_user():
    """Resolve the current user from a shared API key + user id header, else fall back to session."""
    api_key = request.headers.get('X-API-Key')
    api_user_id = request.headers.get('X-User-Id')
    shared_key = app.config.get('API_SHARED_KEY')
    if shared_key and api_key and api_user_id:
        try:
            api_uid_int = int(api_user_id)
        except (TypeError, ValueError):
            api_uid_int = None
        if api_uid_int and api_key == shared_key:
            user = db.session.get(User, api_uid_int)
            if user:
                return user

    user_id = session.get('user_id')
    if user_id:
        return db.session.get(User, user_id)
    return None


with app.app_context():
    db.create_all()


def _local_now():
    """Wall-clock now in the viewer's timezone, captured once per request."""
    return datetime.now(pytz.timezone(app.config['APP_TIMEZONE']))


def _request_day(now):
    raw = request.args.get('date')
    if not raw:
        return now.date()
    return parse_day_value(raw)


def _no_user():
    return jsonify({'error': 'No user selected'}), 401


# User session routes (identity itself is managed elsewhere)
@app.route('/api/set-user/<int:user_id>', methods=['POST'])
def set_user(user_id):
    """Set the current user in session"""
    user = db.get_or_404(User, user_id)
    session['user_id'] = user.id
    session.permanent = True
    return jsonify({'success': True, 'username': user.username})


@app.route('/api/current-user')
def current_user_info():
    user = get_current_user()
    if user:
        return jsonify({'user_id': user.id, 'username': user.username})
    return jsonify({'user_id': None, 'username': None})


# Goals API
@app.route('/api/goals', methods=['GET', 'POST'])
def handle_goals():
    user = get_current_user()
    if not user:
        return _no_user()

    if request.method == 'GET':
        include_tasks = parse_bool(request.args.get('include_tasks'))
        return jsonify([g.to_dict(include_tasks=include_tasks) for g in list_goals(user)])

    data = request.json or {}
    tasks = data.get('tasks') or []
    if not isinstance(tasks, list):
        return jsonify({'error': 'tasks must be a list'}), 400
    try:
        goal = create_goal(user, data.get('title'), data.get('description'), tasks)
    except ValueError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400
    app.logger.info("Created goal %s with %s tasks for user %s", goal.id, len(tasks), user.id)
    return jsonify(goal.to_dict(include_tasks=True)), 201


@app.route('/api/goals/<int:goal_id>', methods=['GET', 'DELETE'])
def handle_goal(goal_id):
    user = get_current_user()
    if not user:
        return _no_user()
    goal = Goal.query.filter_by(id=goal_id, user_id=user.id).first()
    if not goal:
        return jsonify({'error': 'Goal not found'}), 404

    if request.method == 'DELETE':
        removed = delete_goal(goal)
        return jsonify({'deleted': goal_id, 'tasks_deleted': removed})
    return jsonify(goal.to_dict(include_tasks=True))


@app.route('/api/goals/<int:goal_id>/tasks', methods=['POST'])
def add_goal_task(goal_id):
    user = get_current_user()
    if not user:
        return _no_user()
    goal = Goal.query.filter_by(id=goal_id, user_id=user.id).first()
    if not goal:
        return jsonify({'error': 'Goal not found'}), 404

    data = request.json or {}
    if not data.get('date'):
        return jsonify({'error': 'date is required'}), 400
    try:
        task = build_task(user.id, data, goal_id=goal.id)
    except ValueError as exc:
        return jsonify({'error': str(exc)}), 400
    db.session.add(task)
    db.session.commit()
    return jsonify(task.to_dict()), 201


# Tasks API
@app.route('/api/tasks', methods=['GET'])
def tasks_for_day():
    user = get_current_user()
    if not user:
        return _no_user()
    day = _request_day(_local_now())
    if not day:
        return jsonify({'error': 'Invalid date'}), 400
    return jsonify([t.to_dict() for t in list_tasks_for_date(user, day)])


@app.route('/api/tasks/<int:task_id>', methods=['PUT', 'DELETE'])
def handle_task(task_id):
    user = get_current_user()
    if not user:
        return _no_user()
    task = Task.query.filter_by(id=task_id, user_id=user.id).first()
    if not task:
        return jsonify({'error': 'Task not found'}), 404

    if request.method == 'DELETE':
        db.session.delete(task)
        db.session.commit()
        return jsonify({'deleted': task_id})

    data = request.json or {}
    if 'completed' in data:
        task.completed = parse_bool(data.get('completed'))
    if 'notes' in data:
        task.notes = (data.get('notes') or '').strip() or None
    if 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            return jsonify({'error': 'Title cannot be empty'}), 400
        task.title = title
    if 'type' in data:
        task.type = normalize_task_type(data.get('type'), default=task.type)
    if 'date' in data:
        day = parse_day_value(data.get('date'))
        if not day:
            return jsonify({'error': 'Invalid date'}), 400
        task.date = day
    if 'position' in data:
        try:
            task.start_time = parse_time_str(time_for_drop(data.get('position')))
        except (TypeError, ValueError):
            return jsonify({'error': 'Invalid position'}), 400
    elif 'start_time' in data:
        start = parse_time_str(data.get('start_time'))
        if data.get('start_time') and not start:
            return jsonify({'error': 'Invalid start_time'}), 400
        task.start_time = start
    if 'end_time' in data:
        end = parse_time_str(data.get('end_time'))
        if data.get('end_time') and not end:
            return jsonify({'error': 'Invalid end_time'}), 400
        task.end_time = end

    db.session.commit()
    return jsonify(task.to_dict())


@app.route('/api/timeline')
def timeline():
    user = get_current_user()
    if not user:
        return _no_user()
    local_now = _local_now()
    day = _request_day(local_now)
    if not day:
        return jsonify({'error': 'Invalid date'}), 400
    now = local_now
    if request.args.get('now'):
        now = normalize_clock_string(request.args.get('now'))
        if not now:
            return jsonify({'error': 'now must be a clock time (HH:MM)'}), 400

    day_tasks = list_tasks_for_date(user, day)
    goal_roads = [
        (goal.id, goal.title, [t for t in goal.tasks if t.date == day])
        for goal in list_goals(user)
    ]
    payload = build_road_system(day_tasks, goal_roads, now)
    payload['date'] = day.isoformat()
    return jsonify(payload)


@app.route('/api/progress')
def progress_report():
    user = get_current_user()
    if not user:
        return _no_user()
    day = _request_day(_local_now())
    if not day:
        return jsonify({'error': 'Invalid date'}), 400
    tasks = list_tasks_for_date(user, day)
    summary = summarize_progress(tasks)
    summary['date'] = day.isoformat()
    summary['tasks'] = [t.to_dict() for t in tasks]
    return jsonify(summary)


# Preferences API
@app.route('/api/preferences', methods=['GET', 'PUT', 'DELETE'])
def handle_preferences():
    user = get_current_user()
    if not user:
        return _no_user()
    prefs = UserPreferences.query.filter_by(user_id=user.id).first()

    if request.method == 'GET':
        return jsonify(prefs.to_dict() if prefs else None)

    if request.method == 'DELETE':
        if prefs:
            db.session.delete(prefs)
            db.session.commit()
        return jsonify({'deleted': bool(prefs)})

    data = request.json or {}
    text = data.get('preferences_text')
    if not isinstance(text, str):
        return jsonify({'error': 'preferences_text is required'}), 400
    if prefs:
        prefs.preferences_text = text
    else:
        prefs = UserPreferences(user_id=user.id, preferences_text=text)
        db.session.add(prefs)
    db.session.commit()
    return jsonify(prefs.to_dict())


# Import API
@app.route('/api/import/ics', methods=['POST'])
def import_ics():
    user = get_current_user()
    if not user:
        return _no_user()

    upload = request.files.get('file')
    if upload is not None:
        content = upload.read()
        check = validate_ics_upload(
            upload.filename,
            len(content),
            upload.mimetype,
            max_bytes=app.config['ICS_MAX_BYTES'],
        )
        if not check.is_valid:
            return jsonify({'error': check.error}), 400
    else:
        content = (request.json or {}).get('content') if request.is_json else request.get_data(as_text=True)
        if not content:
            return jsonify({'error': 'Upload a .ics file or send calendar content'}), 400

    try:
        result = parse_ics(
            content,
            tz=app.config['APP_TIMEZONE'],
            default_months=app.config['DEFAULT_RECURRENCE_MONTHS'],
        )
    except IcsParseError as exc:
        app.logger.warning("Calendar import failed for user %s: %s", user.id, exc)
        return jsonify({'error': 'Could not read calendar file', 'detail': str(exc)}), 422
    return jsonify(result.to_dict())


@app.route('/api/import/text', methods=['POST'])
def import_text():
    user = get_current_user()
    if not user:
        return _no_user()
    if not is_ai_configured():
        return jsonify({'error': 'AI event parsing is not configured (OPENAI_API_KEY missing)'}), 503

    data = request.json or {}
    now = _local_now()
    prefs = UserPreferences.query.filter_by(user_id=user.id).first()
    context = UserContext(
        current_date=now.date(),
        timezone=app.config['APP_TIMEZONE'],
        goals=[{'id': g.id, 'title': g.title} for g in list_goals(user)],
        existing_tasks=[t.to_dict() for t in list_tasks_for_date(user, now.date())],
        preferences_text=prefs.preferences_text if prefs else None,
    )
    result = parse_events_with_ai(data.get('text'), context)
    return jsonify(result.to_dict())


@app.route('/api/import/accept', methods=['POST'])
def accept_import():
    """Persist the accepted drafts of an import as tasks; rejected drafts are dropped."""
    user = get_current_user()
    if not user:
        return _no_user()

    data = request.json or {}
    raw_drafts = data.get('drafts')
    if not isinstance(raw_drafts, list) or not raw_drafts:
        return jsonify({'error': 'drafts array required'}), 400
    try:
        drafts = [CalendarEventDraft.from_dict(d) for d in raw_drafts]
    except (TypeError, ValueError) as exc:
        return jsonify({'error': str(exc)}), 400

    overrides = data.get('overrides') or {}
    if not isinstance(overrides, dict):
        return jsonify({'error': 'overrides must be an object keyed by draft id'}), 400
    rejected = set(str(i) for i in (data.get('rejected') or []))
    review = DraftReview(drafts)
    try:
        for draft in drafts:
            if draft.id in rejected:
                review.reject(draft.id)
            else:
                override = overrides.get(draft.id)
                review.accept(draft.id, DraftOverride.from_dict(override) if override else None)
    except (DraftDecisionError, TypeError, ValueError) as exc:
        return jsonify({'error': str(exc)}), 400

    # Expand everything before writing anything so a bad range blocks the whole batch.
    planned = []
    try:
        for draft in review.accepted():
            payloads = draft_to_task_payloads(draft, app.config['DEFAULT_RECURRENCE_MONTHS'])
            planned.append((draft, payloads))
    except InvalidRangeError as exc:
        return jsonify({'error': str(exc)}), 400
    except ValueError as exc:
        return jsonify({'error': f'Invalid recurrence: {exc}'}), 400

    created = []
    try:
        for draft, payloads in planned:
            goal = resolve_import_goal(
                user,
                goal_id=draft.goal_id if draft.goal_id is not None else data.get('goal_id'),
                goal_title=draft.goal_title or data.get('goal_title'),
            )
            created.extend(persist_task_payloads(user, payloads, goal, commit=False))
        db.session.commit()
    except LookupError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 404
    except ValueError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400

    app.logger.info(
        "Import accepted for user %s: %s drafts -> %s tasks, %s rejected",
        user.id, len(planned), len(created), len(review.rejected_ids())
    )
    return jsonify({
        'created': [t.to_dict() for t in created],
        'accepted': len(planned),
        'rejected': review.rejected_ids(),
    }), 201


if __name__ == '__main__':
    app.run(host='0.0.0.0', debug=True)
