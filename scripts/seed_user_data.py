#!/usr/bin/env python3
"""Seed a demo user with a few goals and dated tasks.

Run from the repository root:  python -m scripts.seed_user_data --username demo
"""
import argparse
from datetime import date, timedelta

from app import app
from models import db, User, Goal, Task
from services.goal_service import create_goal


def sample_goals(start: date):
    day = start.isoformat()
    tomorrow = (start + timedelta(days=1)).isoformat()
    return [
        {
            'title': 'Get Fit',
            'description': 'Build a steady exercise routine',
            'tasks': [
                {'title': 'Morning run', 'type': 'task', 'date': day, 'start_time': '07:00', 'end_time': '07:45'},
                {'title': 'Gym session', 'type': 'event', 'date': tomorrow, 'start_time': '18:00', 'end_time': '19:00'},
            ],
        },
        {
            'title': 'Learn Spanish',
            'description': None,
            'tasks': [
                {'title': 'Vocabulary review', 'type': 'task', 'date': day, 'start_time': '12:30'},
                {'title': 'Conversation class', 'type': 'event', 'date': day, 'start_time': '19:00', 'end_time': '20:00'},
            ],
        },
        {
            'title': 'Healthy Routine',
            'description': 'Sleep, meals and downtime',
            'tasks': [
                {'title': 'Breakfast', 'type': 'eat', 'date': day, 'start_time': '08:00'},
                {'title': 'Wind down', 'type': 'selfcare', 'date': day, 'start_time': '22:00'},
                {'title': 'Sleep', 'type': 'sleep', 'date': day, 'start_time': '23:00'},
            ],
        },
    ]


def seed(username: str, start: date, reset: bool) -> User:
    user = User.query.filter_by(username=username).first()
    if not user:
        user = User(username=username)
        db.session.add(user)
        db.session.commit()
        print(f"[add] user {username} (id={user.id})")
    elif reset:
        Task.query.filter_by(user_id=user.id).delete()
        Goal.query.filter_by(user_id=user.id).delete()
        db.session.commit()
        print(f"[reset] cleared goals and tasks for {username}")

    for sample in sample_goals(start):
        goal = create_goal(user, sample['title'], sample['description'], sample['tasks'])
        print(f"[add] goal {goal.title} with {len(sample['tasks'])} tasks")
    return user


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo goals and tasks.")
    parser.add_argument("--username", default="demo")
    parser.add_argument("--date", default=None, help="Day to schedule on (YYYY-MM-DD); defaults to today")
    parser.add_argument("--reset", action="store_true", help="Delete the user's goals and tasks first")
    args = parser.parse_args()

    start = date.fromisoformat(args.date) if args.date else date.today()
    with app.app_context():
        user = seed(args.username, start, args.reset)
    print(f"Done. Select the user with POST /api/set-user/{user.id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
