from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

db = SQLAlchemy()


def _clock(value):
    return value.strftime('%H:%M') if value else None


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    goals = db.relationship('Goal', backref='owner', lazy=True, cascade="all, delete-orphan")
    preferences = db.relationship('UserPreferences', backref='user', lazy=True, uselist=False, cascade="all, delete-orphan")


class Goal(db.Model):
    """A destination on the journey; tasks hang off it."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)

    tasks = db.relationship(
        'Task',
        backref='goal',
        lazy=True,
        order_by="[Task.date, Task.start_time]"
    )

    def to_dict(self, include_tasks=False):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_tasks:
            data['tasks'] = [t.to_dict() for t in self.tasks]
        return data


class Task(db.Model):
    """
    A dated stop on a road. Goal is optional; imported events may stand alone.
    Dates/times are naive, in the viewer's wall clock.
    """
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    goal_id = db.Column(db.Integer, db.ForeignKey('goal.id'), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), default='task')  # event | task | goal | sleep | eat | selfcare
    date = db.Column(db.Date, nullable=True)
    start_time = db.Column(db.Time, nullable=True)
    end_time = db.Column(db.Time, nullable=True)
    completed = db.Column(db.Boolean, default=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def time(self):
        return _clock(self.start_time) or '00:00'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'goal_id': self.goal_id,
            'title': self.title,
            'type': self.type,
            'date': self.date.isoformat() if self.date else None,
            'start_time': _clock(self.start_time),
            'end_time': _clock(self.end_time),
            'time': self.time,
            'completed': bool(self.completed),
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class UserPreferences(db.Model):
    """Free-text scheduling preferences, fed to the event extraction prompt."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)
    preferences_text = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'preferences_text': self.preferences_text,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
