import os

import pytest

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['APP_TIMEZONE'] = 'UTC'

from app import app as flask_app  # noqa: E402
from models import db, User  # noqa: E402


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture
def user(app):
    u = User(username='traveler')
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def client(app, user):
    test_client = app.test_client()
    with test_client.session_transaction() as sess:
        sess['user_id'] = user.id
    return test_client
