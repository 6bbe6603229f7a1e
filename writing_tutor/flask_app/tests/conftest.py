import os

# The app module reads FLASK_ENV at import time
os.environ["FLASK_ENV"] = "testing"

import pytest

from writing_tutor.flask_app.app import app as flask_app
from writing_tutor.flask_app.models import db, User
from writing_tutor.flask_app.services.rubric_scorer import HeuristicScorer
from writing_tutor.flask_app.services.session_engine import WritingSessionEngine
from writing_tutor.flask_app.services.session_store import SessionStore


@pytest.fixture
def app():
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _make_user(email, role="user"):
    user = User(email=email, password_hash="not-a-real-hash", name=email.split("@")[0], role=role)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def student(app):
    return _make_user("student@example.com")


@pytest.fixture
def other_student(app):
    return _make_user("other@example.com")


@pytest.fixture
def teacher(app):
    return _make_user("teacher@example.com", role="teacher")


@pytest.fixture
def engine(app):
    return WritingSessionEngine(store=SessionStore(), scorer=HeuristicScorer())


@pytest.fixture
def login(client):
    """Put a user id in the cookie session without going through bcrypt."""
    def _login(user):
        with client.session_transaction() as sess:
            sess["user_id"] = user.id
    return _login
