"""Shared fixtures: application on in-memory SQLite, users, logged-in clients.

HTTP tests must not run inside a pushed app context: Flask-Login caches the
request user on `g`, which lives on the app context and would leak between
clients. Service-level tests use the `ctx` fixture instead.
"""

import pytest

from claimdesk import create_app
from claimdesk.enums import Role
from claimdesk.extensions import db
from claimdesk.models import User
from claimdesk.security import ActorContext


PASSWORD = "s3cret-pass"


@pytest.fixture
def app():
    app = create_app("config.TestConfig")
    with app.app_context():
        db.create_all()
        for username, role in (
            ("manager", Role.MANAGER),
            ("agent", Role.AGENT),
            ("other_agent", Role.AGENT),
        ):
            user = User(username=username, role=role, is_active=True)
            user.set_password(PASSWORD)
            db.session.add(user)
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


def _user_id(app, username: str) -> int:
    with app.app_context():
        return User.query.filter_by(username=username).one().id


@pytest.fixture
def manager_id(app) -> int:
    return _user_id(app, "manager")


@pytest.fixture
def agent_id(app) -> int:
    return _user_id(app, "agent")


@pytest.fixture
def other_agent_id(app) -> int:
    return _user_id(app, "other_agent")


@pytest.fixture
def manager(manager_id) -> ActorContext:
    return ActorContext(actor_id=manager_id, role=Role.MANAGER, username="manager")


@pytest.fixture
def agent(agent_id) -> ActorContext:
    return ActorContext(actor_id=agent_id, role=Role.AGENT, username="agent")


@pytest.fixture
def other_agent(other_agent_id) -> ActorContext:
    return ActorContext(actor_id=other_agent_id, role=Role.AGENT, username="other_agent")


def _login(app, username: str):
    client = app.test_client()
    resp = client.post("/auth/login", json={"username": username, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def manager_client(app):
    return _login(app, "manager")


@pytest.fixture
def agent_client(app):
    return _login(app, "agent")


@pytest.fixture
def other_agent_client(app):
    return _login(app, "other_agent")
