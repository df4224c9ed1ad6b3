"""
Shared fixtures.

Every test gets a fresh app bound to an in-memory SQLite database. The
Celery mail task is replaced by ``Mailbox`` so nothing reaches a broker;
set ``mailbox.fail = True`` to simulate an unreachable broker.

Service-level tests use ``ctx`` (an app context that stays pushed for the
whole test). HTTP tests use ``client`` and must not hold an app context
open, otherwise Flask-Login's cached user leaks between requests.
"""

from datetime import date

import pytest

from config import Config
from reimburse import create_app
from reimburse.constants import Role
from reimburse.extensions import db
from reimburse.models import User, Category, Policy
from reimburse.services import notification_service
from reimburse.utils import format_public_id

PASSWORD = 'secret123'
EXPENSE_DATE = date(2024, 3, 15)


class InMemoryConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    MAIL_SUPPRESS_SEND = True
    LOG_LEVEL = 'WARNING'


class Mailbox:
    """Stands in for the send_async_email task."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def delay(self, subject, recipient, body, is_html=True):
        if self.fail:
            raise ConnectionError('broker unreachable')
        self.sent.append({'subject': subject, 'recipient': recipient, 'body': body})

    def to(self, recipient):
        return [m for m in self.sent if m['recipient'] == recipient]

    def subjects(self):
        return [m['subject'] for m in self.sent]


@pytest.fixture
def mailbox(monkeypatch):
    box = Mailbox()
    monkeypatch.setattr(notification_service, 'send_async_email', box)
    return box


@pytest.fixture
def app(tmp_path, mailbox):
    app = create_app(InMemoryConfig)
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(role, name=None, email=None):
    name = name or f"{role.title()} User"
    user = User(name=name, email=email or f"{role}@acme.com", role=role, department='Operations')
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def make_category(name='Travel', **fields):
    category = Category(name=name, **fields)
    db.session.add(category)
    db.session.commit()
    return category


def make_policy(name='Test Policy', category=None, **rules):
    fields = {'allowed_vendors': [], 'blocked_vendors': [], 'requires_manager_approval': False, **rules}
    policy = Policy(name=name, description=f"{name} rules", category=category, **fields)
    db.session.add(policy)
    db.session.flush()
    policy.policy_id = format_public_id('POL', policy.id, 3)
    db.session.commit()
    return policy


@pytest.fixture
def users(ctx):
    return {role: make_user(role) for role in Role.ALL}


@pytest.fixture
def category(ctx):
    return make_category()


@pytest.fixture
def seeded(app):
    """Users and a category for HTTP tests. Returns plain ids and emails."""
    with app.app_context():
        created = {role: make_user(role) for role in Role.ALL}
        travel = make_category()
        return {
            'emails': {role: u.email for role, u in created.items()},
            'ids': {role: u.id for role, u in created.items()},
            'category_id': travel.id,
        }


def login(client, email, password=PASSWORD):
    response = client.post('/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response
