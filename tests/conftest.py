import pytest
from datetime import timedelta
from flask import g

from qrcheckin import create_app
from qrcheckin.extensions import db as _db
from qrcheckin.models import User, Event, Attendee, ActivityLog
from qrcheckin.services.attendee_service import AttendeeService
from qrcheckin.utils.helpers import utcnow


@pytest.fixture(scope='session')
def app():
    """Create and configure a test Flask app instance"""
    flask_app = create_app('testing')

    # Test requests reuse the fixture's app context, so g outlives a request;
    # drop the user Flask-Login cached there by an earlier request.
    @flask_app.before_request
    def _forget_cached_user():
        g.pop('_login_user', None)

    with flask_app.app_context():
        _db.create_all()
        yield flask_app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the app"""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before a test"""
    with app.app_context():
        _db.session.query(ActivityLog).delete()
        _db.session.query(Attendee).delete()
        _db.session.query(Event).delete()
        _db.session.query(User).delete()
        _db.session.commit()

        yield _db.session

        _db.session.rollback()


def _make_user(session, name, email, role, password='password123'):
    user = User(name=name, email=email, role=role)
    user.set_password(password)
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, 'Admin', 'admin@test.com', 'admin', 'admin12345')


@pytest.fixture
def organizer_user(db_session):
    return _make_user(db_session, 'Olivia Organizer', 'organizer@test.com', 'organizer')


@pytest.fixture
def other_organizer(db_session):
    return _make_user(db_session, 'Oscar Organizer', 'organizer2@test.com', 'organizer')


@pytest.fixture
def staff_user(db_session):
    return _make_user(db_session, 'Sam Staff', 'staff@test.com', 'staff')


@pytest.fixture
def attendee_user(db_session):
    return _make_user(db_session, 'Andy Attendee', 'andy@test.com', 'attendee')


@pytest.fixture
def event(db_session, organizer_user):
    ev = Event(
        name='Tech Conference',
        description='Annual conference',
        date=utcnow() + timedelta(days=10),
        venue='Main Hall',
        capacity=100,
        organizer_id=organizer_user.id,
    )
    db_session.add(ev)
    db_session.commit()
    return ev


@pytest.fixture
def attendee(event):
    created, error = AttendeeService().create_attendee('Jane Doe', 'jane@example.com', event.id)
    assert error is None
    return created


def login(client, email, password='password123'):
    return client.post('/api/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def organizer_client(client, organizer_user):
    assert login(client, organizer_user.email).status_code == 200
    return client


@pytest.fixture
def staff_client(client, staff_user):
    assert login(client, staff_user.email).status_code == 200
    return client


@pytest.fixture
def admin_client(client, admin_user):
    assert login(client, admin_user.email, 'admin12345').status_code == 200
    return client
