import threading

import pytest

from qrcheckin import create_app
from qrcheckin.config.settings import config, TestingConfig
from qrcheckin.extensions import db, token_codec
from qrcheckin.models import Attendee, ActivityLog, Event, User
from qrcheckin.services import checkin_service
from qrcheckin.services.checkin_service import CheckInService
from qrcheckin.utils.helpers import utcnow


@pytest.fixture
def service(app):
    return CheckInService()


class TestCheckIn:
    """Check-in state transition"""

    def test_first_scan_checks_in(self, service, attendee, staff_user):
        result = service.check_in(attendee.qr_code, actor=staff_user)

        assert result.success is True
        assert result.outcome == checkin_service.CHECKED_IN
        assert result.message.lower() == 'check-in successful'
        assert result.attendee.id == attendee.id

        stored = db.session.get(Attendee, attendee.id)
        assert stored.checked_in is True
        assert stored.checked_in_at is not None
        assert stored.checked_in_at >= stored.created_at

    def test_second_scan_reports_already_checked_in(self, service, attendee, staff_user):
        service.check_in(attendee.qr_code, actor=staff_user)
        first_time = db.session.get(Attendee, attendee.id).checked_in_at

        result = service.check_in(attendee.qr_code, actor=staff_user)

        assert result.success is False
        assert result.outcome == checkin_service.ALREADY_CHECKED_IN
        assert 'already checked in' in result.message.lower()
        assert result.attendee.id == attendee.id
        assert db.session.get(Attendee, attendee.id).checked_in_at == first_time

    @pytest.mark.parametrize('payload', ['', 'garbage-string', 'abcdef0123'])
    def test_invalid_code(self, service, db_session, payload):
        result = service.check_in(payload)
        assert result.success is False
        assert result.outcome == checkin_service.INVALID_CODE
        assert result.message.lower() == 'invalid qr code'
        assert result.attendee is None

    def test_valid_code_for_unknown_attendee(self, service, event):
        payload = token_codec.encode(event.id, 999999)
        result = service.check_in(payload)

        assert result.success is False
        assert result.outcome == checkin_service.NOT_FOUND
        assert result.message.lower() == 'attendee not found'
        assert ActivityLog.query.filter_by(activity_type='checkin_not_found').count() == 1

    def test_event_id_must_match(self, service, attendee):
        payload = token_codec.encode(attendee.event_id + 1, attendee.id)
        assert service.check_in(payload).outcome == checkin_service.NOT_FOUND

    def test_organizer_of_another_event_is_forbidden(self, service, attendee, other_organizer):
        result = service.check_in(attendee.qr_code, actor=other_organizer)
        assert result.outcome == checkin_service.FORBIDDEN
        assert db.session.get(Attendee, attendee.id).checked_in is False

    def test_owning_organizer_allowed(self, service, attendee, organizer_user):
        assert service.check_in(attendee.qr_code, actor=organizer_user).success is True

    def test_check_in_is_audited(self, service, attendee, staff_user):
        service.check_in(attendee.qr_code, actor=staff_user)
        entry = ActivityLog.query.filter_by(activity_type='attendee_checked_in').one()
        assert entry.user_id == staff_user.id
        assert entry.to_dict()['metadata'] == {'event_id': attendee.event_id,
                                               'attendee_id': attendee.id}

    def test_result_serialisation(self, service, attendee):
        body = service.check_in(attendee.qr_code).to_dict()
        assert body['success'] is True
        assert body['attendee']['checkedIn'] is True
        assert body['attendee']['qrCode'] == attendee.qr_code
        assert 'outcome' not in body

    def test_store_failure_rolls_back(self, service, attendee, monkeypatch):
        def broken_commit():
            raise RuntimeError('database is locked')

        monkeypatch.setattr(db.session, 'commit', broken_commit)
        result = service.check_in(attendee.qr_code)
        monkeypatch.undo()

        assert result.success is False
        assert result.outcome == checkin_service.ERROR
        assert result.message.lower() == 'failed to check in attendee'
        assert db.session.get(Attendee, attendee.id).checked_in is False


class TestConcurrentCheckIn:
    """Simultaneous scans of one code produce exactly one success"""

    @pytest.fixture
    def file_app(self, tmp_path, monkeypatch):
        # In-memory SQLite is a single shared connection; racing needs real ones
        race_config = type('RaceConfig', (TestingConfig,), {
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.db'}",
            'SQLALCHEMY_ENGINE_OPTIONS': {
                'connect_args': {'timeout': 30, 'check_same_thread': False},
            },
        })
        monkeypatch.setitem(config, 'race', race_config)
        return create_app('race')

    def test_exactly_one_success(self, file_app):
        with file_app.app_context():
            organizer = User(name='Race Organizer', email='race@test.com', role='organizer')
            organizer.set_password('password123')
            db.session.add(organizer)
            db.session.commit()

            event = Event(name='Race', venue='Hall', capacity=10,
                          date=utcnow(), organizer_id=organizer.id)
            db.session.add(event)
            db.session.commit()

            attendee = Attendee(name='Racer', email='racer@test.com', event_id=event.id)
            db.session.add(attendee)
            db.session.flush()
            attendee.qr_code = token_codec.encode(event.id, attendee.id)
            db.session.commit()
            payload, attendee_id = attendee.qr_code, attendee.id

        threads = 8
        barrier = threading.Barrier(threads)
        outcomes = []
        lock = threading.Lock()

        def scan():
            with file_app.app_context():
                barrier.wait()
                result = CheckInService().check_in(payload)
                with lock:
                    outcomes.append(result.outcome)
                db.session.remove()

        workers = [threading.Thread(target=scan) for _ in range(threads)]
        for t in workers:
            t.start()
        for t in workers:
            t.join()

        assert outcomes.count(checkin_service.CHECKED_IN) == 1
        assert outcomes.count(checkin_service.ALREADY_CHECKED_IN) == threads - 1

        with file_app.app_context():
            stored = db.session.get(Attendee, attendee_id)
            assert stored.checked_in is True
            db.session.remove()
            db.drop_all()
