# qrcheckin/utils/seed.py
"""Sample users, events and attendees for local development."""
import logging
from datetime import timedelta

from qrcheckin.extensions import db
from qrcheckin.models import User, Event
from qrcheckin.utils.helpers import utcnow

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    {'email': 'organizer1@test.com', 'name': 'John Organizer', 'role': 'organizer', 'password': 'password123'},
    {'email': 'organizer2@test.com', 'name': 'Sarah Organizer', 'role': 'organizer', 'password': 'password123'},
    {'email': 'staff1@test.com',     'name': 'Mike Staff',     'role': 'staff',     'password': 'password123'},
]

SAMPLE_EVENTS = [
    {'name': 'Python Programming Workshop', 'venue': 'Computer Lab, Building A',
     'description': 'Learn Python from scratch with hands-on projects'},
    {'name': 'AI and Machine Learning Seminar', 'venue': 'Auditorium, Main Building',
     'description': 'Introduction to AI and ML concepts'},
    {'name': 'Tech Conference 2026', 'venue': 'Convention Center',
     'description': 'Annual technology conference'},
]

SAMPLE_ATTENDEES = ['Alice Smith', 'Bob Jones', 'Chen Wei', 'Dana Kowalski', 'Emeka Obi']


def seed_sample_data():
    """Idempotent: existing users and events (matched by email / name) are left alone."""
    from qrcheckin.services.attendee_service import AttendeeService

    created = {'users': 0, 'events': 0, 'attendees': 0}

    for data in SAMPLE_USERS:
        if User.query.filter_by(email=data['email']).first():
            continue
        user = User(email=data['email'], name=data['name'], role=data['role'])
        user.set_password(data['password'])
        db.session.add(user)
        created['users'] += 1
    db.session.commit()

    organizers = User.query.filter_by(role='organizer').order_by(User.id).all()
    if not organizers:
        return created

    service = AttendeeService()
    for i, data in enumerate(SAMPLE_EVENTS):
        if Event.query.filter_by(name=data['name']).first():
            continue
        event = Event(
            name=data['name'],
            description=data['description'],
            venue=data['venue'],
            date=utcnow() + timedelta(days=i * 7 + 5),
            capacity=50 + i * 25,
            organizer_id=organizers[i % len(organizers)].id,
        )
        db.session.add(event)
        db.session.commit()
        created['events'] += 1

        for name in SAMPLE_ATTENDEES:
            email = name.lower().replace(' ', '.') + f'+{event.id}@example.com'
            attendee, error = service.create_attendee(name, email, event.id)
            if error:
                logger.warning("Seed attendee %s skipped: %s", name, error)
                continue
            created['attendees'] += 1

    return created
