import json

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from qrcheckin.extensions import db, login_manager
from qrcheckin.utils.helpers import utcnow, format_datetime, get_time_ago


ROLES = ('organizer', 'staff', 'attendee', 'admin')


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id            = db.Column(db.Integer, primary_key=True)
    name          = db.Column(db.String(100), nullable=False)
    email         = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role          = db.Column(db.String(20), default='attendee', nullable=False)
    is_active     = db.Column(db.Boolean, default=True)
    created_at    = db.Column(db.DateTime, default=utcnow)

    # Relationships
    organized_events = db.relationship('Event', back_populates='organizer', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id':        self.id,
            'name':      self.name,
            'email':     self.email,
            'role':      self.role,
            'isActive':  self.is_active,
            'createdAt': format_datetime(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'


class Event(db.Model):
    __tablename__ = 'events'

    id           = db.Column(db.Integer, primary_key=True)
    name         = db.Column(db.String(200), nullable=False)
    description  = db.Column(db.Text)
    date         = db.Column(db.DateTime, nullable=False, index=True)
    venue        = db.Column(db.String(200), nullable=False)
    capacity     = db.Column(db.Integer, nullable=False)
    organizer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at   = db.Column(db.DateTime, default=utcnow)

    # Relationships
    organizer = db.relationship('User', back_populates='organized_events')
    attendees = db.relationship(
        'Attendee', back_populates='event',
        lazy='dynamic', cascade='all, delete-orphan'
    )

    @property
    def attendee_count(self):
        return self.attendees.count()

    @property
    def checked_in_count(self):
        return self.attendees.filter_by(checked_in=True).count()

    def to_dict(self):
        return {
            'id':          self.id,
            'name':        self.name,
            'description': self.description,
            'date':        format_datetime(self.date),
            'venue':       self.venue,
            'capacity':    self.capacity,
            'organizerId': self.organizer_id,
        }

    def __repr__(self):
        return f'<Event {self.name}>'


class Attendee(db.Model):
    __tablename__ = 'attendees'

    id            = db.Column(db.Integer, primary_key=True)
    name          = db.Column(db.String(100), nullable=False)
    email         = db.Column(db.String(120), nullable=False)
    event_id      = db.Column(db.Integer, db.ForeignKey('events.id'), nullable=False, index=True)
    # Hex ciphertext of the attendee token; set once right after insert
    qr_code       = db.Column(db.String(512), unique=True)
    checked_in    = db.Column(db.Boolean, default=False, nullable=False)
    checked_in_at = db.Column(db.DateTime)
    created_at    = db.Column(db.DateTime, default=utcnow)

    event = db.relationship('Event', back_populates='attendees')

    def to_dict(self):
        return {
            'id':          self.id,
            'name':        self.name,
            'email':       self.email,
            'eventId':     self.event_id,
            'qrCode':      self.qr_code,
            'checkedIn':   bool(self.checked_in),
            'checkedInAt': format_datetime(self.checked_in_at),
        }

    def __repr__(self):
        return f'<Attendee {self.id} Event:{self.event_id} [{"in" if self.checked_in else "out"}]>'


class ActivityLog(db.Model):
    """Audit trail for check-ins, rejected scans and attendee/event changes."""
    __tablename__ = 'activity_log'

    id            = db.Column(db.Integer, primary_key=True)
    activity_type = db.Column(db.String(64), nullable=False, index=True)
    user_id       = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    details       = db.Column(db.Text, nullable=True)
    metadata_json = db.Column(db.Text, default='{}')
    created_at    = db.Column(db.DateTime, default=utcnow)

    user = db.relationship('User', backref=db.backref('activity_logs', lazy='dynamic'))

    @property
    def time_ago(self):
        return get_time_ago(self.created_at)

    def to_dict(self):
        return {
            'id':           self.id,
            'activityType': self.activity_type,
            'userId':       self.user_id,
            'details':      self.details,
            'metadata':     json.loads(self.metadata_json or '{}'),
            'createdAt':    format_datetime(self.created_at),
            'timeAgo':      self.time_ago,
        }

    def __repr__(self):
        return f'<ActivityLog {self.activity_type} by user {self.user_id}>'
