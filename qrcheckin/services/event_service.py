# qrcheckin/services/event_service.py
import logging

from qrcheckin.extensions import db
from qrcheckin.models import Attendee, Event
from qrcheckin.utils.activity import log_activity
from qrcheckin.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


def _can_manage(event, user):
    return user is not None and (user.role == 'admin' or event.organizer_id == user.id)


def _clean_event_fields(name, date, venue, capacity):
    """Returns (name, date, venue, capacity, error)."""
    if not isinstance(name or '', str) or not isinstance(venue or '', str):
        return None, None, None, None, "Name and venue must be text"
    name  = (name or '').strip()
    venue = (venue or '').strip()
    if not name or not date or not venue or not capacity:
        return None, None, None, None, "Name, date, venue, and capacity are required"

    try:
        parsed_date = parse_datetime(date)
    except (TypeError, ValueError):
        return None, None, None, None, "Invalid event date"

    try:
        capacity = int(capacity)
    except (TypeError, ValueError):
        return None, None, None, None, "Capacity must be a number"
    if capacity < 1:
        return None, None, None, None, "Capacity must be at least 1"

    return name, parsed_date, venue, capacity, None


class EventService:

    # ── Read operations ───────────────────────────────────────────────────────

    @staticmethod
    def get_event_by_id(event_id):
        return db.session.get(Event, event_id)

    @staticmethod
    def get_events_for(user):
        """Organizers see their own events, every other role sees all of them."""
        query = Event.query
        if user.role == 'organizer':
            query = query.filter_by(organizer_id=user.id)
        return query.order_by(Event.date.desc()).all()

    # ── Stats ─────────────────────────────────────────────────────────────────

    @staticmethod
    def get_event_statistics(event_id):
        event = db.session.get(Event, event_id)
        if not event:
            return None

        total      = Attendee.query.filter_by(event_id=event_id).count()
        checked_in = Attendee.query.filter_by(event_id=event_id, checked_in=True).count()

        return {
            'eventId':     event.id,
            'capacity':    event.capacity,
            'total':       total,
            'checkedIn':   checked_in,
            'remaining':   total - checked_in,
            'checkInRate': round(checked_in / total * 100, 1) if total else 0.0,
        }

    # ── Write operations ──────────────────────────────────────────────────────

    @staticmethod
    def create_event(organizer_id, name, date, venue, capacity, description=None):
        name, date, venue, capacity, error = _clean_event_fields(name, date, venue, capacity)
        if error:
            return None, error

        try:
            event = Event(
                name=name,
                description=description,
                date=date,
                venue=venue,
                capacity=capacity,
                organizer_id=organizer_id,
            )
            db.session.add(event)
            db.session.commit()
            logger.info("Event created: id=%s name='%s'", event.id, event.name)

        except Exception as e:
            db.session.rollback()
            logger.exception("create_event failed: %s", e)
            return None, "Failed to create event"

        log_activity(
            activity_type='event_created',
            user_id=organizer_id,
            details=f"Event '{event.name}' created",
            metadata={'event_id': event.id}
        )
        return event, None

    @staticmethod
    def update_event(event_id, user, name, date, venue, capacity, description=None):
        """
        Update an event. Only the owning organizer or an admin may edit it.
        Capacity cannot drop below the number of attendees already registered.
        """
        try:
            event = db.session.get(Event, event_id)
            if not event:
                return None, "Event not found"
            if not _can_manage(event, user):
                return None, "You do not have permission to update this event"

            name, date, venue, capacity, error = _clean_event_fields(name, date, venue, capacity)
            if error:
                return None, error

            registered = event.attendee_count
            if capacity < registered:
                return None, f"Capacity cannot be lower than the {registered} registered attendees"

            event.name        = name
            event.description = description
            event.date        = date
            event.venue       = venue
            event.capacity    = capacity

            db.session.commit()
            logger.info("Event updated: id=%s", event.id)
            return event, None

        except Exception as e:
            db.session.rollback()
            logger.exception("update_event failed: %s", e)
            return None, "Failed to update event"

    @staticmethod
    def delete_event(event_id, user):
        """Delete an event together with its attendees."""
        try:
            event = db.session.get(Event, event_id)
            if not event:
                return False, "Event not found"
            if not _can_manage(event, user):
                return False, "You do not have permission to delete this event"

            name = event.name
            Attendee.query.filter_by(event_id=event_id).delete()
            db.session.delete(event)
            db.session.commit()
            logger.info("Event deleted: id=%s", event_id)

        except Exception as e:
            db.session.rollback()
            logger.exception("delete_event failed: %s", e)
            return False, "Failed to delete event"

        log_activity(
            activity_type='event_deleted',
            user_id=user.id,
            details=f"Event '{name}' deleted",
            metadata={'event_id': event_id}
        )
        return True, "Event deleted successfully"
