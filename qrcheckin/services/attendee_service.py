import logging

from qrcheckin.extensions import db, token_codec
from qrcheckin.models import Attendee, Event
from qrcheckin.utils.activity import log_activity
from qrcheckin.utils.validators import validate_email

logger = logging.getLogger(__name__)


def _actor_id(actor):
    return actor.id if actor is not None else None


class AttendeeService:
    """Attendee registration and removal. Every attendee gets its QR payload here."""

    def __init__(self, codec=None):
        self.codec = codec or token_codec

    # ── Create ────────────────────────────────────────────────────────────────

    def _add_attendee(self, name, email, event_id, actor=None):
        """Validate and stage one attendee; caller commits. Returns (attendee, error)."""
        name  = (name or '').strip()
        email = (email or '').strip().lower()

        if not name or not email or not event_id:
            return None, "Name, email, and eventId are required"
        if not validate_email(email):
            return None, f"Invalid email address: {email}"

        try:
            event_id = int(event_id)
        except (TypeError, ValueError):
            return None, "Invalid event ID. Event ID must be a number."

        event = db.session.get(Event, event_id)
        if not event:
            return None, "Event not found"
        if actor is not None and actor.role == 'organizer' and event.organizer_id != actor.id:
            return None, "You do not have permission to add attendees to this event"
        if event.attendees.count() >= event.capacity:
            return None, "Event is at capacity"

        attendee = Attendee(name=name, email=email, event_id=event_id, checked_in=False)
        db.session.add(attendee)
        db.session.flush()   # assigns attendee.id, which the token embeds

        attendee.qr_code = self.codec.encode(event_id, attendee.id)
        return attendee, None

    def create_attendee(self, name, email, event_id, actor=None):
        """
        Register an attendee and issue their QR payload in one transaction.
        Organizers may only add attendees to their own events.
        """
        try:
            attendee, error = self._add_attendee(name, email, event_id, actor)
            if error:
                db.session.rollback()
                return None, error
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error("Attendee creation failed: %s", e)
            return None, "Failed to add attendee"

        logger.info("Attendee %s added to event %s", attendee.id, attendee.event_id)
        log_activity(
            activity_type='attendee_created',
            user_id=_actor_id(actor),
            details=f"{attendee.name} registered for event {attendee.event_id}",
            metadata={'event_id': attendee.event_id, 'attendee_id': attendee.id}
        )
        return attendee, None

    def bulk_create(self, rows, actor=None):
        """
        Import many attendees. A bad row is recorded and skipped, the rest
        are still imported.

        Returns:
            {'success_count': int, 'errors': [str]}
        """
        results = {'success_count': 0, 'errors': []}

        # One commit per row: a failing row only rolls back itself
        for row in rows:
            row   = row if isinstance(row, dict) else {}
            label = row.get('name') or 'unnamed'
            try:
                attendee, error = self._add_attendee(
                    row.get('name'), row.get('email'), row.get('eventId'), actor
                )
                if error:
                    db.session.rollback()
                    results['errors'].append(f"Invalid data for attendee {label}: {error}")
                    continue
                db.session.commit()
                results['success_count'] += 1
            except Exception as e:
                db.session.rollback()
                logger.error("Bulk attendee insert failed for %s: %s", label, e)
                results['errors'].append(f"Failed to add attendee: {label}")

        log_activity(
            activity_type='attendees_imported',
            user_id=_actor_id(actor),
            details=(f"Imported {results['success_count']} attendees "
                     f"with {len(results['errors'])} errors"),
        )
        return results

    # ── Delete ────────────────────────────────────────────────────────────────

    def delete_attendee(self, attendee_id, actor=None):
        try:
            attendee = db.session.get(Attendee, attendee_id)
            if not attendee:
                return False, "Attendee not found"
            if (actor is not None and actor.role == 'organizer'
                    and attendee.event.organizer_id != actor.id):
                return False, "You do not have permission to delete this attendee"

            event_id = attendee.event_id
            db.session.delete(attendee)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error("Attendee deletion failed: %s", e)
            return False, "Failed to delete attendee"

        log_activity(
            activity_type='attendee_deleted',
            user_id=_actor_id(actor),
            details=f"Attendee {attendee_id} removed from event {event_id}",
            metadata={'event_id': event_id, 'attendee_id': attendee_id}
        )
        return True, "Attendee deleted successfully"

    # ── Read ──────────────────────────────────────────────────────────────────

    @staticmethod
    def get_attendee(attendee_id):
        return db.session.get(Attendee, attendee_id)

    @staticmethod
    def get_event_attendees(event_id, checked_in=None):
        query = Attendee.query.filter_by(event_id=event_id)
        if checked_in is not None:
            query = query.filter_by(checked_in=checked_in)
        return query.order_by(Attendee.created_at.asc(), Attendee.id.asc()).all()
