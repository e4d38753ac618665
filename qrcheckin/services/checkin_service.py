# qrcheckin/services/checkin_service.py
import logging
from dataclasses import dataclass

from qrcheckin.exceptions import DecodeError
from qrcheckin.extensions import db, token_codec
from qrcheckin.models import Attendee
from qrcheckin.utils.activity import log_activity
from qrcheckin.utils.helpers import utcnow

logger = logging.getLogger(__name__)


# Outcomes the HTTP layer maps onto status codes
CHECKED_IN         = 'checked_in'
ALREADY_CHECKED_IN = 'already_checked_in'
INVALID_CODE       = 'invalid_code'
NOT_FOUND          = 'not_found'
FORBIDDEN          = 'forbidden'
ERROR              = 'error'


@dataclass
class ScanResult:
    success: bool
    message: str
    outcome: str
    attendee: Attendee = None

    def to_dict(self):
        data = {'success': self.success, 'message': self.message}
        if self.attendee is not None:
            data['attendee'] = self.attendee.to_dict()
        return data


class CheckInService:
    """Turn a scanned QR payload into a one-time check-in."""

    def __init__(self, codec=None):
        self.codec = codec or token_codec

    def check_in(self, payload, actor=None):
        """
        Check in the attendee a QR payload belongs to.

        The not-checked-in → checked-in transition is a single conditional
        UPDATE, so concurrent scans of one code produce exactly one success.

        Args:
            payload: EncryptedPayload string read from the QR code
            actor  : the User performing the scan; organizers may only
                     check in attendees of their own events

        Returns:
            ScanResult
        """
        try:
            token = self.codec.decode(payload)
        except DecodeError as e:
            logger.info("Rejected QR code: %s", e.message)
            return ScanResult(False, 'Invalid QR code', INVALID_CODE)

        actor_id = actor.id if actor is not None else None

        try:
            attendee = Attendee.query.filter_by(
                id=token.attendee_id,
                event_id=token.event_id
            ).first()

            if not attendee:
                log_activity(
                    activity_type='checkin_not_found',
                    user_id=actor_id,
                    details=f"Scanned code for unknown attendee {token.attendee_id}",
                    metadata={'event_id': token.event_id, 'attendee_id': token.attendee_id}
                )
                logger.warning("Check-in for unknown attendee %s (event %s)",
                               token.attendee_id, token.event_id)
                return ScanResult(False, 'Attendee not found', NOT_FOUND)

            if (actor is not None and actor.role == 'organizer'
                    and attendee.event.organizer_id != actor.id):
                return ScanResult(
                    False,
                    'You do not have permission to check in attendees for this event',
                    FORBIDDEN
                )

            if attendee.checked_in:
                return ScanResult(False, 'Attendee already checked in',
                                  ALREADY_CHECKED_IN, attendee)

            checked_in_at = max(utcnow(), attendee.created_at or utcnow())
            updated = (
                Attendee.query
                .filter_by(id=attendee.id, event_id=attendee.event_id, checked_in=False)
                .update(
                    {'checked_in': True, 'checked_in_at': checked_in_at},
                    synchronize_session=False
                )
            )
            db.session.commit()
            db.session.refresh(attendee)

            if not updated:
                # Another scan won the conditional update
                return ScanResult(False, 'Attendee already checked in',
                                  ALREADY_CHECKED_IN, attendee)

        except Exception as e:
            db.session.rollback()
            logger.error("Check-in failed: %s", e)
            return ScanResult(False, 'Failed to check in attendee', ERROR)

        logger.info("Attendee %s checked in to event %s", attendee.id, attendee.event_id)
        log_activity(
            activity_type='attendee_checked_in',
            user_id=actor_id,
            details=f"{attendee.name} checked in to '{attendee.event.name}'",
            metadata={'event_id': attendee.event_id, 'attendee_id': attendee.id}
        )
        return ScanResult(True, 'Check-in successful', CHECKED_IN, attendee)
