# qrcheckin/services/token_service.py
"""
Payload codec: AttendeeToken <-> encrypted QR payload.

Canonical plaintext (field order fixed, no whitespace):

    {"eventId":"3","attendeeId":"42","timestamp":1718000000000}

`timestamp` is milliseconds since the Unix epoch. There is no version
field; changing this layout invalidates every printed code.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from qrcheckin.exceptions import DecodeError
from qrcheckin.services.cipher_service import AesCbcCipher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttendeeToken:
    event_id: int
    attendee_id: int
    issued_at: datetime = None


# ── Token policies ────────────────────────────────────────────────────────────

class MaxAgePolicy:
    """Reject tokens issued more than `max_age` seconds ago."""

    def __init__(self, max_age, clock=None):
        self.max_age = float(max_age)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __call__(self, token):
        if token.issued_at is None:
            raise DecodeError('QR code has no issue time')
        age = (self._clock() - token.issued_at).total_seconds()
        if age > self.max_age:
            raise DecodeError('QR code has expired')


# ── Helpers ───────────────────────────────────────────────────────────────────

def _to_millis(dt):
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _parse_id(value, field):
    if value in (None, '', 0):
        raise DecodeError(f'QR code is missing {field}')
    if isinstance(value, bool):
        raise DecodeError(f'QR code has an invalid {field}')
    try:
        return int(str(value))
    except ValueError:
        raise DecodeError(f'QR code has an invalid {field}')


class TokenCodec:
    """
    Flask-style extension: the cipher key is derived once in init_app()
    and shared read-only by every request afterwards.
    """

    def __init__(self, app=None, cipher=None, policies=None):
        self.cipher   = cipher
        self.policies = list(policies or [])
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.cipher = AesCbcCipher.from_passphrase(
            app.config['QR_SECRET_KEY'],
            app.config.get('QR_KDF_SALT', 'salt'),
        )
        self.policies = []
        max_age = app.config.get('QR_TOKEN_MAX_AGE')
        if max_age:
            self.policies.append(MaxAgePolicy(max_age))

        app.extensions['qr_token_codec'] = self
        logger.info("QR token codec ready (expiry=%s)", max_age or 'never')

    # ── Encode ────────────────────────────────────────────────────────────────

    def encode(self, event_id, attendee_id, issued_at=None):
        """Serialize and encrypt an attendee/event pair into a QR payload."""
        if self.cipher is None:
            raise RuntimeError("TokenCodec used before init_app()")

        issued_at = issued_at or datetime.now(timezone.utc)
        plaintext = json.dumps(
            {
                'eventId':    str(event_id),
                'attendeeId': str(attendee_id),
                'timestamp':  _to_millis(issued_at),
            },
            separators=(',', ':'),
        )
        return self.cipher.encrypt(plaintext)

    # ── Decode ────────────────────────────────────────────────────────────────

    def decode(self, payload):
        """
        Decrypt and parse a QR payload.

        Raises:
            DecodeError: payload cannot be decrypted, is not a JSON object,
                         lacks eventId/attendeeId, or fails a token policy.
        """
        if self.cipher is None:
            raise RuntimeError("TokenCodec used before init_app()")

        plaintext = self.cipher.decrypt(payload)

        try:
            data = json.loads(plaintext)
        except ValueError:
            raise DecodeError('QR code content is not readable')
        if not isinstance(data, dict):
            raise DecodeError('QR code content is not readable')

        issued_at = None
        timestamp = data.get('timestamp')
        if timestamp is not None:
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                raise DecodeError('QR code has an invalid timestamp')
            try:
                issued_at = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                raise DecodeError('QR code has an invalid timestamp')

        token = AttendeeToken(
            event_id=_parse_id(data.get('eventId'), 'eventId'),
            attendee_id=_parse_id(data.get('attendeeId'), 'attendeeId'),
            issued_at=issued_at,
        )

        for policy in self.policies:
            policy(token)

        return token
