import re
from flask import current_app

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
MIN_PASSWORD_LENGTH = 8


def validate_email(email):
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_password(password):
    """
    At least MIN_PASSWORD_LENGTH characters with a letter and a digit.
    Returns (ok, message).
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return False, "Password must contain at least one letter and one number"
    return True, None


def allowed_file(filename):
    """Upload names must carry one of ALLOWED_EXTENSIONS."""
    allowed = current_app.config.get('ALLOWED_EXTENSIONS', {'png', 'jpg', 'jpeg', 'gif'})
    _, dot, extension = (filename or '').rpartition('.')
    return bool(dot) and extension.lower() in allowed


def sanitize_attendee_filename(name):
    """Lower-case attendee name with every non-alphanumeric character replaced by '_'."""
    return re.sub(r'[^a-z0-9]', '_', name or '', flags=re.IGNORECASE | re.ASCII).lower()
