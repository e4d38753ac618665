from functools import wraps
from flask import jsonify
from flask_login import current_user


def role_required(*roles):
    """Decorator to restrict an API route to the given roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'message': 'Unauthorized'}), 401

            if current_user.role not in roles:
                return jsonify({'success': False, 'message': 'Access denied'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Decorator for admin-only routes"""
    return role_required('admin')(f)


def organizer_required(f):
    """Organizers and admins manage events, attendees and users"""
    return role_required('admin', 'organizer')(f)


def scanner_required(f):
    """Anyone allowed to scan codes at the door"""
    return role_required('admin', 'organizer', 'staff')(f)
