from flask import current_app, jsonify
from qrcheckin.extensions import limiter


def rate_limit_error_handler(e):
    """Custom error handler for rate limit exceeded"""
    return jsonify({
        'success': False,
        'error': 'Rate limit exceeded',
        'message': str(e.description)
    }), 429


# Rate limiting decorators; limits are read from config at request time

def login_rate_limit():
    """Strict rate limit for login attempts"""
    return limiter.limit(lambda: current_app.config.get('LOGIN_RATE_LIMIT', '5 per minute'))


def checkin_rate_limit():
    """Door scanners post many codes in a burst"""
    return limiter.limit(lambda: current_app.config.get('CHECKIN_RATE_LIMIT', '120 per minute'))


def registration_rate_limit():
    """Moderate rate limit for sign-ups"""
    return limiter.limit("10 per minute")
