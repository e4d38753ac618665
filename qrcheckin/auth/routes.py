# qrcheckin/auth/routes.py
from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from qrcheckin.services.auth_service import AuthService
from qrcheckin.utils.activity import log_activity
from qrcheckin.utils.security import login_rate_limit, registration_rate_limit


auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


# ── Register ──────────────────────────────────────────────────────────────────

@auth_bp.route('/register', methods=['POST'])
@registration_rate_limit()
def register():
    data = request.get_json(silent=True) or {}

    user, error, status = AuthService.register_user(
        email=data.get('email'),
        password=data.get('password'),
        name=data.get('name'),
        role=data.get('role'),
    )
    if error:
        return jsonify({'success': False, 'message': error}), status

    login_user(user)
    log_activity(
        activity_type='user_registered',
        user_id=user.id,
        details=f"{user.name} registered as {user.role}",
        metadata={'role': user.role}
    )
    return jsonify({'success': True, 'user': user.to_dict()}), 201


# ── Login / Logout ────────────────────────────────────────────────────────────

@auth_bp.route('/login', methods=['POST'])
@login_rate_limit()
def login():
    data = request.get_json(silent=True) or {}

    user = AuthService.verify_credentials(data.get('email'), data.get('password'))
    if not user:
        return jsonify({'success': False, 'message': 'Invalid email or password'}), 401

    login_user(user, remember=bool(data.get('remember', False)))
    log_activity(
        activity_type='user_login',
        user_id=user.id,
        details=f"{user.name} logged in",
        metadata={'role': user.role}
    )
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True, 'message': 'Logged out'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict()})
