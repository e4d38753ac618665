# qrcheckin/admin/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

from qrcheckin.services.auth_service import AuthService
from qrcheckin.utils.activity import log_activity, get_recent_activity
from qrcheckin.utils.decorators import organizer_required, admin_required


admin_bp = Blueprint('admin', __name__, url_prefix='/api')


def _touches_admin(user_id):
    """Admin accounts can only be changed or removed by another admin."""
    if current_user.role == 'admin':
        return False
    target = AuthService.get_user_by_id(user_id)
    return target is not None and target.role == 'admin'


# ── User management ───────────────────────────────────────────────────────────

@admin_bp.route('/users')
@login_required
@organizer_required
def list_users():
    users = AuthService.list_users()
    return jsonify({'success': True, 'users': [u.to_dict() for u in users]})


@admin_bp.route('/users/<int:user_id>')
@login_required
@organizer_required
def get_user(user_id):
    user = AuthService.get_user_by_id(user_id)
    if not user:
        return jsonify({'success': False, 'message': 'User not found'}), 404
    return jsonify({'success': True, 'user': user.to_dict()})


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@login_required
@organizer_required
def update_user(user_id):
    data = request.get_json(silent=True) or {}

    # Only admins hand out the admin role or edit admins
    if current_user.role != 'admin' and (data.get('role') == 'admin' or _touches_admin(user_id)):
        return jsonify({'success': False, 'message': 'Access denied'}), 403

    user, error = AuthService.update_user(
        user_id,
        name=data.get('name'),
        email=data.get('email'),
        role=data.get('role'),
    )
    if error:
        status = 404 if error == 'User not found' else 400
        return jsonify({'success': False, 'message': error}), status

    log_activity(
        activity_type='user_updated',
        user_id=current_user.id,
        details=f"{current_user.name} updated user {user.email}",
        metadata={'target_user_id': user.id, 'role': user.role}
    )
    return jsonify({'success': True, 'user': user.to_dict()})


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required
@organizer_required
def delete_user(user_id):
    if user_id == current_user.id:
        return jsonify({'success': False, 'message': 'You cannot delete your own account'}), 400
    if _touches_admin(user_id):
        return jsonify({'success': False, 'message': 'Access denied'}), 403

    success, message = AuthService.delete_user(user_id)
    if not success:
        status = 404 if message == 'User not found' else 400
        return jsonify({'success': False, 'message': message}), status

    current_app.logger.info("User %s deleted by %s", user_id, current_user.email)
    log_activity(
        activity_type='user_deleted',
        user_id=current_user.id,
        details=f"{current_user.name} deleted user {user_id}",
        metadata={'target_user_id': user_id}
    )
    return jsonify({'success': True, 'message': message})


# ── Audit trail ───────────────────────────────────────────────────────────────

@admin_bp.route('/activity')
@login_required
@admin_required
def activity():
    limit = min(request.args.get('limit', 50, type=int), 500)
    entries = get_recent_activity(limit=limit, activity_type=request.args.get('type'))
    return jsonify({'success': True, 'activity': [a.to_dict() for a in entries]})
