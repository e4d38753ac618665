# qrcheckin/organizer/routes.py
from flask import Blueprint, request, jsonify, current_app, Response
from flask_login import login_required, current_user

from qrcheckin.exceptions import QRExportError
from qrcheckin.services.attendee_service import AttendeeService
from qrcheckin.services.event_service import EventService
from qrcheckin.services.qr_service import QRService
from qrcheckin.utils.decorators import organizer_required, scanner_required
from qrcheckin.utils.validators import sanitize_attendee_filename


organizer_bp = Blueprint('organizer', __name__, url_prefix='/api')


def _event_or_404(event_id):
    event = EventService.get_event_by_id(event_id)
    if not event:
        return None, (jsonify({'success': False, 'message': 'Event not found'}), 404)
    return event, None


def _owns(event):
    return current_user.role == 'admin' or event.organizer_id == current_user.id


def _error_status(message):
    """Map a service error message onto an HTTP status."""
    if message.endswith('not found'):
        return 404
    if message.startswith('You do not have permission'):
        return 403
    if message.startswith('Failed'):
        return 500
    return 400


# ── Events ────────────────────────────────────────────────────────────────────

@organizer_bp.route('/events')
@login_required
def list_events():
    events = EventService.get_events_for(current_user)
    return jsonify({'success': True, 'events': [e.to_dict() for e in events]})


@organizer_bp.route('/events', methods=['POST'])
@login_required
def create_event():
    if current_user.role != 'organizer':
        return jsonify({'success': False, 'message': 'Only organizers can create events'}), 403

    data = request.get_json(silent=True) or {}
    event, error = EventService.create_event(
        organizer_id=current_user.id,
        name=data.get('name'),
        description=data.get('description'),
        date=data.get('date'),
        venue=data.get('venue'),
        capacity=data.get('capacity'),
    )
    if error:
        return jsonify({'success': False, 'message': error}), _error_status(error)

    return jsonify({'success': True, 'event': event.to_dict()}), 201


@organizer_bp.route('/events/<int:event_id>')
@login_required
def get_event(event_id):
    event, not_found = _event_or_404(event_id)
    if not_found:
        return not_found
    return jsonify({'success': True, 'event': event.to_dict()})


@organizer_bp.route('/events/<int:event_id>', methods=['PUT'])
@login_required
@organizer_required
def update_event(event_id):
    data = request.get_json(silent=True) or {}
    event, error = EventService.update_event(
        event_id,
        current_user,
        name=data.get('name'),
        description=data.get('description'),
        date=data.get('date'),
        venue=data.get('venue'),
        capacity=data.get('capacity'),
    )
    if error:
        return jsonify({'success': False, 'message': error}), _error_status(error)

    return jsonify({'success': True, 'event': event.to_dict()})


@organizer_bp.route('/events/<int:event_id>', methods=['DELETE'])
@login_required
@organizer_required
def delete_event(event_id):
    success, message = EventService.delete_event(event_id, current_user)
    if not success:
        return jsonify({'success': False, 'message': message}), _error_status(message)

    return jsonify({'success': True, 'message': message})


@organizer_bp.route('/events/<int:event_id>/attendees')
@login_required
@scanner_required
def event_attendees(event_id):
    event, not_found = _event_or_404(event_id)
    if not_found:
        return not_found

    checked_in = request.args.get('checkedIn')
    if checked_in is not None:
        checked_in = checked_in.lower() in ('1', 'true', 'yes')

    attendees = AttendeeService.get_event_attendees(event.id, checked_in=checked_in)
    return jsonify({'success': True, 'attendees': [a.to_dict() for a in attendees]})


@organizer_bp.route('/events/<int:event_id>/stats')
@login_required
@scanner_required
def event_stats(event_id):
    stats = EventService.get_event_statistics(event_id)
    if stats is None:
        return jsonify({'success': False, 'message': 'Event not found'}), 404
    return jsonify({'success': True, 'stats': stats})


@organizer_bp.route('/events/<int:event_id>/qr-export')
@login_required
@organizer_required
def export_qr_codes(event_id):
    """ZIP of every attendee's QR code, qr-codes/<name>-<id>.png"""
    event, not_found = _event_or_404(event_id)
    if not_found:
        return not_found
    if not _owns(event):
        return jsonify({'success': False, 'message': 'Access denied'}), 403

    attendees = AttendeeService.get_event_attendees(event.id)
    if not attendees:
        return jsonify({'success': False, 'message': 'No attendees to export'}), 400

    try:
        archive, errors = QRService.from_config(current_app.config).export_archive(attendees)
    except QRExportError as e:
        current_app.logger.error("QR export for event %s failed", event.id)
        return jsonify({'success': False, 'message': e.message}), 500

    filename = f"{sanitize_attendee_filename(event.name)}-qr-codes.zip"
    response = Response(archive, mimetype='application/zip')
    response.headers['Content-Disposition'] = f'attachment; filename="{filename}"'
    response.headers['X-Export-Errors'] = str(len(errors))
    return response


# ── Attendees ─────────────────────────────────────────────────────────────────

@organizer_bp.route('/attendees', methods=['POST'])
@login_required
@organizer_required
def create_attendee():
    data = request.get_json(silent=True) or {}

    attendee, error = AttendeeService().create_attendee(
        name=data.get('name'),
        email=data.get('email'),
        event_id=data.get('eventId'),
        actor=current_user,
    )
    if error:
        return jsonify({'success': False, 'message': error}), _error_status(error)

    return jsonify({'success': True, 'attendee': attendee.to_dict()}), 201


@organizer_bp.route('/attendees/bulk', methods=['POST'])
@login_required
@organizer_required
def bulk_create_attendees():
    data = request.get_json(silent=True) or {}
    rows = data.get('attendees')
    if not isinstance(rows, list) or not rows:
        return jsonify({'success': False, 'message': 'Valid attendees array is required'}), 400

    results = AttendeeService().bulk_create(rows, actor=current_user)
    return jsonify({
        'success': True,
        'message': (f"Successfully added {results['success_count']} attendees "
                    f"with {len(results['errors'])} errors"),
        'results': results,
    }), 201


@organizer_bp.route('/attendees/<int:attendee_id>', methods=['DELETE'])
@login_required
@organizer_required
def delete_attendee(attendee_id):
    success, message = AttendeeService().delete_attendee(attendee_id, actor=current_user)
    if not success:
        return jsonify({'success': False, 'message': message}), _error_status(message)

    return jsonify({'success': True, 'message': message})


@organizer_bp.route('/attendees/<int:attendee_id>/qr.png')
@login_required
@scanner_required
def attendee_qr(attendee_id):
    attendee = AttendeeService.get_attendee(attendee_id)
    if not attendee or not attendee.qr_code:
        return jsonify({'success': False, 'message': 'Attendee not found'}), 404

    png = QRService.from_config(current_app.config).render_png(attendee.qr_code)
    response = Response(png, mimetype='image/png')
    if request.args.get('download'):
        response.headers['Content-Disposition'] = (
            f'attachment; filename="{QRService.export_filename(attendee)}"'
        )
    return response
