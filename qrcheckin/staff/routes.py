# qrcheckin/staff/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

from qrcheckin.exceptions import InvalidImageError, QRNotFoundError
from qrcheckin.services import checkin_service
from qrcheckin.services.checkin_service import CheckInService
from qrcheckin.services.qr_decoder import QRDecoder
from qrcheckin.utils.decorators import scanner_required
from qrcheckin.utils.security import checkin_rate_limit
from qrcheckin.utils.validators import allowed_file


staff_bp = Blueprint('staff', __name__, url_prefix='/api/attendees')


OUTCOME_STATUS = {
    checkin_service.CHECKED_IN:         200,
    checkin_service.ALREADY_CHECKED_IN: 400,
    checkin_service.INVALID_CODE:       400,
    checkin_service.FORBIDDEN:          403,
    checkin_service.NOT_FOUND:          404,
    checkin_service.ERROR:              500,
}


def _respond(result, **extra):
    body = result.to_dict()
    body.update(extra)
    return jsonify(body), OUTCOME_STATUS[result.outcome]


# ── Check-in ──────────────────────────────────────────────────────────────────

@staff_bp.route('/check-in', methods=['POST'])
@login_required
@scanner_required
@checkin_rate_limit()
def check_in():
    data = request.get_json(silent=True) or {}
    qr_code = data.get('qrCode')
    if not qr_code or not isinstance(qr_code, str):
        return jsonify({'success': False, 'message': 'QR code is required'}), 400

    result = CheckInService().check_in(qr_code, actor=current_user)
    return _respond(result)


@staff_bp.route('/check-in/image', methods=['POST'])
@login_required
@scanner_required
@checkin_rate_limit()
def check_in_image():
    """Check in from an uploaded photo of a QR code, with image recovery."""
    upload = request.files.get('image')
    if not upload or not upload.filename:
        return jsonify({'success': False, 'message': 'An image file is required'}), 400
    if not allowed_file(upload.filename):
        return jsonify({'success': False, 'message': 'Unsupported image type'}), 400

    try:
        decoder = QRDecoder.from_config(current_app.config)
        decoded = decoder.decode(decoder.read_image(upload.read()))
    except InvalidImageError as e:
        return jsonify({'success': False, 'message': e.message}), 400
    except QRNotFoundError as e:
        current_app.logger.info("No QR code in upload %s", upload.filename)
        return jsonify({'success': False, 'message': e.message}), 422

    result = CheckInService().check_in(decoded.text, actor=current_user)
    return _respond(result, strategy=decoded.strategy)
