class CheckinError(Exception):
    """Base class for errors raised by the check-in pipeline."""

    default_message = 'Check-in error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DecodeError(CheckinError):
    """Ciphertext or token payload could not be turned into an AttendeeToken."""

    default_message = 'Invalid QR code'


class QRNotFoundError(CheckinError):
    """No QR code was found in an image after every recovery strategy ran."""

    default_message = (
        'No QR code found in the image. Try a clearer image or different lighting. '
        'Make sure the QR code is well-lit and in focus.'
    )


class InvalidImageError(CheckinError):
    default_message = 'Could not read the uploaded image'


class QRExportError(CheckinError):
    default_message = 'Failed to generate any QR codes'


class InvalidScannerTransition(CheckinError):
    default_message = 'Invalid scanner state transition'
