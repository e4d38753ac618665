import base64
import io
import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor

import qrcode
from PIL import Image

from qrcheckin.exceptions import QRExportError
from qrcheckin.utils.validators import sanitize_attendee_filename

logger = logging.getLogger(__name__)

ERROR_CORRECTION_LEVELS = {
    'L': qrcode.constants.ERROR_CORRECT_L,
    'M': qrcode.constants.ERROR_CORRECT_M,
    'Q': qrcode.constants.ERROR_CORRECT_Q,
    'H': qrcode.constants.ERROR_CORRECT_H,
}

EXPORT_FOLDER = 'qr-codes'


class QRService:
    """QR code rendering for on-screen display, downloads and bulk export"""

    def __init__(self, error_correction='H', size=512, margin=4, box_size=10, workers=4):
        if error_correction not in ERROR_CORRECTION_LEVELS:
            raise ValueError(f"Unknown error correction level: {error_correction}")
        self.error_correction = error_correction
        self.size     = size
        self.margin   = margin
        self.box_size = box_size
        self.workers  = workers

    @classmethod
    def from_config(cls, config):
        return cls(
            error_correction=config.get('QR_ERROR_CORRECTION', 'H'),
            size=config.get('QR_IMAGE_SIZE', 512),
            margin=config.get('QR_BORDER', 4),
            workers=config.get('QR_EXPORT_WORKERS', 4),
        )

    # ── Single code ───────────────────────────────────────────────────────────

    def render(self, payload, error_correction=None, size=None, margin=None):
        """Render `payload` verbatim into an RGB PIL image."""
        if not payload:
            raise ValueError("Cannot render an empty QR payload")

        level = error_correction or self.error_correction
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECTION_LEVELS[level],
            box_size=self.box_size,
            border=self.margin if margin is None else margin,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white").get_image().convert('RGB')

        size = self.size if size is None else size
        if size and img.size != (size, size):
            # Nearest keeps module edges hard
            img = img.resize((size, size), Image.NEAREST)
        return img

    def render_png(self, payload, **options):
        buffer = io.BytesIO()
        self.render(payload, **options).save(buffer, format='PNG')
        return buffer.getvalue()

    def render_data_uri(self, payload, **options):
        """Base64 PNG data URI for embedding in a page."""
        img_str = base64.b64encode(self.render_png(payload, **options)).decode()
        return f"data:image/png;base64,{img_str}"

    # ── Batch export ──────────────────────────────────────────────────────────

    @staticmethod
    def export_filename(attendee):
        return f"{sanitize_attendee_filename(attendee.name)}-{attendee.id}.png"

    def _render_item(self, item):
        name, payload = item
        if not payload:
            raise ValueError("attendee has no QR code")
        return name, self.render_png(payload)

    def export_archive(self, attendees):
        """
        Render one PNG per attendee into a ZIP archive.

        Renders run in parallel; a failing item is skipped and recorded,
        the rest continue.

        Returns:
            (zip_bytes, errors); errors is a list of human-readable strings.

        Raises:
            QRExportError: no image could be produced at all.
        """
        items = [(self.export_filename(a), a.qr_code, a.name) for a in attendees]
        errors = []
        rendered = []

        with ThreadPoolExecutor(max_workers=max(1, self.workers)) as executor:
            futures = [
                (label, executor.submit(self._render_item, (filename, payload)))
                for filename, payload, label in items
            ]
            # Collected in submission order so archive order is stable
            for label, future in futures:
                try:
                    rendered.append(future.result())
                except Exception as e:
                    logger.warning("QR export skipped %s: %s", label, e)
                    errors.append(f"Failed to process QR code for {label}: {e}")

        if not rendered:
            raise QRExportError()

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
            for filename, png in rendered:
                archive.writestr(f"{EXPORT_FOLDER}/{filename}", png)

        logger.info("QR export built: %d images, %d errors", len(rendered), len(errors))
        return buffer.getvalue(), errors
