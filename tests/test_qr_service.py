import io
import zipfile
from types import SimpleNamespace

import pytest
from PIL import Image

from qrcheckin.exceptions import QRExportError
from qrcheckin.services.qr_service import QRService
from qrcheckin.utils.validators import sanitize_attendee_filename


@pytest.fixture
def service():
    return QRService(workers=2)


def _attendee(id, name, qr_code='a1b2c3d4'):
    return SimpleNamespace(id=id, name=name, qr_code=qr_code)


class TestRender:

    def test_default_size_and_mode(self, service):
        img = service.render('deadbeef' * 8)
        assert img.size == (512, 512)
        assert img.mode == 'RGB'

    def test_custom_size(self, service):
        assert service.render('payload', size=256).size == (256, 256)

    def test_quiet_zone_is_white(self, service):
        img = service.render('payload')
        assert img.getpixel((0, 0)) == (255, 255, 255)
        assert img.getpixel((511, 511)) == (255, 255, 255)

    def test_only_black_and_white_pixels(self, service):
        colours = {c for _, c in service.render('payload').getcolors(maxcolors=16)}
        assert colours <= {(0, 0, 0), (255, 255, 255)}

    def test_png_bytes(self, service):
        png = service.render_png('payload')
        assert png[:8] == b'\x89PNG\r\n\x1a\n'
        assert Image.open(io.BytesIO(png)).size == (512, 512)

    def test_data_uri(self, service):
        assert service.render_data_uri('payload').startswith('data:image/png;base64,')

    def test_empty_payload_rejected(self, service):
        with pytest.raises(ValueError):
            service.render('')

    def test_unknown_error_correction_rejected(self):
        with pytest.raises(ValueError):
            QRService(error_correction='X')

    def test_from_config(self, app):
        service = QRService.from_config(app.config)
        assert (service.error_correction, service.size, service.margin) == ('H', 512, 4)


class TestExportNames:

    @pytest.mark.parametrize('name,expected', [
        ('Jane Doe', 'jane_doe'),
        ("O'Brien-Smith", 'o_brien_smith'),
        ('Zoë Smith', 'zo__smith'),
        ('ABC123', 'abc123'),
        ('', ''),
    ])
    def test_sanitize(self, name, expected):
        assert sanitize_attendee_filename(name) == expected

    def test_export_filename(self):
        assert QRService.export_filename(_attendee(17, 'Jane Doe')) == 'jane_doe-17.png'


class TestExportArchive:

    def test_one_png_per_attendee_in_order(self, service):
        attendees = [_attendee(i, f'Guest {i}', f'{i:02x}' * 16) for i in range(1, 6)]
        data, errors = service.export_archive(attendees)

        assert errors == []
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = archive.namelist()
            assert names == [f'qr-codes/guest_{i}-{i}.png' for i in range(1, 6)]
            png = archive.read(names[0])
        assert png[:4] == b'\x89PNG'

    def test_failing_item_skipped_and_reported(self, service):
        attendees = [_attendee(1, 'Good'), _attendee(2, 'Broken', qr_code=None), _attendee(3, 'Fine')]
        data, errors = service.export_archive(attendees)

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.namelist() == ['qr-codes/good-1.png', 'qr-codes/fine-3.png']
        assert len(errors) == 1
        assert 'Broken' in errors[0]

    def test_nothing_rendered_raises(self, service):
        with pytest.raises(QRExportError):
            service.export_archive([_attendee(1, 'Broken', qr_code='')])
