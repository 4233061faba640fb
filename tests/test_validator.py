import pytest
from conftest import image_bytes
from PIL import Image

from image_moderation.services.errors import ImageValidationError
from image_moderation.services.moderation.validator import ImageValidator


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_bytes(data)
    return str(path)


def test_valid_png_passes(tmp_path):
    report = ImageValidator().validate(_write(tmp_path, 'ok.png', image_bytes()))
    assert report.is_valid
    assert report.format == 'PNG'
    assert (report.width, report.height) == (200, 150)
    assert report.details == ['Valid png image: 200x150']


def test_jpeg_and_webp_are_supported(tmp_path):
    validator = ImageValidator()
    assert validator.validate(_write(tmp_path, 'a.jpg', image_bytes(fmt='JPEG'))).is_valid
    assert validator.validate(_write(tmp_path, 'a.webp', image_bytes(fmt='WEBP'))).is_valid


def test_too_small_image_is_invalid(tmp_path):
    report = ImageValidator().validate(_write(tmp_path, 'tiny.png', image_bytes(size=(20, 20))))
    assert not report.is_valid
    assert report.details == ['Image too small: 20x20']


def test_one_short_side_is_enough_to_fail(tmp_path):
    report = ImageValidator().validate(_write(tmp_path, 'strip.png', image_bytes(size=(400, 49))))
    assert not report.is_valid
    assert report.details == ['Image too small: 400x49']


def test_too_large_image_is_invalid(tmp_path):
    validator = ImageValidator(min_dimension=10, max_dimension=100)
    report = validator.validate(_write(tmp_path, 'big.png', image_bytes(size=(101, 60))))
    assert not report.is_valid
    assert report.details == ['Image too large: 101x60']


def test_bounds_are_inclusive(tmp_path):
    validator = ImageValidator(min_dimension=50, max_dimension=60)
    assert validator.validate(_write(tmp_path, 'lo.png', image_bytes(size=(50, 50)))).is_valid
    assert validator.validate(_write(tmp_path, 'hi.png', image_bytes(size=(60, 60)))).is_valid


def test_unsupported_format_is_invalid(tmp_path):
    report = ImageValidator().validate(_write(tmp_path, 'a.gif', image_bytes(fmt='GIF')))
    assert not report.is_valid
    assert report.details == ['Unsupported format: GIF']


def test_garbage_bytes_report_processing_failure(tmp_path):
    report = ImageValidator().validate(_write(tmp_path, 'fake.jpg', b'not an image'))
    assert not report.is_valid
    assert report.details[0].startswith('Image processing failed:')


def test_missing_file_reports_processing_failure(tmp_path):
    report = ImageValidator().validate(str(tmp_path / 'missing.png'))
    assert not report.is_valid
    assert report.details[0].startswith('Image processing failed:')


def test_ensure_valid_raises_with_details(tmp_path):
    with pytest.raises(ImageValidationError) as exc_info:
        ImageValidator().ensure_valid(_write(tmp_path, 'tiny.png', image_bytes(size=(20, 20))))
    assert exc_info.value.message == 'Invalid image format or corrupted file'
    assert exc_info.value.details == ['Image too small: 20x20']


def test_multi_picture_jpeg_is_accepted(tmp_path):
    path = str(tmp_path / 'camera.jpg')
    first = Image.new('RGB', (200, 150), color=(30, 120, 200))
    second = Image.new('RGB', (200, 150), color=(200, 30, 120))
    first.save(path, format='MPO', save_all=True, append_images=[second])
    with Image.open(path) as img:
        assert img.format == 'MPO'

    report = ImageValidator().validate(path)

    assert report.is_valid
    assert report.format == 'JPEG'
    assert report.details == ['Valid jpeg image: 200x150']
