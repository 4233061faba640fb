import os

import pytest
from conftest import image_bytes
from PIL import Image

from image_moderation.services.image_storage import LocalImageStorage, UploadRejected
from image_moderation.services.watermark import add_watermark, watermark_path_for


def test_save_writes_under_listings(tmp_path):
    storage = LocalImageStorage(str(tmp_path))
    key, path, url = storage.save(b'data', 'image/webp')

    assert key.startswith('listings/') and key.endswith('.webp')
    assert url == f'/uploads/{key}'
    with open(path, 'rb') as f:
        assert f.read() == b'data'


def test_each_save_gets_a_fresh_key(tmp_path):
    storage = LocalImageStorage(str(tmp_path))
    assert storage.save(b'a', 'image/png')[0] != storage.save(b'a', 'image/png')[0]


def test_upload_limits(tmp_path):
    storage = LocalImageStorage(str(tmp_path), max_file_size=10)
    with pytest.raises(UploadRejected, match='exceeds'):
        storage.validate_upload('image/png', 11)
    with pytest.raises(UploadRejected, match='not supported'):
        storage.validate_upload('image/gif', 5)
    storage.validate_upload('image/jpeg', 10)


def test_keys_cannot_escape_the_upload_folder(tmp_path):
    storage = LocalImageStorage(str(tmp_path / 'uploads'))
    with pytest.raises(UploadRejected):
        storage.resolve_path('../secrets.txt')


def test_watermark_path():
    assert watermark_path_for('/x/listings/abc.png') == '/x/listings/abc_wm.jpg'


def test_watermark_writes_jpeg(tmp_path):
    source = tmp_path / 'photo.png'
    source.write_bytes(image_bytes(size=(300, 200)))

    output = add_watermark(str(source), watermark_path_for(str(source)))

    with Image.open(output) as img:
        assert img.format == 'JPEG'
        assert img.size == (300, 200)


def test_watermark_failure_copies_original(tmp_path):
    source = tmp_path / 'broken.png'
    source.write_bytes(b'not an image')
    output = str(tmp_path / 'broken_wm.jpg')

    add_watermark(str(source), output)

    assert os.path.exists(output)
    with open(output, 'rb') as f:
        assert f.read() == b'not an image'
