import asyncio
import io

import pytest
from PIL import Image

from image_moderation import create_app, db
from image_moderation.services.error_tracker import error_tracker

ADMIN_HEADERS = {'X-Admin-Key': 'test-admin-key', 'X-Admin-Id': 'admin-1'}


def image_bytes(size=(200, 150), color=(30, 120, 200), fmt='PNG'):
    im = Image.new('RGB', size, color=color)
    buf = io.BytesIO()
    im.save(buf, format=fmt)
    return buf.getvalue()


def suspicious_png(width=100, height=100):
    """Skin-toned top half over a dark band: trips the pixel heuristic"""
    im = Image.new('RGB', (width, height), color=(30, 120, 200))
    skin_rows = int(height * 0.45)
    dark_rows = int(height * 0.50)
    im.paste((200, 120, 90), (0, 0, width, skin_rows))
    im.paste((0, 0, 0), (0, skin_rows, width, skin_rows + dark_rows))
    buf = io.BytesIO()
    im.save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture()
def app(tmp_path):
    error_tracker.reset()
    app = create_app('testing', config_overrides={
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'moderation.db'}",
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def service(app):
    return app.extensions['image_moderation']


@pytest.fixture()
def run(app):
    """Run a coroutine to completion inside an app context"""
    def _run(coro):
        with app.app_context():
            return asyncio.run(coro)
    return _run


@pytest.fixture()
def store_image(app, service, run):
    """Write bytes through storage and create a pending record for them"""
    def _store(data, mime_type='image/png', listing_id=1):
        key, path, url = service.storage.save(data, mime_type)
        image = run(service.db_service.create_image_record(
            listing_id=listing_id,
            image_url=url,
            storage_key=key,
            original_filename=key.rsplit('/', 1)[-1],
            mime_type=mime_type,
            file_size=len(data)
        ))
        return image, path
    return _store
