import logging
import os
import uuid

logger = logging.getLogger(__name__)

EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
}


class UploadRejected(ValueError):
    """An uploaded file fails the size or type checks"""


class LocalImageStorage:
    """Stores uploads on local disk under <base_dir>/<folder>/<uuid>.<ext>"""

    def __init__(self, base_dir, base_url='/uploads', max_file_size=10 * 1024 * 1024,
                 allowed_mime_types=None):
        self.base_dir = base_dir
        self.base_url = base_url.rstrip('/')
        self.max_file_size = max_file_size
        self.allowed_mime_types = list(allowed_mime_types or EXTENSIONS)

    def validate_upload(self, mime_type, size):
        """Reject files by declared type and byte size before they touch disk"""
        if size > self.max_file_size:
            raise UploadRejected(
                f"File size exceeds {self.max_file_size // (1024 * 1024)}MB limit")
        if mime_type not in self.allowed_mime_types:
            raise UploadRejected(
                'File type not supported. Only JPEG, PNG, and WebP are allowed')

    def save(self, data, mime_type, folder='listings'):
        """Write bytes and return (key, absolute path, public url)"""
        self.validate_upload(mime_type, len(data))

        upload_dir = os.path.join(self.base_dir, folder)
        os.makedirs(upload_dir, exist_ok=True)

        key = f"{folder}/{uuid.uuid4().hex}.{EXTENSIONS.get(mime_type, 'bin')}"
        path = self.resolve_path(key)
        with open(path, 'wb') as f:
            f.write(data)
        logger.debug(f"Stored upload {key} ({len(data)} bytes)")
        return key, path, f"{self.base_url}/{key}"

    def resolve_path(self, key):
        """Absolute path for a storage key; keys may not escape the base dir"""
        base = os.path.abspath(self.base_dir)
        path = os.path.abspath(os.path.join(base, key))
        if os.path.commonpath([base, path]) != base:
            raise UploadRejected(f"Storage key escapes upload folder: {key}")
        return path
