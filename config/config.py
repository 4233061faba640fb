import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get(
        'SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL') or 'sqlite:///image_moderation.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    # Admin surface: shared key checked on every admin endpoint
    ADMIN_API_KEY = os.environ.get('ADMIN_API_KEY')

    # DeepAI NSFW detector; no key disables the external check entirely
    DEEPAI_API_KEY = os.environ.get('DEEPAI_API_KEY')
    DEEPAI_API_URL = os.environ.get(
        'DEEPAI_API_URL', 'https://api.deepai.org/api/nsfw-detector')
    EXTERNAL_CLASSIFIER_TIMEOUT = float(os.environ.get(
        'EXTERNAL_CLASSIFIER_TIMEOUT', '8.0'))

    # Score thresholds
    MODERATION_FLAG_THRESHOLD = float(os.environ.get(
        'MODERATION_FLAG_THRESHOLD', '0.5'))
    MODERATION_NSFW_THRESHOLD = float(os.environ.get(
        'MODERATION_NSFW_THRESHOLD', '0.7'))

    # Validator bounds
    IMAGE_MIN_DIMENSION = int(os.environ.get('IMAGE_MIN_DIMENSION', '50'))
    IMAGE_MAX_DIMENSION = int(os.environ.get('IMAGE_MAX_DIMENSION', '10000'))
    PIXEL_SAMPLE_STRIDE = int(os.environ.get('PIXEL_SAMPLE_STRIDE', '10'))

    # Uploads
    UPLOAD_FOLDER = os.environ.get(
        'UPLOAD_FOLDER', os.path.join(os.getcwd(), 'uploads'))
    UPLOAD_URL_PREFIX = '/uploads'
    MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB per file
    MAX_FILES_PER_REQUEST = 10
    ALLOWED_MIME_TYPES = ['image/jpeg', 'image/png', 'image/webp']

    # Run moderation after the upload response instead of inline
    MODERATE_IN_BACKGROUND = os.environ.get(
        'MODERATE_IN_BACKGROUND', 'true').lower() == 'true'

    # Post-approval watermarking
    WATERMARK_APPROVED_IMAGES = os.environ.get(
        'WATERMARK_APPROVED_IMAGES', 'false').lower() == 'true'
    WATERMARK_TEXT = os.environ.get('WATERMARK_TEXT', 'EthioMarket.com')

    # Thread pools
    DB_THREAD_POOL_WORKERS = int(os.environ.get('DB_THREAD_POOL_WORKERS', '8'))
    MODERATION_WORKERS = int(os.environ.get('MODERATION_WORKERS', '4'))

    # Database connection preference
    USE_DIRECT_POSTGRES = bool(os.environ.get(
        'DATABASE_URL', '').startswith('postgresql://'))

    # SQLAlchemy connection pool configuration
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,                    # Number of connections to maintain in pool
        'pool_timeout': 30,                # Seconds to wait for connection from pool
        'pool_recycle': 1800,              # Seconds before recreating connection (30 min)
        'pool_pre_ping': True,             # Verify connections before use
        'max_overflow': 10,                # Additional connections beyond pool_size
        'echo': bool(os.environ.get('SQL_DEBUG', False))  # SQL debugging via env var
    }


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False}
    }
    ADMIN_API_KEY = 'test-admin-key'
    DEEPAI_API_KEY = None
    MODERATE_IN_BACKGROUND = False
    WATERMARK_APPROVED_IMAGES = False
    SENTRY_DSN = None


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
