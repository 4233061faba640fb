"""Shared-key admin access for the review and monitoring surfaces"""
import hmac
from functools import wraps
from typing import Callable, Optional

from flask import current_app, request

from image_moderation.utils.error_handlers import api_error_response


def is_valid_admin_key(admin_key: Optional[str]) -> bool:
    expected = current_app.config.get('ADMIN_API_KEY')
    if not expected or not admin_key or not isinstance(admin_key, str):
        return False
    return hmac.compare_digest(admin_key.strip(), expected)


def require_admin(f: Callable) -> Callable:
    """Decorator to require the admin key and an admin id on a request"""
    @wraps(f)
    async def decorated_function(*args, **kwargs):
        if not current_app.config.get('ADMIN_API_KEY'):
            return api_error_response('Admin access is not configured', 503)

        admin_key = request.headers.get('X-Admin-Key')
        if not admin_key:
            return api_error_response('Admin key required', 401)
        if not is_valid_admin_key(admin_key):
            return api_error_response('Invalid admin key', 401)

        admin_id = (request.headers.get('X-Admin-Id') or '').strip()
        if not admin_id or len(admin_id) > 255:
            return api_error_response('X-Admin-Id header required', 400)

        # Add to request context
        request.admin_id = admin_id

        return await f(*args, **kwargs)
    return decorated_function
