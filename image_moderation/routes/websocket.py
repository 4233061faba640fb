import time
from typing import Any, Dict

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from image_moderation import socketio
from image_moderation.services.moderation.websocket_notifier import MODERATORS_ROOM
from image_moderation.utils.admin_auth import is_valid_admin_key

# Rate limiting for room join attempts
_join_attempts = {}
_MAX_ATTEMPTS_PER_MINUTE = 10


def _check_rate_limit(identifier: str) -> bool:
    """Check if join attempts exceed rate limit"""
    current_time = time.time()
    minute_ago = current_time - 60

    # Clean old entries
    _join_attempts[identifier] = [
        attempt for attempt in _join_attempts.get(identifier, [])
        if attempt > minute_ago
    ]

    if len(_join_attempts[identifier]) >= _MAX_ATTEMPTS_PER_MINUTE:
        return False

    _join_attempts[identifier].append(current_time)
    return True


@socketio.on('connect')
def handle_connect() -> None:
    current_app.logger.debug(f"WebSocket connected: session {request.sid}")
    emit('connected', {'message': 'Connected to image moderation'})


@socketio.on('disconnect')
def handle_disconnect() -> None:
    current_app.logger.debug(f"WebSocket disconnected: session {request.sid}")


@socketio.on('join_moderators')
def handle_join_moderators(data: Dict[str, Any]) -> None:
    """Join the moderators room to receive moderation_update events"""
    client_ip = request.environ.get('REMOTE_ADDR', 'unknown')
    if not _check_rate_limit(client_ip):
        current_app.logger.warning(f"Moderator join rate limited for IP {client_ip}")
        emit('error', {'message': 'Too many attempts. Please try again later.'})
        return

    admin_key = data.get('admin_key') if isinstance(data, dict) else None
    if not is_valid_admin_key(admin_key):
        current_app.logger.warning(f"Rejected moderator join from IP {client_ip}")
        emit('error', {'message': 'Invalid admin key'})
        return

    join_room(MODERATORS_ROOM)
    current_app.logger.info(f"Session {request.sid} joined {MODERATORS_ROOM}")
    emit('joined_moderators', {'room': MODERATORS_ROOM})


@socketio.on('leave_moderators')
def handle_leave_moderators(data: Dict[str, Any] = None) -> None:
    leave_room(MODERATORS_ROOM)
    emit('left_moderators', {'room': MODERATORS_ROOM})
