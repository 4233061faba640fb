import threading

from flask import current_app

MODERATORS_ROOM = 'moderators'


class WebSocketNotifier:
    """Handles WebSocket notifications for moderation updates"""

    def send_update_async(self, image, status, result, total_time):
        """Send WebSocket update in background thread"""
        try:
            update_data = {
                'image_id': image['id'],
                'listing_id': image['listing_id'],
                'image_url': image['image_url'],
                'status': status,
                'score': result.score,
                'reason': result.reason,
                'categories': result.categories,
                'processing_time': total_time or 0.0,
                'timestamp': image.get('moderated_at')
            }

            app = current_app._get_current_object()
            threading.Thread(
                target=self._send_websocket_update,
                args=(app, update_data),
                daemon=True
            ).start()
        except Exception as e:
            current_app.logger.error(f"Failed to start WebSocket thread: {str(e)}")

    def _send_websocket_update(self, app, update_data):
        """Send WebSocket update with proper Flask context"""
        with app.app_context():
            try:
                from image_moderation import socketio
                socketio.emit('moderation_update', update_data, room=MODERATORS_ROOM)
            except Exception as e:
                app.logger.error(f"WebSocket error: {str(e)}")
