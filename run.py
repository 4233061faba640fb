import logging
import os

from image_moderation import create_app, socketio

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
)

# Configure logging to reduce noise
logging.getLogger('werkzeug').setLevel(
    logging.WARNING)  # Reduce Flask dev server logs
logging.getLogger('socketio').setLevel(logging.WARNING)  # Reduce SocketIO logs
logging.getLogger('engineio').setLevel(logging.WARNING)  # Reduce EngineIO logs
logging.getLogger('httpx').setLevel(logging.WARNING)

app = create_app(os.getenv('FLASK_CONFIG') or 'default')


if __name__ == '__main__':
    socketio.run(app, host='0.0.0.0', port=int(os.getenv('PORT', 6217)))
