from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

from deadbyai.services.registry import RoomRegistry

rooms = RoomRegistry()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, judge=None):
    """Build the Flask app.

    ``judge`` overrides the judging oracle built from the config (an
    OpenAI-compatible chat endpoint).
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from deadbyai.main import main
    flask_app.register_blueprint(main)

    from deadbyai.api.rooms import api
    flask_app.register_blueprint(api, url_prefix='/api')

    from deadbyai.socketio_events import register_socketio_handlers, SocketChannel

    # Countdowns and judge calls run as Socket.IO background tasks. In tests
    # they stay in the caller's thread unless explicitly enabled.
    background = None
    if not flask_app.config.get('TESTING') or flask_app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        background = socketio.start_background_task
    rooms.init_app(flask_app, judge=judge, channel_factory=SocketChannel,
                   background=background, sleep=socketio.sleep)

    register_socketio_handlers()

    return flask_app
