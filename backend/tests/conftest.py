import os
import sys
import pytest

# Ensure the backend root (containing the `deadbyai` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from deadbyai import create_app, rooms, socketio
from deadbyai.errors import JudgeError
from deadbyai.models import Room
from deadbyai.services.judge import Verdict
from deadbyai.services.session import RoomSession
from deadbyai.services.timer import TimerService


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost']
    JUDGE_RETRY_DELAY_SEC = 0
    JUDGE_MAX_ATTEMPTS = 3
    ROOM_REAP_DELAY_SEC = 0


class FakeJudge:
    """Survives every story unless it mentions 'die'. Can be told to fail."""

    def __init__(self, failures=0):
        self.calls = []
        self.failures = failures

    def __call__(self, prompt, entries):
        self.calls.append((prompt, list(entries)))
        if self.failures:
            self.failures -= 1
            raise JudgeError('judge unavailable')
        return {
            e['playerId']: Verdict('die' not in e['story'].lower(), f"{e['playerName']} did a thing.")
            for e in entries
        }


class RecordingChannel:
    """Stands in for the socket gateway; remembers every event."""

    def __init__(self):
        self.events = []

    def broadcast(self, event, payload, skip=None):
        self.events.append(('room', event, payload, skip))

    def send(self, player_id, event, payload):
        self.events.append((player_id, event, payload, None))

    def names(self):
        return [e[1] for e in self.events]

    def last(self, event):
        for target, name, payload, _ in reversed(self.events):
            if name == event:
                return payload
        return None

    def clear(self):
        self.events = []


class DeferredSpawn:
    """Holds background calls until the test releases them."""

    def __init__(self):
        self.calls = []

    def __call__(self, fn, *args):
        self.calls.append((fn, args))

    def run_all(self):
        calls, self.calls = self.calls, []
        for fn, args in calls:
            fn(*args)


@pytest.fixture()
def judge():
    return FakeJudge()


@pytest.fixture()
def flask_app(judge):
    application = create_app(TestConfig, judge=judge)
    with application.app_context():
        yield application
    rooms.close_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass


@pytest.fixture()
def channel():
    return RecordingChannel()


@pytest.fixture()
def timers():
    return TimerService(autostart=False)


@pytest.fixture()
def make_session(channel, timers, judge):
    def make(code='ROOM01', spawn=None, config=None, judge_fn=None):
        settings = {
            'JUDGE_RETRY_DELAY_SEC': 0,
            'JUDGE_MAX_ATTEMPTS': 3,
            'TIME_LIMIT_OPTIONS': (60, 120, 180, 300, 600),
            'DEFAULT_TIME_LIMIT': 120,
        }
        settings.update(config or {})
        kwargs = {}
        if spawn is not None:
            kwargs['spawn'] = spawn
        return RoomSession(Room(code), channel, timers, judge_fn or judge, config=settings, **kwargs)

    return make
