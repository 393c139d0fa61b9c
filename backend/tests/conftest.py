import os
import sys
import pytest

# Ensure the backend root (containing the `studio_timer` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from studio_timer import create_app, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    LOG_LEVEL = 'DEBUG'
    CORS_ORIGINS = '*'
    TIMERS_PER_ROOM = 2
    ROOM_CODE_LENGTH = 6
    DEFAULT_ROOMS = 'CTRLFR:Control Room FR,CTRLEN:Control Room EN'
    ROOM_IDLE_TTL_SEC = 3600
    TIMER_TICK_INTERVAL_MS = 100
    DISPLAY_PUSH_ENABLED = True
    SSE_HEARTBEAT_SEC = 1
    SUBSCRIBER_TIMEOUT_SEC = 60
    SUBSCRIBER_QUEUE_SIZE = 8


class FakeClock:
    """Wall clock the tests move by hand."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def service(flask_app):
    return flask_app.extensions['studio_timer']


@pytest.fixture()
def clock(service):
    fake = FakeClock()
    service.registry.clock = fake
    service.broadcaster.clock = fake
    return fake


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
