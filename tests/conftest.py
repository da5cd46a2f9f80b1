import pytest

from ludo_server import create_app, socketio
from ludo_server.config import Config
from ludo_server.services.room_factory import RoomFactory


class TestConfig(Config):
    TESTING = True
    JWT_SECRET_KEY = 'test-secret-key-long-enough-for-hs256'
    RATELIMIT_ENABLED = False
    SOCKET_AUTH_REQUIRED = False
    ENABLE_BACKGROUND_WORKERS = False


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ScriptedDice:
    """Кубик, выдающий заранее заданные значения."""

    def __init__(self, *values):
        self.values = list(values)

    def push(self, *values):
        self.values.extend(values)

    def __call__(self):
        if not self.values:
            raise AssertionError("dice script exhausted")
        return self.values.pop(0)


class RoomHarness:
    """Комната с подменными часами, кубиком и журналами для unit-тестов."""

    def __init__(self, max_players=4, password=None, settings=None):
        self.clock = FakeClock()
        self.dice = ScriptedDice()
        self.events = []
        self.stats = []
        self.documents = []
        factory = RoomFactory(
            config={'GAME_DURATION_SEC': 600, 'TURN_DURATION_SEC': 15},
            log_event=lambda event_type, message, **kwargs: self.events.append(event_type),
            log_stats=self.stats.append,
            persist=self.documents.append,
            clock=self.clock,
            dice_roller=self.dice
        )
        self.room = factory.create_room(
            room_id='ROOMTEST',
            name='Test room',
            max_players=max_players,
            created_by='tester',
            password=password,
            settings=settings
        )

    def join(self, *player_ids):
        for player_id in player_ids:
            self.room.add_player(player_id, player_id.upper())
        return [self.room.get_player(player_id) for player_id in player_ids]

    def start(self, *player_ids):
        players = self.join(*player_ids)
        notifications = []
        for player_id in player_ids:
            notifications.extend(self.room.set_ready(player_id, True))
        return players, notifications


@pytest.fixture()
def harness():
    return RoomHarness()


@pytest.fixture()
def make_harness():
    return RoomHarness


def build_config(tmp_path, **overrides):
    attrs = {
        'DB_FILE': str(tmp_path / 'rooms.db'),
        'LOG_FILE': str(tmp_path / 'application.log'),
        'STATS_LOG_FILE': str(tmp_path / 'match_stats.log'),
    }
    attrs.update(overrides)
    return type('TmpTestConfig', (TestConfig,), attrs)


@pytest.fixture()
def flask_app(tmp_path):
    application, _ = create_app(build_config(tmp_path))
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make(auth=None):
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            auth=auth
        )
        clients.append(test_client)
        return test_client

    yield _make

    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except RuntimeError:
            pass


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory()
