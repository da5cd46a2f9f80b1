import pytest

from ludo_server.services.game_service import GameService
from ludo_server.services.room_factory import RoomFactory
from ludo_server.services.room_registry import RoomRegistry
from ludo_server.game_core.errors import RoomNotFound, SeatTaken


class Recorder:
    def __init__(self):
        self.sent = []

    def __call__(self, event, payload, to):
        self.sent.append((event, payload, to))

    def to(self, target):
        return [(event, payload) for event, payload, room in self.sent if room == target]

    def events(self):
        return [event for event, _, _ in self.sent]


@pytest.fixture()
def service_parts():
    clock = {'now': 1000.0}
    dice = []
    emit = Recorder()
    factory = RoomFactory(
        config={'GAME_DURATION_SEC': 600, 'TURN_DURATION_SEC': 15},
        log_event=None,
        log_stats=None,
        clock=lambda: clock['now'],
        dice_roller=lambda: dice.pop(0)
    )
    service = GameService(
        registry=RoomRegistry(log_event_func=None),
        factory=factory,
        store=None,
        emit=emit,
        config={'MAX_PLAYERS_DEFAULT': 4, 'FINISHED_ROOM_TTL_SEC': 300, 'LOBBY_IDLE_TTL_SEC': 1800},
        log_event=None,
        clock=lambda: clock['now']
    )
    return service, emit, clock, dice


def start_game(service, room):
    service.join_room(room.id, 'p1', 'Alice', sid='sid-1')
    service.join_room(room.id, 'p2', 'Bob', sid='sid-2')
    assert service.dispatch('sid-1', 'ready', is_ready=True)
    assert service.dispatch('sid-2', 'ready', is_ready=True)


def test_create_and_list_rooms(service_parts):
    service, _, _, _ = service_parts
    room = service.create_room('Lobby')
    private = service.create_room('Secret', password='pw')

    assert room.max_players == 4
    assert len(room.id) == 8
    assert [r['id'] for r in service.list_open_rooms()] == [room.id]
    assert private.is_private


def test_max_players_is_clamped(service_parts):
    service, _, _, _ = service_parts
    assert service.create_room('Big', max_players=9).max_players == 4


def test_unknown_room(service_parts):
    service, _, _, _ = service_parts
    with pytest.raises(RoomNotFound):
        service.get_room('NOPE0000')
    with pytest.raises(RoomNotFound):
        service.get_scores('NOPE0000')


def test_join_binds_connection_and_broadcasts(service_parts):
    service, emit, _, _ = service_parts
    room = service.create_room('Lobby')

    player, _ = service.join_room(room.id, 'p1', 'Alice', sid='sid-1')

    assert service.registry.get_binding('sid-1') == (room.id, 'p1')
    assert player.is_connected
    assert emit.events() == ['room:data']
    assert emit.sent[0][2] == room.id


def test_errors_go_to_sender_only(service_parts):
    service, emit, _, _ = service_parts
    room = service.create_room('Lobby')
    start_game(service, room)
    emit.sent.clear()

    assert service.dispatch('sid-2', 'roll') is False

    assert emit.sent == [('error', {'status': 'error', 'message': 'Not your turn.', 'code': 'NOT_YOUR_TURN'}, 'sid-2')]


def test_unbound_connection_is_not_authorized(service_parts):
    service, emit, _, _ = service_parts
    assert service.dispatch('ghost', 'roll') is False
    assert emit.to('ghost')[0][1]['code'] == 'NOT_AUTHORIZED'


def test_roll_and_move_broadcast_in_order(service_parts):
    service, emit, _, dice = service_parts
    room = service.create_room('Lobby')
    start_game(service, room)
    emit.sent.clear()
    dice.extend([6, 2])

    service.dispatch('sid-1', 'roll')
    service.dispatch('sid-1', 'move', token_index=0)
    service.dispatch('sid-1', 'roll')
    service.dispatch('sid-1', 'move', token_index=0)

    assert [e for e, _ in emit.to(room.id)] == [
        'game:roll',
        'game:move', 'game:scores', 'game:turn',
        'game:roll',
        'game:move', 'game:scores', 'game:turn',
    ]
    assert room.state.current_turn_color.value == 'blue'


def test_disconnect_keeps_seat(service_parts):
    service, _, _, _ = service_parts
    room = service.create_room('Lobby')
    start_game(service, room)

    assert service.handle_disconnect('sid-2') == room.id

    player = room.get_player('p2')
    assert player is not None
    assert not player.is_connected
    assert service.registry.get_binding('sid-2') is None


def test_leave_lobby_unbinds(service_parts):
    service, _, _, _ = service_parts
    room = service.create_room('Lobby')
    service.join_room(room.id, 'p1', 'Alice', sid='sid-1')

    assert service.dispatch('sid-1', 'leave')

    assert room.get_player('p1') is None
    assert service.registry.get_binding('sid-1') is None


def test_sweep_and_prune(service_parts):
    service, emit, clock, _ = service_parts
    room = service.create_room('Lobby')
    start_game(service, room)
    emit.sent.clear()

    clock['now'] += 601
    assert service.sweep_deadlines() > 0
    assert 'game:over' in emit.events()
    assert room.state.win_condition == 'time_up'

    assert service.prune_stale_rooms() == []
    assert service.get_scores(room.id)['win_condition'] == 'time_up'

    clock['now'] += 300
    assert service.prune_stale_rooms() == [room.id]
    assert not service.registry.has_room(room.id)


def test_idle_lobby_is_pruned(service_parts):
    service, _, clock, _ = service_parts
    empty = service.create_room('Empty')
    active = service.create_room('Active')
    service.join_room(active.id, 'p1', 'Alice', sid='sid-1')
    left = service.create_room('Left')
    service.join_room(left.id, 'p2', 'Bob', sid='sid-2')
    service.handle_disconnect('sid-2')

    clock['now'] += 1799
    assert service.prune_stale_rooms() == []

    clock['now'] += 1
    assert sorted(service.prune_stale_rooms()) == sorted([empty.id, left.id])
    assert service.registry.has_room(active.id)


def test_taken_seat_needs_proof_of_ownership(service_parts):
    service, _, _, _ = service_parts
    room = service.create_room('Lobby')
    service.join_room(room.id, 'p1', 'Alice', sid='sid-1')

    with pytest.raises(SeatTaken):
        service.join_room(room.id, 'p1', 'Mallory', sid='sid-evil')
    with pytest.raises(SeatTaken):
        service.join_room(room.id, 'p1', 'Mallory')
    assert service.registry.get_binding('sid-evil') is None
    assert service.dispatch('sid-evil', 'ready', is_ready=True) is False

    player, _ = service.join_room(room.id, 'p1', 'Alice', sid='sid-1')
    assert player.color.value == 'red'

    player, _ = service.join_room(room.id, 'p1', 'Alice', sid='sid-new', owns_seat=True)
    assert service.registry.get_binding('sid-new') == (room.id, 'p1')
