import pytest

from ludo_server.game_core import Color, HOME_BONUS
from ludo_server.game_core.errors import (
    NotYourTurn,
    InvalidMove,
    RoomFull,
    GameAlreadyStarted,
    GameNotActive,
    InvalidRoomPassword,
)


def event_names(notifications):
    return [n['event'] for n in notifications]


def find_event(notifications, name):
    return next(n['payload'] for n in notifications if n['event'] == name)


def place(player, index, position, steps):
    token = player.tokens[index]
    token.move_to_track(position)
    token.credit_steps(steps)
    return token


# --- Лобби ---

def test_lobby_state_machine(harness):
    room = harness.room
    assert room.state.game_state == 'waiting'

    harness.join('p1')
    assert room.state.game_state == 'waiting'

    harness.join('p2')
    assert room.state.game_state == 'ready'

    room.set_ready('p1', True)
    assert room.state.game_state == 'ready'

    notifications = room.set_ready('p2', True)
    assert room.state.game_state == 'playing'
    assert room.state.turn_order == [Color.RED, Color.BLUE]
    assert room.state.current_turn_color == Color.RED
    assert event_names(notifications) == ['room:data', 'game:start', 'game:scores', 'room:data']
    assert find_event(notifications, 'game:start')['current_turn'] == 'red'


def test_colors_follow_join_order(harness):
    players = harness.join('a', 'b', 'c', 'd')
    assert [p.color for p in players] == [Color.RED, Color.BLUE, Color.GREEN, Color.YELLOW]


def test_full_room_rejects_join(make_harness):
    h = make_harness(max_players=2)
    h.join('p1', 'p2')
    with pytest.raises(RoomFull):
        h.room.add_player('p3', 'P3')


def test_join_after_start_is_rejected_but_rejoin_is_not(harness):
    harness.start('p1', 'p2')

    with pytest.raises(GameAlreadyStarted):
        harness.room.add_player('p3', 'P3')

    player, notifications = harness.room.add_player('p1', 'P1')
    assert player.color == Color.RED
    assert notifications == []


def test_private_room_checks_password(make_harness):
    h = make_harness(password='secret')
    assert h.room.is_private
    assert not h.room.is_open()

    with pytest.raises(InvalidRoomPassword):
        h.room.add_player('p1', 'P1')
    with pytest.raises(InvalidRoomPassword):
        h.room.add_player('p1', 'P1', password='wrong')

    player, _ = h.room.add_player('p1', 'P1', password='secret')
    assert player.color == Color.RED


def test_leaving_lobby_frees_color(harness):
    harness.join('p1', 'p2', 'p3')
    harness.room.leave('p2')

    newcomer, _ = harness.room.add_player('p4', 'P4')
    assert newcomer.color == Color.BLUE
    assert [p.id for p in harness.room.players.players] == ['p1', 'p3', 'p4']


def test_lobby_drops_back_to_waiting_below_two_players(harness):
    harness.join('p1', 'p2')
    harness.room.set_ready('p1', True)
    assert harness.room.state.game_state == 'ready'

    harness.room.leave('p2')

    assert harness.room.state.game_state == 'waiting'
    assert 'STATE_CHANGE' in harness.events

    harness.join('p3')
    assert harness.room.state.game_state == 'ready'
    assert harness.room.set_ready('p3', True)
    assert harness.room.state.game_state == 'playing'


def test_leaving_during_game_keeps_seat(harness):
    harness.start('p1', 'p2')
    harness.room.mark_connected('p2', True)

    harness.room.leave('p2')

    player = harness.room.get_player('p2')
    assert player is not None
    assert player.is_connected is False
    assert harness.room.state.turn_order == [Color.RED, Color.BLUE]


def test_ready_outside_lobby_is_rejected(harness):
    harness.start('p1', 'p2')
    with pytest.raises(GameNotActive):
        harness.room.set_ready('p1', False)


# --- Бросок и ход ---

def test_only_current_player_may_roll(harness):
    harness.start('p1', 'p2')
    with pytest.raises(NotYourTurn):
        harness.room.roll_dice('p2')
    assert harness.room.state.dice_value is None


def test_roll_without_moves_passes_turn(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    harness.dice.push(3)

    notifications = harness.room.roll_dice('p1')

    assert event_names(notifications) == ['game:roll', 'game:turn']
    assert find_event(notifications, 'game:roll')['can_move'] is False
    assert harness.room.state.current_turn_color == Color.BLUE
    assert p1.turns_played == 1


def test_six_exits_base_and_grants_extra_turn(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    harness.dice.push(6)

    roll = harness.room.roll_dice('p1')
    assert len(find_event(roll, 'game:roll')['legal_moves']) == 4
    assert harness.room.state.awaiting_move

    notifications = harness.room.move_token('p1', 0)

    assert p1.tokens[0].track_position == 16
    assert event_names(notifications) == ['game:move', 'game:scores', 'game:turn']
    assert find_event(notifications, 'game:turn')['extra_turn'] is True
    assert harness.room.state.current_turn_color == Color.RED
    assert harness.room.state.consecutive_sixes == 1

    harness.dice.push(3)
    harness.room.roll_dice('p1')
    harness.room.move_token('p1', 0)

    assert p1.tokens[0].track_position == 19
    assert p1.tokens[0].steps_accumulated == 9
    assert harness.room.state.current_turn_color == Color.BLUE
    assert harness.room.state.consecutive_sixes == 0


def roll_two_sixes(harness):
    harness.dice.push(6, 6)
    harness.room.roll_dice('p1')
    harness.room.move_token('p1', 0)
    harness.room.roll_dice('p1')
    harness.room.move_token('p1', 0)
    assert harness.room.state.consecutive_sixes == 2


def test_third_six_is_played_but_turn_passes(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    roll_two_sixes(harness)
    harness.dice.push(6)

    roll = find_event(harness.room.roll_dice('p1'), 'game:roll')
    assert roll['forfeited'] is True
    assert roll['can_move'] is True
    assert roll['legal_moves']
    assert harness.room.state.awaiting_move

    notifications = harness.room.move_token('p1', 0)

    assert event_names(notifications) == ['game:move', 'game:scores', 'game:turn']
    assert find_event(notifications, 'game:turn')['extra_turn'] is False
    assert p1.tokens[0].track_position == 28
    assert harness.room.state.current_turn_color == Color.BLUE
    assert harness.room.state.consecutive_sixes == 0
    assert not harness.room.state.awaiting_move


def test_third_six_home_arrival_still_passes_turn(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    place(p1, 1, 67, 51)
    roll_two_sixes(harness)
    harness.dice.push(6)
    harness.room.roll_dice('p1')

    notifications = harness.room.move_token('p1', 1)

    assert find_event(notifications, 'game:move')['move_result']['reached_home'] is True
    assert p1.tokens[1].is_at_home
    assert harness.room.state.current_turn_color == Color.BLUE


def test_third_six_capture_still_passes_turn(harness):
    (p1, p2), _ = harness.start('p1', 'p2')
    place(p1, 1, 54, 38)
    victim = place(p2, 0, 60, 5)
    roll_two_sixes(harness)
    harness.dice.push(6)
    harness.room.roll_dice('p1')

    notifications = harness.room.move_token('p1', 1)

    assert len(find_event(notifications, 'game:move')['move_result']['captured']) == 1
    assert victim.is_in_base
    assert p1.capture_count == 1
    assert harness.room.state.current_turn_color == Color.BLUE


def test_move_requires_roll_and_single_roll(harness):
    harness.start('p1', 'p2')

    with pytest.raises(InvalidMove) as exc:
        harness.room.move_token('p1', 0)
    assert exc.value.reason == 'roll the dice first'

    harness.dice.push(6)
    harness.room.roll_dice('p1')
    with pytest.raises(InvalidMove):
        harness.room.roll_dice('p1')


def test_illegal_token_choice_leaves_state_untouched(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    place(p1, 0, 20, 4)
    harness.dice.push(3)
    harness.room.roll_dice('p1')

    with pytest.raises(InvalidMove) as exc:
        harness.room.move_token('p1', 1)
    assert exc.value.reason == 'needs 1 or 6 to exit'

    with pytest.raises(InvalidMove):
        harness.room.move_token('p1', 9)

    assert harness.room.state.awaiting_move
    assert p1.tokens[0].track_position == 20


def test_capture_transfers_score_and_grants_extra_turn(harness):
    (p1, p2), _ = harness.start('p1', 'p2')
    place(p1, 0, 57, 41)
    victim = place(p2, 2, 60, 5)
    harness.dice.push(3)
    harness.room.roll_dice('p1')

    notifications = harness.room.move_token('p1', 0)

    move = find_event(notifications, 'game:move')['move_result']
    assert move['captured'] == [{'player_id': 'p2', 'color': 'blue', 'token_index': 2, 'score': 5}]
    assert victim.is_in_base
    assert p1.capture_count == 1
    assert p1.total_score == 41 + 3 + 5
    scores = find_event(notifications, 'game:scores')['scores']
    assert scores['p1']['total_score'] == p1.total_score
    assert scores['p2']['total_score'] == 0
    assert harness.room.state.current_turn_color == Color.RED


def test_home_arrival_grants_extra_turn(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    place(p1, 0, 70, 54)
    harness.dice.push(3)
    harness.room.roll_dice('p1')

    notifications = harness.room.move_token('p1', 0)

    assert find_event(notifications, 'game:move')['move_result']['reached_home'] is True
    assert p1.tokens[0].score == 57 + HOME_BONUS
    assert harness.room.state.current_turn_color == Color.RED


def test_all_tokens_home_wins(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    for token in p1.tokens[1:]:
        token.move_to_track(73)
        token.reach_home()
        token.credit_steps(57)
    place(p1, 0, 70, 54)
    harness.dice.push(3)
    harness.room.roll_dice('p1')

    notifications = harness.room.move_token('p1', 0)

    assert event_names(notifications)[-2:] == ['game:over', 'room:data']
    over = find_event(notifications, 'game:over')
    assert over['winner'] == 'p1'
    assert over['win_condition'] == 'all_home'
    assert harness.room.state.is_finished
    assert len(harness.stats) == 1
    assert harness.stats[0]['winner'] == 'p1'

    with pytest.raises(GameNotActive):
        harness.room.roll_dice('p2')


def test_internal_inconsistency_aborts_game(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    p1.tokens[1].steps_accumulated = -1
    harness.dice.push(6)
    harness.room.roll_dice('p1')

    notifications = harness.room.move_token('p1', 0)

    over = find_event(notifications, 'game:over')
    assert over['winner'] is None
    assert over['win_condition'] == 'aborted'
    assert harness.room.state.is_finished
    assert 'CRITICAL_ERROR' in harness.events


# --- Таймеры ---

def test_game_time_up_picks_highest_score(harness):
    (p1, p2), _ = harness.start('p1', 'p2')
    place(p2, 0, 60, 5)
    harness.clock.advance(601)

    notifications = harness.room.check_deadlines()

    over = find_event(notifications, 'game:over')
    assert over['win_condition'] == 'time_up'
    assert over['winner'] == 'p2'


def test_time_up_tie_breaks_by_captures_then_join_order(make_harness):
    h = make_harness()
    h.start('p1', 'p2')
    h.clock.advance(601)
    h.room.check_deadlines()
    assert h.room.state.winner_id == 'p1'

    h = make_harness()
    (_, p2), _ = h.start('p1', 'p2')
    p2.capture_count = 1
    h.clock.advance(601)
    h.room.check_deadlines()
    assert h.room.state.winner_id == 'p2'


def test_turn_timeout_passes_turn(harness):
    harness.start('p1', 'p2')
    harness.clock.advance(10)
    assert harness.room.check_deadlines() == []

    harness.clock.advance(6)
    notifications = harness.room.check_deadlines()

    assert event_names(notifications) == ['game:turn']
    assert harness.room.state.current_turn_color == Color.BLUE
    assert harness.room.to_dict()['turn_time_remaining'] == 15


def test_turn_timeout_auto_moves_after_roll(harness):
    (p1, _), _ = harness.start('p1', 'p2')
    harness.dice.push(6)
    harness.room.roll_dice('p1')
    harness.clock.advance(16)

    notifications = harness.room.check_deadlines()

    assert find_event(notifications, 'game:move')['auto'] is True
    assert p1.tokens[0].track_position == 16
    assert harness.room.state.current_turn_color == Color.BLUE


def test_turn_timeout_without_auto_move(make_harness):
    h = make_harness(settings={'auto_move': False})
    (p1, _), _ = h.start('p1', 'p2')
    h.dice.push(6)
    h.room.roll_dice('p1')
    h.clock.advance(16)

    h.room.check_deadlines()

    assert p1.tokens[0].is_in_base
    assert h.room.state.current_turn_color == Color.BLUE


def test_timers_can_be_disabled(make_harness):
    h = make_harness(settings={'enable_timer': False})
    h.start('p1', 'p2')
    h.clock.advance(700)

    assert h.room.check_deadlines() == []
    assert h.room.state.is_playing


# --- Снимки ---

def test_snapshot_and_persistence(harness):
    harness.start('p1', 'p2')
    harness.clock.advance(5)

    snapshot = harness.room.to_dict()
    assert snapshot['id'] == 'ROOMTEST'
    assert snapshot['game_state'] == 'playing'
    assert snapshot['current_turn'] == 'red'
    assert snapshot['turn_time_remaining'] == 10
    assert snapshot['game_time_remaining'] == 595
    assert len(snapshot['players']) == 2

    assert harness.documents[-1]['game_state'] == 'playing'
    assert 'password_hash' not in harness.documents[-1]
