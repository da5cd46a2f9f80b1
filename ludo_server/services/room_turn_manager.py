# ludo_server/services/room_turn_manager.py

import threading
from typing import TYPE_CHECKING, Dict, Any, Optional, Callable

from ludo_server.game_core import (
    should_grant_extra_turn,
    find_all_home_winner,
    verify_players,
    determine_winner,
    build_leaderboard,
    format_scores,
    game_statistics,
    are_moves_available,
    WIN_ALL_HOME,
    WIN_TIME_UP,
    WIN_ABORTED,
)
from ludo_server.game_core.move_engine import is_valid_dice_value
from ludo_server.game_core.errors import (
    NotYourTurn,
    InvalidMove,
    GameNotActive,
    InternalInconsistency,
)
from .room_state import STATE_PLAYING, STATE_FINISHED

if TYPE_CHECKING:
    from ludo_server.game_core import Player, MoveResult
    from .room_state import RoomState
    from .room_player_manager import RoomPlayerManager


class RoomTurnManager:
    """
    Управляет логикой хода: старт партии, бросок, ход фишкой,
    передача хода, таймауты и завершение игры.

    Каждый публичный метод: проверки -> расчет -> commit -> уведомления.
    Ошибки проверок (GameError) выбрасываются ДО изменения состояния.
    """
    def __init__(
        self,
        room_id: str,

        # --- Зависимости, внедренные контейнером ---
        config: Dict[str, Any],
        clock: Callable[[], float],
        dice_roller: Callable[[], int],
        log_event: Callable,
        log_stats: Callable
    ):
        self.room_id = room_id
        self.lock = threading.RLock()

        self.clock = clock
        self.dice_roller = dice_roller
        self.log_event = log_event or (lambda *args, **kwargs: None)
        self.log_stats = log_stats or (lambda *args, **kwargs: None)

        try:
            self.config = {
                'GAME_DURATION_SEC': float(config['GAME_DURATION_SEC']),
                'TURN_DURATION_SEC': float(config['TURN_DURATION_SEC']),
            }
        except KeyError as e:
            raise KeyError(f"RoomTurnManager ({self.room_id}): отсутствует ключ конфига {e} при внедрении.")

        # Настройки комнаты (RoomSession может их поменять до старта)
        self.enable_timer = True
        self.auto_move = True

    def set_lock(self, lock: threading.RLock):
        """Устанавливает внешний RLock из RoomSession."""
        self.lock = lock

    # --- Хелперы ---

    def _broadcast(self, event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {'event': event, 'payload': payload, 'room': self.room_id}

    def game_time_remaining(self, room_state: 'RoomState') -> float:
        duration = self.config['GAME_DURATION_SEC']
        if room_state.game_deadline is None:
            return duration
        now = room_state.finished_at if room_state.finished_at is not None else self.clock()
        return max(0.0, room_state.game_deadline - now)

    def turn_time_remaining(self, room_state: 'RoomState') -> float:
        duration = self.config['TURN_DURATION_SEC']
        if room_state.turn_deadline is None:
            return duration
        if room_state.game_state != STATE_PLAYING:
            return 0.0
        return max(0.0, room_state.turn_deadline - self.clock())

    def _restart_turn_timer(self, room_state: 'RoomState'):
        room_state.turn_deadline = self.clock() + self.config['TURN_DURATION_SEC']

    def _require_turn_owner(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager', player_id: str) -> 'Player':
        if room_state.game_state != STATE_PLAYING:
            raise GameNotActive()
        player = player_manager.require_player(player_id)
        if player.color != room_state.current_turn_color:
            raise NotYourTurn()
        return player

    def scores_event(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager',
                     move_result: Optional['MoveResult'] = None) -> Dict[str, Any]:
        players = player_manager.players
        return self._broadcast('game:scores', {
            'room_id': self.room_id,
            'scores': format_scores(players),
            'leaderboard': build_leaderboard(players),
            'game_time_remaining': self.game_time_remaining(room_state),
            'turn_time_remaining': self.turn_time_remaining(room_state),
            'current_turn': room_state.current_turn_color.value if room_state.current_turn_color else None,
            'move_details': move_result.to_dict() if move_result else None,
        })

    def _turn_event(self, room_state: 'RoomState', extra_turn: bool = False) -> Dict[str, Any]:
        return self._broadcast('game:turn', {
            'current_turn': room_state.current_turn_color.value,
            'extra_turn': extra_turn,
            'turn_time_remaining': self.turn_time_remaining(room_state),
            'game_time_remaining': self.game_time_remaining(room_state),
        })

    # --- Старт партии ---

    def start_game(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager') -> list:
        with self.lock:
            now = self.clock()
            room_state.transition_to(STATE_PLAYING)
            room_state.turn_order = player_manager.join_order_colors()
            room_state.current_turn_color = room_state.turn_order[0]
            room_state.consecutive_sixes = 0
            room_state.dice_value = None
            room_state.awaiting_move = False
            room_state.legal_moves = []
            room_state.game_started_at = now
            room_state.game_deadline = now + self.config['GAME_DURATION_SEC']
            room_state.turn_deadline = now + self.config['TURN_DURATION_SEC']

            first = player_manager.get_by_color(room_state.current_turn_color)
            self.log_event(
                "STATE_CHANGE",
                f"State -> {STATE_PLAYING}. Turn order: {[c.value for c in room_state.turn_order]}",
                game_id=self.room_id
            )
            return [
                self._broadcast('game:start', {
                    'message': f"Game started! {first.color.value.capitalize()} player goes first.",
                    'current_turn': room_state.current_turn_color.value,
                    'turn_order': [c.value for c in room_state.turn_order],
                }),
                self.scores_event(room_state, player_manager),
            ]

    # --- Бросок ---

    def roll_dice(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager', player_id: str) -> list:
        """
        Бросок кубика игроком, чей сейчас ход.

        1. Проверки (игра идет, ход этого игрока, кубик еще не брошен).
        2. Бросок и расчет легальных ходов.
        3. Нет ходов - шестерка дает перебросить, иначе ход переходит.
           На третьей шестерке подряд ходить можно, но доп. хода не будет.
        """
        with self.lock:
            player = self._require_turn_owner(room_state, player_manager, player_id)
            if room_state.awaiting_move:
                raise InvalidMove('dice already rolled, move a token')

            dice_value = self.dice_roller()
            if not is_valid_dice_value(dice_value):
                raise InternalInconsistency(f"dice roller produced {dice_value!r}")

            legal_moves = player.legal_moves(dice_value)
            sixes_before = room_state.consecutive_sixes
            third_six = dice_value == 6 and not should_grant_extra_turn(dice_value, sixes_before, None)

            # --- Commit ---
            room_state.dice_value = dice_value
            player.turns_played += 1
            if dice_value == 6:
                room_state.consecutive_sixes += 1
            else:
                room_state.consecutive_sixes = 0

            can_move = are_moves_available(legal_moves)
            notifications = [self._broadcast('game:roll', {
                'player_id': player.id,
                'color': player.color.value,
                'dice_value': dice_value,
                'legal_moves': [m.to_dict() for m in legal_moves],
                'can_move': can_move,
                'consecutive_sixes': room_state.consecutive_sixes,
                'forfeited': third_six,
            })]

            if third_six:
                self.log_event("TURN_FORFEIT", f"{player.color.value} rolled a third six in a row.", game_id=self.room_id)

            if not can_move:
                if should_grant_extra_turn(dice_value, sixes_before, None):
                    self._restart_turn_timer(room_state)
                    notifications.append(self._turn_event(room_state, extra_turn=True))
                else:
                    self.log_event("AUTO_TURN_FINISH", f"{player.color.value} has no moves with {dice_value}.", game_id=self.room_id)
                    notifications.extend(self.next_turn(room_state, player_manager))
                return notifications

            room_state.awaiting_move = True
            room_state.legal_moves = legal_moves
            return notifications

    # --- Ход фишкой ---

    def move_token(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager',
                   player_id: str, token_index: int) -> list:
        with self.lock:
            player = self._require_turn_owner(room_state, player_manager, player_id)
            if not room_state.awaiting_move:
                raise InvalidMove('roll the dice first')

            dice_value = room_state.dice_value
            # InvalidMove вылетает до любых изменений
            move_result = player.move_token(token_index, dice_value, player_manager.players)
            return self._after_move(room_state, player_manager, player, move_result, auto=False)

    def _after_move(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager',
                    player: 'Player', move_result: 'MoveResult', auto: bool) -> list:
        verify_players(player_manager.players)

        dice_value = room_state.dice_value
        room_state.awaiting_move = False
        room_state.legal_moves = []

        notifications = [
            self._broadcast('game:move', {
                'player_id': player.id,
                'color': player.color.value,
                'token_index': move_result.token_index,
                'move_result': move_result.to_dict(),
                'auto': auto,
                'game_state': room_state.game_state,
            }),
            self.scores_event(room_state, player_manager, move_result),
        ]

        if move_result.captured:
            self.log_event(
                "CAPTURE",
                f"{player.color.value} captured {[f'{ct.color}#{ct.token_index}' for ct in move_result.captured]}",
                game_id=self.room_id
            )

        winner = find_all_home_winner(player_manager.players)
        if winner:
            notifications.extend(self.finish_game(room_state, player_manager, WIN_ALL_HOME, winner))
            return notifications

        if auto:
            notifications.extend(self.next_turn(room_state, player_manager))
            return notifications

        sixes_before = room_state.consecutive_sixes - 1 if dice_value == 6 else 0
        if should_grant_extra_turn(dice_value, sixes_before, move_result):
            self._restart_turn_timer(room_state)
            notifications.append(self._turn_event(room_state, extra_turn=True))
        else:
            notifications.extend(self.next_turn(room_state, player_manager))
        return notifications

    # --- Передача хода ---

    def next_turn(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager') -> list:
        with self.lock:
            order = room_state.turn_order
            current_index = order.index(room_state.current_turn_color)
            room_state.current_turn_color = order[(current_index + 1) % len(order)]
            room_state.consecutive_sixes = 0
            room_state.awaiting_move = False
            room_state.legal_moves = []
            self._restart_turn_timer(room_state)
            return [self._turn_event(room_state)]

    # --- Таймеры ---

    def check_deadlines(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager') -> list:
        """
        Вызывается планировщиком. Конец времени партии -> finished (time_up),
        конец времени хода -> авто-ход (если включен и кубик брошен) и передача хода.
        """
        with self.lock:
            if room_state.game_state != STATE_PLAYING or not self.enable_timer:
                return []

            now = self.clock()
            if now >= room_state.game_deadline:
                winner = determine_winner(player_manager.players)
                return self.finish_game(room_state, player_manager, WIN_TIME_UP, winner)

            if now < room_state.turn_deadline:
                return []

            color = room_state.current_turn_color
            self.log_event("TURN_TIMEOUT", f"{color.value} ran out of time.", game_id=self.room_id)

            if self.auto_move and room_state.awaiting_move and room_state.legal_moves:
                player = player_manager.get_by_color(color)
                move_result = player.move_token(
                    room_state.legal_moves[0].token_index, room_state.dice_value, player_manager.players
                )
                return self._after_move(room_state, player_manager, player, move_result, auto=True)

            return self.next_turn(room_state, player_manager)

    # --- Завершение ---

    def finish_game(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager',
                    win_condition: str, winner: Optional['Player']) -> list:
        with self.lock:
            if room_state.game_state == STATE_FINISHED:
                return []

            room_state.transition_to(STATE_FINISHED)
            room_state.finished_at = self.clock()
            room_state.winner_id = winner.id if winner else None
            room_state.win_condition = win_condition
            room_state.awaiting_move = False
            room_state.legal_moves = []

            players = player_manager.players
            elapsed = room_state.finished_at - (room_state.game_started_at or room_state.finished_at)
            statistics = game_statistics(players, elapsed)
            leaderboard = build_leaderboard(players)

            self.log_event(
                "GAME_END",
                f"Winner: {room_state.winner_id} ({win_condition})",
                game_id=self.room_id
            )
            self.log_stats({
                'room_id': self.room_id,
                'win_condition': win_condition,
                'winner': room_state.winner_id,
                'leaderboard': leaderboard,
                'statistics': statistics,
            })

            return [self._broadcast('game:over', {
                'winner': room_state.winner_id,
                'winner_name': winner.name if winner else None,
                'win_condition': win_condition,
                'leaderboard': leaderboard,
                'statistics': statistics,
            })]

    def abort_game(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager', error: InternalInconsistency) -> list:
        """Нарушение инварианта: доигрывать нельзя, завершаем без победителя."""
        with self.lock:
            self.log_event("CRITICAL_ERROR", f"Invariant violated: {error.message}", game_id=self.room_id)
            if room_state.game_state != STATE_PLAYING:
                return []
            return self.finish_game(room_state, player_manager, WIN_ABORTED, None)

    def statistics(self, room_state: 'RoomState', player_manager: 'RoomPlayerManager') -> Dict[str, Any]:
        if room_state.game_started_at is None:
            elapsed = 0.0
        else:
            end = room_state.finished_at if room_state.finished_at is not None else self.clock()
            elapsed = end - room_state.game_started_at
        return game_statistics(player_manager.players, elapsed)
