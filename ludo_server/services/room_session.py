# --- Стандартная библиотека ---
import threading
import time
import logging
from typing import Dict, Any, Optional, Callable, List, Tuple

# --- Сторонние библиотеки ---
from werkzeug.security import check_password_hash

# --- Импорты сервисов (локальные) ---
from .room_state import RoomState, LOBBY_STATES, STATE_PLAYING
from .room_player_manager import RoomPlayerManager
from .room_turn_manager import RoomTurnManager

# --- Импорты логики ядра ---
from ludo_server.game_core import Player, format_scores, build_leaderboard
from ludo_server.game_core.errors import InvalidRoomPassword, InternalInconsistency

logger = logging.getLogger(__name__)

Notification = Dict[str, Any]


class RoomSession:
    """
    Представляет ОДНУ комнату.
    Является "Фасадом", который координирует работу
    RoomState, RoomPlayerManager и RoomTurnManager.

    Все действия выполняются под self.lock и возвращают список
    уведомлений {'event', 'payload', 'room'}. Вызывающий код отправляет их,
    не отпуская lock, чтобы порядок рассылок совпадал с порядком изменений.
    """

    def __init__(
        self,
        room_id: str,
        name: str,
        max_players: int,
        created_by: Optional[str],
        password_hash: Optional[str],
        settings: Dict[str, bool],
        turn_manager: RoomTurnManager,
        player_manager: RoomPlayerManager,
        log_event: Callable,
        persist: Optional[Callable[[Dict[str, Any]], None]] = None,
        clock: Callable[[], float] = time.time
    ):
        self.id = room_id
        self.name = name
        self.max_players = max_players
        self.created_by = created_by
        self.password_hash = password_hash
        self.settings = {
            'enable_timer': bool(settings.get('enable_timer', True)),
            'auto_move': bool(settings.get('auto_move', True)),
        }
        self.log_event = log_event or (lambda *args, **kwargs: None)
        self.persist = persist
        self.clock = clock
        self.lock = threading.RLock()

        self.state = RoomState()

        self.players = player_manager
        self.turn_manager = turn_manager

        # Настраиваем связи
        self.players.set_lock(self.lock)
        self.turn_manager.set_lock(self.lock)
        self.turn_manager.enable_timer = self.settings['enable_timer']
        self.turn_manager.auto_move = self.settings['auto_move']

        self.created_at = self.clock()
        self.last_activity = self.created_at

        self.log_event("SESSION_INIT", f"Комната {self.id} ('{self.name}') создана.", game_id=self.id)
        self._persist()

    # --- Хелперы ---

    @property
    def is_private(self) -> bool:
        return self.password_hash is not None

    def is_open(self) -> bool:
        """Комната видна в списке: публичная, в лобби и есть места."""
        with self.lock:
            return (not self.is_private
                    and self.state.game_state in LOBBY_STATES
                    and not self.players.is_full())

    def is_idle_lobby(self, now: float, ttl: float) -> bool:
        """Лобби без подключенных игроков, где ничего не происходило ttl секунд."""
        with self.lock:
            return (self.state.game_state in LOBBY_STATES
                    and not any(p.is_connected for p in self.players.players)
                    and now - self.last_activity >= ttl)

    def check_password(self, password: Optional[str]) -> bool:
        if not self.is_private:
            return True
        if not password:
            return False
        return check_password_hash(self.password_hash, password)

    def get_player(self, player_id: str) -> Optional[Player]:
        return self.players.get_player(player_id)

    def _room_data(self) -> Notification:
        return {'event': 'room:data', 'payload': self.to_dict(), 'room': self.id}

    def _touch(self):
        self.last_activity = self.clock()
        self._persist()

    def _persist(self):
        if self.persist:
            self.persist(self.to_document())

    def _run_guarded(self, action: Callable[[], List[Notification]]) -> List[Notification]:
        """
        Нарушение инварианта фатально для комнаты:
        партия завершается без победителя, остальные комнаты не затронуты.
        """
        was_finished = self.state.is_finished
        try:
            notifications = action()
        except InternalInconsistency as e:
            logger.error(f"[RoomSession {self.id}] {e.message}")
            notifications = self.turn_manager.abort_game(self.state, self.players, e)

        if self.state.is_finished and not was_finished:
            notifications.append(self._room_data())
        if notifications:
            self._touch()
        return notifications

    # --- Лобби ---

    def add_player(self, player_id: str, name: str, password: Optional[str] = None) -> Tuple[Player, List[Notification]]:
        with self.lock:
            existing = self.players.get_player(player_id)
            if existing is None and not self.check_password(password):
                raise InvalidRoomPassword()

            player, created = self.players.add_player(self.state, player_id, name)
            self._touch()
            if not created:
                return player, []
            return player, [self._room_data()]

    def set_ready(self, player_id: str, is_ready: bool) -> List[Notification]:
        with self.lock:
            self.players.set_ready(self.state, player_id, is_ready)
            notifications = [self._room_data()]

            if self.players.should_start(self.state):
                notifications.extend(self.turn_manager.start_game(self.state, self.players))
                notifications.append(self._room_data())

            self._touch()
            return notifications

    def leave(self, player_id: str) -> List[Notification]:
        """
        В лобби игрок уходит совсем (цвет освобождается).
        Во время партии место сохраняется: игрок считается отключенным,
        его ходы пропускаются по таймеру.
        """
        with self.lock:
            if self.state.game_state in LOBBY_STATES:
                self.players.remove_player(self.state, player_id)
            else:
                self.players.require_player(player_id)
                self.players.mark_connected(player_id, False)
            self._touch()
            return [self._room_data()]

    def mark_connected(self, player_id: str, connected: bool) -> List[Notification]:
        with self.lock:
            player = self.players.mark_connected(player_id, connected)
            if player is None:
                return []
            self.log_event(
                "PLAYER_CONNECTION",
                f"Player '{player.name}' {'connected' if connected else 'disconnected'}.",
                game_id=self.id
            )
            self._touch()
            return [self._room_data()]

    # --- Логика хода (делегируем) ---

    def roll_dice(self, player_id: str) -> List[Notification]:
        with self.lock:
            return self._run_guarded(
                lambda: self.turn_manager.roll_dice(self.state, self.players, player_id)
            )

    def move_token(self, player_id: str, token_index: int) -> List[Notification]:
        with self.lock:
            return self._run_guarded(
                lambda: self.turn_manager.move_token(self.state, self.players, player_id, token_index)
            )

    def check_deadlines(self) -> List[Notification]:
        """Вызывается сторожем дедлайнов. Ничего не делает вне партии."""
        with self.lock:
            if self.state.game_state != STATE_PLAYING:
                return []
            return self._run_guarded(
                lambda: self.turn_manager.check_deadlines(self.state, self.players)
            )

    # --- Снимки ---

    def scores_payload(self) -> Dict[str, Any]:
        with self.lock:
            return {
                'room_id': self.id,
                'game_state': self.state.game_state,
                'scores': format_scores(self.players.players),
                'leaderboard': build_leaderboard(self.players.players),
                'winner': self.state.winner_id,
                'win_condition': self.state.win_condition,
            }

    def statistics(self) -> Dict[str, Any]:
        with self.lock:
            return self.turn_manager.statistics(self.state, self.players)

    def to_dict(self) -> Dict[str, Any]:
        with self.lock:
            data = {
                'id': self.id,
                'name': self.name,
                'max_players': self.max_players,
                'created_by': self.created_by,
                'is_private': self.is_private,
                'settings': dict(self.settings),
                'players': self.players.to_list(),
                'game_time_remaining': self.turn_manager.game_time_remaining(self.state),
                'turn_time_remaining': self.turn_manager.turn_time_remaining(self.state),
            }
            data.update(self.state.to_dict())
            return data

    def to_document(self) -> Dict[str, Any]:
        """Документ для хранилища (без хэша пароля)."""
        with self.lock:
            document = self.to_dict()
            document['created_at'] = self.created_at
            document['finished_at'] = self.state.finished_at
            document['statistics'] = self.turn_manager.statistics(self.state, self.players)
            document['leaderboard'] = build_leaderboard(self.players.players)
            return document
