# ludo_server/services/room_player_manager.py

import threading
from typing import Optional, Dict, List, Callable, TYPE_CHECKING

from ludo_server.game_core import Player, Color, COLOR_ORDER, MIN_PLAYERS
from ludo_server.game_core.errors import (
    RoomFull,
    PlayerNotFound,
    GameAlreadyStarted,
    GameNotActive,
)
from .room_state import STATE_WAITING, STATE_READY, LOBBY_STATES

if TYPE_CHECKING:
    from .room_state import RoomState


class RoomPlayerManager:
    """
    Управляет ИГРОКАМИ комнаты: вход, выход, готовность,
    выдача цветов и привязка подключений.
    Порядок в self.players = порядок входа = очередность хода.
    """
    def __init__(
        self,
        room_id: str,
        max_players: int,
        log_event: Callable
    ):
        self.room_id = room_id
        self.max_players = max_players
        self.lock = threading.RLock()
        self.log_event = log_event or (lambda *args, **kwargs: None)

        self.players: List[Player] = []

    def set_lock(self, lock: threading.RLock):
        """Устанавливает внешний RLock из RoomSession."""
        self.lock = lock

    # --- Хелперы ---

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def require_player(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if player is None:
            raise PlayerNotFound(f"Player {player_id} is not in room {self.room_id}.")
        return player

    def get_by_color(self, color: Color) -> Optional[Player]:
        for player in self.players:
            if player.color == color:
                return player
        return None

    def count(self) -> int:
        return len(self.players)

    def is_full(self) -> bool:
        return self.count() >= self.max_players

    def all_ready(self) -> bool:
        return self.count() >= MIN_PLAYERS and all(p.is_ready for p in self.players)

    def join_order_colors(self) -> List[Color]:
        return [p.color for p in self.players]

    def _next_free_color(self) -> Color:
        taken = {p.color for p in self.players}
        for color in COLOR_ORDER:
            if color not in taken:
                return color
        raise RoomFull()

    # --- Лобби ---

    def add_player(self, room_state: 'RoomState', player_id: str, name: str) -> tuple[Player, bool]:
        """
        Добавляет игрока. Повторный вход с тем же id возвращает
        существующего игрока (переподключение), флаг created=False.
        """
        with self.lock:
            existing = self.get_player(player_id)
            if existing:
                return existing, False

            if room_state.game_state not in LOBBY_STATES:
                raise GameAlreadyStarted()
            if self.is_full():
                raise RoomFull()

            player = Player(player_id, name, self._next_free_color())
            self.players.append(player)

            if room_state.game_state == STATE_WAITING and self.count() >= MIN_PLAYERS:
                room_state.transition_to(STATE_READY)
                self.log_event("STATE_CHANGE", f"State -> {STATE_READY} ({self.count()} players)", game_id=self.room_id)

            self.log_event(
                "PLAYER_JOIN",
                f"Player '{name}' joined as {player.color.value}.",
                game_id=self.room_id,
                extra_data={'player_id': player_id}
            )
            return player, True

    def remove_player(self, room_state: 'RoomState', player_id: str) -> Player:
        """Выход из лобби. Цвет освобождается для следующего игрока."""
        with self.lock:
            player = self.require_player(player_id)
            if room_state.game_state not in LOBBY_STATES:
                raise GameAlreadyStarted()
            self.players.remove(player)
            self.log_event("PLAYER_LEAVE", f"Player '{player.name}' left the lobby.", game_id=self.room_id)
            if room_state.game_state == STATE_READY and self.count() < MIN_PLAYERS:
                room_state.transition_to(STATE_WAITING)
                self.log_event("STATE_CHANGE", f"State -> {STATE_WAITING} ({self.count()} players)", game_id=self.room_id)
            return player

    def set_ready(self, room_state: 'RoomState', player_id: str, is_ready: bool) -> Player:
        with self.lock:
            player = self.require_player(player_id)
            if room_state.game_state not in LOBBY_STATES:
                raise GameNotActive("Ready status can only change in the lobby.")
            player.is_ready = bool(is_ready)
            return player

    def should_start(self, room_state: 'RoomState') -> bool:
        return room_state.game_state == STATE_READY and self.all_ready()

    # --- Подключения ---

    def mark_connected(self, player_id: str, connected: bool) -> Optional[Player]:
        with self.lock:
            player = self.get_player(player_id)
            if player:
                player.is_connected = connected
            return player

    def to_list(self) -> List[Dict]:
        return [p.to_dict() for p in self.players]
