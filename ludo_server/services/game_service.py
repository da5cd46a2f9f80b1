# ludo_server/services/game_service.py

import time
import logging
from typing import Optional, Dict, Any, List, Tuple, Callable

from .room_session import RoomSession
from .room_registry import RoomRegistry
from .room_factory import RoomFactory
from .room_store import RoomStore
from ludo_server.game_core import Player, MAX_PLAYERS, MIN_PLAYERS
from ludo_server.game_core.errors import GameError, RoomNotFound, NotAuthorized, SeatTaken

logger = logging.getLogger(__name__)

Notification = Dict[str, Any]


class GameService:
    """
    Фасад, координирующий высокоуровневые действия с комнатами.
    Не владеет состоянием, а делегирует его специализированным сервисам.

    Рассылка: emit(event, payload, to) внедряется фабрикой приложения.
    Уведомления действия отправляются под lock комнаты.
    """

    def __init__(self,
                 registry: RoomRegistry,
                 factory: RoomFactory,
                 store: Optional[RoomStore],
                 emit: Callable[[str, Dict[str, Any], str], None],
                 config: Dict[str, Any],
                 log_event: Callable,
                 clock: Callable[[], float] = time.time):
        self.registry = registry
        self.factory = factory
        self.store = store
        self.emit = emit
        self.log_event = log_event or (lambda *args, **kwargs: None)
        self.clock = clock

        try:
            self.max_players_default = int(config['MAX_PLAYERS_DEFAULT'])
            self.finished_room_ttl = float(config['FINISHED_ROOM_TTL_SEC'])
            self.lobby_idle_ttl = float(config['LOBBY_IDLE_TTL_SEC'])
        except KeyError as e:
            raise KeyError(f"GameService: отсутствует ключ конфига {e} при внедрении.")

    ### Приватные методы ###

    def _emit_all(self, notifications: List[Notification]):
        for msg in notifications:
            self.emit(msg['event'], msg['payload'], msg['room'])

    def _error_to_sid(self, sid: str, error: GameError):
        self.emit('error', error.to_dict(), sid)

    def _require_binding(self, sid: str) -> Tuple[RoomSession, str]:
        binding = self.registry.get_binding(sid)
        if not binding:
            raise NotAuthorized()
        room_id, player_id = binding
        return self.get_room(room_id), player_id

    ### Публичный API (Прокси к Registry) ###

    def get_room(self, room_id: str) -> RoomSession:
        room = self.registry.get_by_room_id(room_id)
        if room is None:
            raise RoomNotFound(f"Room {room_id} not found.")
        return room

    def list_open_rooms(self) -> List[Dict[str, Any]]:
        return [room.to_dict() for room in self.registry.all_rooms() if room.is_open()]

    def get_scores(self, room_id: str) -> Dict[str, Any]:
        """Счет комнаты; для уже удаленной из памяти - из хранилища."""
        room = self.registry.get_by_room_id(room_id)
        if room is not None:
            return room.scores_payload()

        document = self.store.load_room(room_id) if self.store else None
        if document is None:
            raise RoomNotFound(f"Room {room_id} not found.")
        return {
            'room_id': room_id,
            'game_state': document['game_state'],
            'leaderboard': document.get('leaderboard', []),
            'winner': document.get('winner'),
            'win_condition': document.get('win_condition'),
        }

    ### Создание и вход ###

    def create_room(self, name: str, max_players: Optional[int] = None, created_by: Optional[str] = None,
                    password: Optional[str] = None, settings: Optional[Dict[str, bool]] = None) -> RoomSession:
        max_players = max_players or self.max_players_default
        max_players = max(MIN_PLAYERS, min(MAX_PLAYERS, max_players))

        room_id = self.factory.new_room_id(self.registry.has_room)
        room = self.factory.create_room(
            room_id=room_id,
            name=name,
            max_players=max_players,
            created_by=created_by,
            password=password,
            settings=settings
        )
        self.registry.add_room(room)
        return room

    def join_room(self, room_id: str, player_id: str, name: str,
                  password: Optional[str] = None, sid: Optional[str] = None,
                  owns_seat: bool = False) -> Tuple[Player, RoomSession]:
        """
        Вход в комнату (или переподключение тем же player_id).
        Если передан sid, подключение привязывается к игроку.

        Занятое место отдается, только если вызывающий доказал владение им:
        owns_seat (проверенный токен места) или sid, уже привязанный к этому игроку.
        """
        room = self.get_room(room_id)
        with room.lock:
            if room.get_player(player_id) is not None and not owns_seat:
                if sid is None or self.registry.get_binding(sid) != (room.id, player_id):
                    raise SeatTaken()
            player, notifications = room.add_player(player_id, name, password)
            if sid:
                self.registry.bind_sid(sid, room.id, player.id)
                notifications = room.mark_connected(player.id, True) or notifications
            self._emit_all(notifications)
        return player, room

    def bind_connection(self, sid: str, room_id: str, player_id: str) -> bool:
        """Привязка по JWT при connect. Игрок уже должен быть в комнате."""
        room = self.registry.get_by_room_id(room_id)
        if room is None or room.get_player(player_id) is None:
            return False
        with room.lock:
            self.registry.bind_sid(sid, room_id, player_id)
            self._emit_all(room.mark_connected(player_id, True))
        return True

    def handle_disconnect(self, sid: str) -> Optional[str]:
        """Место за игроком сохраняется, снимается только флаг подключения."""
        binding = self.registry.unbind_sid(sid)
        if not binding:
            return None
        room_id, player_id = binding
        room = self.registry.get_by_room_id(room_id)
        if room is None:
            return room_id
        with room.lock:
            if not self.registry.sids_for_player(room_id, player_id):
                self._emit_all(room.mark_connected(player_id, False))
        return room_id

    ### Действия игроков ###

    def set_ready(self, room_id: str, player_id: str, is_ready: bool) -> RoomSession:
        room = self.get_room(room_id)
        with room.lock:
            self._emit_all(room.set_ready(player_id, is_ready))
        return room

    def dispatch(self, sid: str, action: str, **kwargs) -> bool:
        """
        Выполняет действие от имени игрока, привязанного к sid.
        GameError уходит событием 'error' только отправителю.
        """
        try:
            room, player_id = self._require_binding(sid)
            with room.lock:
                if action == 'ready':
                    notifications = room.set_ready(player_id, kwargs['is_ready'])
                elif action == 'roll':
                    notifications = room.roll_dice(player_id)
                elif action == 'move':
                    notifications = room.move_token(player_id, kwargs['token_index'])
                elif action == 'leave':
                    notifications = room.leave(player_id)
                    self.registry.unbind_sid(sid)
                else:
                    raise ValueError(f"Unknown action: {action}")
                self._emit_all(notifications)
            return True
        except GameError as e:
            self.log_event("ACTION_REJECTED", f"{action}: {e.code} ({e.message})", sid=sid)
            self._error_to_sid(sid, e)
            return False

    ### Фоновые задачи ###

    def sweep_deadlines(self) -> int:
        """Проверка таймеров всех комнат. Возвращает число отправленных уведомлений."""
        sent = 0
        for room in self.registry.all_rooms():
            with room.lock:
                notifications = room.check_deadlines()
                self._emit_all(notifications)
            sent += len(notifications)
        return sent

    def prune_stale_rooms(self) -> List[str]:
        """
        Убирает из памяти завершенные комнаты старше FINISHED_ROOM_TTL_SEC
        и брошенные лобби: никого не подключено дольше LOBBY_IDLE_TTL_SEC.
        Документ в хранилище остается.
        """
        now = self.clock()
        removed = []
        for room in self.registry.all_rooms():
            with room.lock:
                finished_at = room.state.finished_at
                if room.state.is_finished:
                    stale = finished_at is not None and now - finished_at >= self.finished_room_ttl
                    reason = "Завершенная"
                else:
                    stale = room.is_idle_lobby(now, self.lobby_idle_ttl)
                    reason = "Брошенная"
                if stale:
                    self.registry.remove_room_by_id(room.id)
                    removed.append(room.id)
                    logger.info(f"{reason} комната {room.id} удалена из памяти.")
        return removed
