# ludo_server/services/room_registry.py

import threading
from typing import Optional, Dict, Any, List, Tuple


class RoomRegistry:
    """
    Отвечает ИСКЛЮЧИТЕЛЬНО за хранение и поиск комнат
    и привязок подключений (sid -> (room_id, player_id)).
    Потокобезопасен.
    """
    def __init__(self, log_event_func):
        self.rooms: Dict[str, Any] = {}  # room_id -> RoomSession
        self.sid_bindings: Dict[str, Tuple[str, str]] = {}

        self.lock = threading.RLock()
        self.log_event = log_event_func or (lambda *args, **kwargs: None)

    def add_room(self, room_session):
        room_id = room_session.id
        with self.lock:
            if room_id in self.rooms:
                self.log_event("REGISTRY_WARN", f"Комната {room_id} уже существует при добавлении.", game_id=room_id)
                return
            self.rooms[room_id] = room_session
            self.log_event("REGISTRY_ADD", f"Комната {room_id} добавлена. Всего комнат: {len(self.rooms)}", game_id=room_id)

    def remove_room_by_id(self, room_id: str):
        """Удаляет комнату и все привязки подключений к ней."""
        if not room_id:
            return

        with self.lock:
            if self.rooms.pop(room_id, None) is None:
                self.log_event("REGISTRY_WARN", f"Попытка удалить несуществующую комнату {room_id}", game_id=room_id)
                return

            for sid in [sid for sid, (rid, _) in self.sid_bindings.items() if rid == room_id]:
                del self.sid_bindings[sid]

            self.log_event("REGISTRY_REMOVE", f"Комната {room_id} удалена. Осталось комнат: {len(self.rooms)}", game_id=room_id)

    def has_room(self, room_id: str) -> bool:
        with self.lock:
            return room_id in self.rooms

    def get_by_room_id(self, room_id: str) -> Optional[Any]:
        with self.lock:
            return self.rooms.get(room_id)

    def all_rooms(self) -> List[Any]:
        """Снимок списка комнат: итерировать можно без блокировки реестра."""
        with self.lock:
            return list(self.rooms.values())

    # --- Привязки подключений ---

    def bind_sid(self, sid: str, room_id: str, player_id: str):
        with self.lock:
            if room_id not in self.rooms:
                self.log_event("REGISTRY_WARN", f"Попытка привязать SID к несуществующей комнате {room_id}", game_id=room_id, sid=sid)
                return
            self.sid_bindings[sid] = (room_id, player_id)
            self.log_event("REGISTRY_ASSOC", f"SID привязан к игроку {player_id}", game_id=room_id, sid=sid)

    def get_binding(self, sid: str) -> Optional[Tuple[str, str]]:
        with self.lock:
            return self.sid_bindings.get(sid)

    def unbind_sid(self, sid: str) -> Optional[Tuple[str, str]]:
        with self.lock:
            binding = self.sid_bindings.pop(sid, None)
            if binding:
                self.log_event("REGISTRY_DISSOC", f"SID отвязан от игрока {binding[1]}", game_id=binding[0], sid=sid)
            return binding

    def sids_for_player(self, room_id: str, player_id: str) -> List[str]:
        with self.lock:
            return [sid for sid, binding in self.sid_bindings.items() if binding == (room_id, player_id)]
