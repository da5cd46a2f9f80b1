# ludo_server/services/room_factory.py

import time
from typing import Dict, Any, Callable, Optional
from werkzeug.security import generate_password_hash

from .room_session import RoomSession
from .room_player_manager import RoomPlayerManager
from .room_turn_manager import RoomTurnManager
from ludo_server.game_core import roll_dice, generate_room_code


class RoomFactory:
    """
    DI-контейнер комнаты: собирает RoomSession из менеджеров
    и внедряет конфиг, часы, кубик и функции логирования.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        log_event: Callable,
        log_stats: Callable,
        persist: Optional[Callable[[Dict[str, Any]], None]] = None,
        clock: Callable[[], float] = time.time,
        dice_roller: Callable[[], int] = roll_dice,
        code_generator: Callable[[], str] = generate_room_code
    ):
        self.config = config
        self.log_event = log_event or (lambda *args, **kwargs: None)
        self.log_stats = log_stats
        self.persist = persist
        self.clock = clock
        self.dice_roller = dice_roller
        self.code_generator = code_generator

    def new_room_id(self, is_taken: Callable[[str], bool]) -> str:
        room_id = self.code_generator()
        while is_taken(room_id):
            room_id = self.code_generator()
        return room_id

    def create_room(
        self,
        room_id: str,
        name: str,
        max_players: int,
        created_by: Optional[str] = None,
        password: Optional[str] = None,
        settings: Optional[Dict[str, bool]] = None
    ) -> RoomSession:
        turn_manager = RoomTurnManager(
            room_id=room_id,
            config=self.config,
            clock=self.clock,
            dice_roller=self.dice_roller,
            log_event=self.log_event,
            log_stats=self.log_stats
        )

        player_manager = RoomPlayerManager(
            room_id=room_id,
            max_players=max_players,
            log_event=self.log_event
        )

        session = RoomSession(
            room_id=room_id,
            name=name,
            max_players=max_players,
            created_by=created_by,
            password_hash=generate_password_hash(password) if password else None,
            settings=settings or {},
            turn_manager=turn_manager,
            player_manager=player_manager,
            log_event=self.log_event,
            persist=self.persist,
            clock=self.clock
        )
        self.log_event("ROOM_CREATED", f"Комната '{name}' на {max_players} игроков создана.", game_id=room_id)
        return session
