# ludo_server/services/room_state.py

from typing import List, Optional, Dict, Any

from ludo_server.game_core import Color, LegalMove

# Лобби: игроков меньше двух.
STATE_WAITING = "waiting"
# Лобби: игроков достаточно, ждем готовности всех.
STATE_READY = "ready"
STATE_PLAYING = "playing"
STATE_FINISHED = "finished"

ALLOWED_TRANSITIONS = {
    STATE_WAITING: {STATE_READY},
    STATE_READY: {STATE_PLAYING, STATE_WAITING},
    STATE_PLAYING: {STATE_FINISHED},
    STATE_FINISHED: set(),
}

LOBBY_STATES = (STATE_WAITING, STATE_READY)


class RoomState:
    """
    Простой класс-хранилище (DTO) для состояния партии в комнате.
    Не содержит логики, кроме контроля переходов game_state.
    """
    def __init__(self):
        self.game_state: str = STATE_WAITING
        self.turn_order: List[Color] = []
        self.current_turn_color: Optional[Color] = None
        self.dice_value: Optional[int] = None
        self.consecutive_sixes: int = 0
        # Кубик брошен, ждем ход фишкой.
        self.awaiting_move: bool = False
        self.legal_moves: List[LegalMove] = []
        self.game_started_at: Optional[float] = None
        self.game_deadline: Optional[float] = None
        self.turn_deadline: Optional[float] = None
        self.finished_at: Optional[float] = None
        self.winner_id: Optional[str] = None
        self.win_condition: Optional[str] = None

    def transition_to(self, new_state: str):
        if new_state not in ALLOWED_TRANSITIONS[self.game_state]:
            raise ValueError(f"Недопустимый переход {self.game_state} -> {new_state}")
        self.game_state = new_state

    @property
    def is_playing(self) -> bool:
        return self.game_state == STATE_PLAYING

    @property
    def is_finished(self) -> bool:
        return self.game_state == STATE_FINISHED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'game_state': self.game_state,
            'turn_order': [color.value for color in self.turn_order],
            'current_turn': self.current_turn_color.value if self.current_turn_color else None,
            'dice_value': self.dice_value,
            'consecutive_sixes': self.consecutive_sixes,
            'awaiting_move': self.awaiting_move,
            'legal_moves': [m.to_dict() for m in self.legal_moves],
            'winner': self.winner_id,
            'win_condition': self.win_condition,
        }
