# ludo_server/game_core/player.py

from typing import Any, Dict, List, Optional

from .constants import Color, TOKENS_PER_PLAYER
from .token import Token


class Player:
    """
    Участник комнаты: ровно 4 фишки, счет и захваты.
    total_score не хранится, а каждый раз пересчитывается из фишек.
    """

    def __init__(self, player_id: str, name: str, color: Color):
        self.id = player_id
        self.name = name
        self.color = Color(color)
        self.tokens: List[Token] = [Token(index=i, owner_color=self.color) for i in range(TOKENS_PER_PLAYER)]
        self.capture_count: int = 0
        # Очки, перешедшие от сбитых фишек соперников. Только растут.
        self.captured_points: int = 0
        self.is_ready: bool = False
        self.is_connected: bool = False
        self.turns_played: int = 0

    @property
    def total_score(self) -> int:
        return sum(token.score for token in self.tokens) + self.captured_points

    @property
    def tokens_at_home(self) -> int:
        return sum(1 for token in self.tokens if token.is_at_home)

    def get_token(self, token_index: int) -> Optional[Token]:
        if isinstance(token_index, bool) or not isinstance(token_index, int):
            return None
        if 0 <= token_index < len(self.tokens):
            return self.tokens[token_index]
        return None

    def record_capture(self, victim_score: int):
        self.capture_count += 1
        self.captured_points += victim_score

    def has_won(self) -> bool:
        return all(token.is_at_home for token in self.tokens)

    # Правила живут в move_engine, он же импортирует Player.
    def legal_moves(self, dice_value: int) -> list:
        from .move_engine import list_legal_moves
        return list_legal_moves(self, dice_value)

    def move_token(self, token_index: int, dice_value: int, opponents=()):
        from .move_engine import execute_move
        return execute_move(self, token_index, dice_value, opponents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color.value,
            'is_ready': self.is_ready,
            'is_connected': self.is_connected,
            'total_score': self.total_score,
            'captures': self.capture_count,
            'captured_points': self.captured_points,
            'turns_played': self.turns_played,
            'tokens': [token.to_dict() for token in self.tokens],
        }

    def __repr__(self):
        return f"Player(id={self.id!r}, color={self.color.value}, score={self.total_score})"
