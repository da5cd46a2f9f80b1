# ludo_server/game_core/utils.py

import random
import uuid

from . import constants as c


def roll_dice() -> int:
    """Бросает один кубик."""
    return random.randint(c.DICE_MIN, c.DICE_MAX)


def generate_room_code() -> str:
    """Короткий код комнаты: 8 символов в верхнем регистре."""
    return uuid.uuid4().hex[:8].upper()


def are_moves_available(legal_moves) -> bool:
    """Проверяет, есть ли хотя бы один ход в списке."""
    return bool(legal_moves)
