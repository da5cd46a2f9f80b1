# ludo_server/game_core/constants.py

from enum import Enum
from typing import Dict, NamedTuple


class Color(str, Enum):
    RED = 'red'
    BLUE = 'blue'
    GREEN = 'green'
    YELLOW = 'yellow'


class Zone(str, Enum):
    BASE = 'base'
    TRACK = 'track'
    HOME = 'home'


class ColorLayout(NamedTuple):
    start: int
    home: int


# === Разметка трека ===
# Порядок важен: цвет выдается игроку по порядку входа в комнату.
COLOR_ORDER = (Color.RED, Color.BLUE, Color.GREEN, Color.YELLOW)

COLOR_LAYOUT: Dict[Color, ColorLayout] = {
    Color.RED: ColorLayout(start=16, home=73),
    Color.BLUE: ColorLayout(start=55, home=79),
    Color.GREEN: ColorLayout(start=42, home=85),
    Color.YELLOW: ColorLayout(start=29, home=91),
}

_missing = set(Color) - set(COLOR_LAYOUT)
if _missing:
    raise RuntimeError(f"COLOR_LAYOUT не покрывает цвета: {sorted(c.value for c in _missing)}")

# Общий трек 0-71, дальше (72-91) - приватные финишные прямые.
SHARED_TRACK_LENGTH = 72
MAX_TRACK_POSITION = 91
NOT_ON_TRACK = -1

# === Правила ===
TOKENS_PER_PLAYER = 4
MIN_PLAYERS = 2
MAX_PLAYERS = 4
HOME_BONUS = 56
DICE_MIN = 1
DICE_MAX = 6
EXIT_ROLLS = frozenset({1, 6})
MAX_CONSECUTIVE_SIXES = 2

# === Причины отказа (уходят клиенту как есть) ===
REASON_ALREADY_HOME = 'already home'
REASON_NEEDS_EXIT_ROLL = 'needs 1 or 6 to exit'
REASON_OVERSHOOT = 'would overshoot home'

# === Условия победы ===
WIN_ALL_HOME = 'all_home'
WIN_TIME_UP = 'time_up'
WIN_ABORTED = 'aborted'


def start_position(color: Color) -> int:
    return COLOR_LAYOUT[Color(color)].start


def home_position(color: Color) -> int:
    return COLOR_LAYOUT[Color(color)].home
