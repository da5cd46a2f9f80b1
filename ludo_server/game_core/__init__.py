# ludo_server/game_core/__init__.py

# "Публичный API" игрового ядра
from .constants import (
    Color, Zone, COLOR_ORDER, HOME_BONUS, MIN_PLAYERS, MAX_PLAYERS,
    WIN_ALL_HOME, WIN_TIME_UP, WIN_ABORTED,
)

from .token import Token
from .player import Player

from .move_engine import (
    LegalityCheck,
    LegalMove,
    MoveResult,
    is_legal_move,
    list_legal_moves,
    execute_move,
    should_grant_extra_turn,
    find_all_home_winner,
    verify_players,
)

from .scoring import (
    player_score,
    rank_players,
    determine_winner,
    build_leaderboard,
    format_scores,
    game_statistics,
)

from .utils import (
    roll_dice,
    generate_room_code,
    are_moves_available,
)
