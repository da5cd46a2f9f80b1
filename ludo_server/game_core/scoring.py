# ludo_server/game_core/scoring.py

"""
Подсчет очков и таблица лидеров.

Все функции пересчитывают значения из фишек заново - никаких
инкрементальных "total_score += ..." на стороне комнаты.
Порядок в таблице: очки (убыв.), захваты (убыв.), порядок входа (возр.).
"""

from typing import Any, Dict, List, Optional, Sequence

from .player import Player
from .token import Token


def token_score(token: Token) -> int:
    return token.score


def player_score(player: Player) -> int:
    return sum(token_score(t) for t in player.tokens) + player.captured_points


def rank_players(players: Sequence[Player]) -> List[Player]:
    """players должны идти в порядке входа - это последний тай-брейк."""
    indexed = list(enumerate(players))
    indexed.sort(key=lambda pair: (-player_score(pair[1]), -pair[1].capture_count, pair[0]))
    return [player for _, player in indexed]


def determine_winner(players: Sequence[Player]) -> Optional[Player]:
    ranked = rank_players(players)
    return ranked[0] if ranked else None


def build_leaderboard(players: Sequence[Player]) -> List[Dict[str, Any]]:
    leaderboard = []
    for rank, player in enumerate(rank_players(players), start=1):
        leaderboard.append({
            'rank': rank,
            'player_id': player.id,
            'name': player.name,
            'color': player.color.value,
            'total_score': player_score(player),
            'captures': player.capture_count,
            'tokens_at_home': player.tokens_at_home,
        })
    return leaderboard


def format_scores(players: Sequence[Player]) -> Dict[str, Dict[str, Any]]:
    scores = {}
    for player in players:
        scores[player.id] = {
            'player_id': player.id,
            'name': player.name,
            'color': player.color.value,
            'total_score': player_score(player),
            'token_scores': [
                {'index': t.index, 'score': token_score(t), 'zone': t.zone.value, 'is_at_home': t.is_at_home}
                for t in player.tokens
            ],
            'captures': player.capture_count,
            'tokens_at_home': player.tokens_at_home,
        }
    return scores


def game_statistics(players: Sequence[Player], elapsed_seconds: float) -> Dict[str, Any]:
    total_score = sum(player_score(p) for p in players)
    return {
        'total_turns': sum(p.turns_played for p in players),
        'captures_made': sum(p.capture_count for p in players),
        'tokens_at_home': sum(p.tokens_at_home for p in players),
        'game_time_elapsed': round(max(0.0, elapsed_seconds), 3),
        'average_score_per_player': (total_score / len(players)) if players else 0,
    }
