# ludo_server/game_core/move_engine.py

"""
Правила хода: проверка легальности, выполнение хода, захват,
право на дополнительный ход и проверка победы.

Функции не хранят состояния; всё состояние живет в Player/Token,
очередность и кубик - в RoomSession.
"""

from dataclasses import dataclass, field, asdict
from typing import Iterable, List, Optional

from . import constants as c
from .errors import InvalidMove, InternalInconsistency
from .player import Player
from .token import Token


@dataclass
class LegalityCheck:
    legal: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.legal


@dataclass
class LegalMove:
    token_index: int
    from_position: int
    to_position: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CapturedToken:
    player_id: str
    color: str
    token_index: int
    score: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MoveResult:
    token_index: int
    steps: int
    from_position: int
    to_position: int
    from_base: bool = False
    reached_home: bool = False
    bonus_points: int = 0
    captured: List[CapturedToken] = field(default_factory=list)

    @property
    def captured_token(self) -> Optional[CapturedToken]:
        return self.captured[0] if self.captured else None

    def to_dict(self) -> dict:
        return {
            'token_index': self.token_index,
            'steps': self.steps,
            'from_position': self.from_position,
            'to_position': self.to_position,
            'from_base': self.from_base,
            'reached_home': self.reached_home,
            'bonus_points': self.bonus_points,
            'captured': [ct.to_dict() for ct in self.captured],
        }


def is_valid_dice_value(dice_value) -> bool:
    if isinstance(dice_value, bool) or not isinstance(dice_value, int):
        return False
    return c.DICE_MIN <= dice_value <= c.DICE_MAX


def is_legal_move(token: Token, dice_value: int) -> LegalityCheck:
    if token.is_at_home:
        return LegalityCheck(False, c.REASON_ALREADY_HOME)

    if token.is_in_base:
        if dice_value in c.EXIT_ROLLS:
            return LegalityCheck(True)
        return LegalityCheck(False, c.REASON_NEEDS_EXIT_ROLL)

    # Точное попадание в порог дома - легально (фишка заходит домой).
    if token.track_position + dice_value > c.home_position(token.owner_color):
        return LegalityCheck(False, c.REASON_OVERSHOOT)
    return LegalityCheck(True)


def destination_of(token: Token, dice_value: int) -> int:
    """Куда встанет фишка. Выход с базы ставит ее на старт без прибавки кубика."""
    if token.is_in_base:
        return c.start_position(token.owner_color)
    return token.track_position + dice_value


def list_legal_moves(player: Player, dice_value: int) -> List[LegalMove]:
    moves = []
    for token in player.tokens:
        if is_legal_move(token, dice_value):
            moves.append(LegalMove(
                token_index=token.index,
                from_position=token.track_position,
                to_position=destination_of(token, dice_value),
            ))
    return moves


def is_on_shared_track(position: int) -> bool:
    return 0 <= position < c.SHARED_TRACK_LENGTH


def find_tokens_at(position: int, opponents: Iterable[Player], mover_color: c.Color) -> List[tuple]:
    """Все чужие фишки на клетке общего трека: [(player, token), ...]."""
    if not is_on_shared_track(position):
        return []
    found = []
    for opponent in opponents:
        if opponent.color == mover_color:
            continue
        for token in opponent.tokens:
            if token.is_on_track and token.track_position == position:
                found.append((opponent, token))
    return found


def execute_move(player: Player, token_index: int, dice_value: int,
                 opponents: Iterable[Player] = ()) -> MoveResult:
    """
    Выполняет ход фишкой token_index.

    1. Проверки (фишка своя, кубик валиден, ход легален). При ошибке -
       InvalidMove, состояние НЕ тронуто.
    2. Перемещение: выход с базы или продвижение по треку + заход в дом.
    3. Захват всех чужих фишек на клетке назначения (только общий трек).
    4. Начисление шагов.
    """
    token = player.get_token(token_index)
    if token is None:
        raise InvalidMove('token does not belong to player')
    if not is_valid_dice_value(dice_value):
        raise InvalidMove('invalid dice value')

    check = is_legal_move(token, dice_value)
    if not check.legal:
        raise InvalidMove(check.reason)

    opponents = [p for p in opponents if p is not player]

    result = MoveResult(
        token_index=token.index,
        steps=dice_value,
        from_position=token.track_position,
        to_position=destination_of(token, dice_value),
    )

    if token.is_in_base:
        token.move_to_track(c.start_position(token.owner_color))
        result.from_base = True
    else:
        token.advance(dice_value)
        if token.track_position >= c.home_position(token.owner_color):
            if token.reach_home():
                result.reached_home = True
                result.bonus_points = c.HOME_BONUS

    if token.is_on_track:
        for victim_owner, victim in find_tokens_at(token.track_position, opponents, player.color):
            victim_score = victim.score
            victim.reset()
            player.record_capture(victim_score)
            result.captured.append(CapturedToken(
                player_id=victim_owner.id,
                color=victim_owner.color.value,
                token_index=victim.index,
                score=victim_score,
            ))

    token.credit_steps(dice_value)
    return result


def should_grant_extra_turn(dice_value: int, consecutive_sixes: int,
                            move_result: Optional[MoveResult]) -> bool:
    """
    consecutive_sixes - сколько шестерок подряд было ДО этого броска.
    Третья шестерка подряд сжигает ход, даже если был захват или заход домой.
    """
    if dice_value == 6 and consecutive_sixes >= c.MAX_CONSECUTIVE_SIXES:
        return False
    if dice_value == 6:
        return True
    if move_result is None:
        return False
    return bool(move_result.captured) or move_result.reached_home


def find_all_home_winner(players: Iterable[Player]) -> Optional[Player]:
    for player in players:
        if player.has_won():
            return player
    return None


def verify_token(token: Token):
    """Защитная проверка инвариантов фишки. Нарушение - InternalInconsistency."""
    if token.steps_accumulated < 0:
        raise InternalInconsistency(f"token {token.owner_color.value}#{token.index}: negative steps")

    if token.is_in_base:
        if token.track_position != c.NOT_ON_TRACK or token.steps_accumulated != 0:
            raise InternalInconsistency(f"token {token.owner_color.value}#{token.index}: dirty base state")
        return

    start = c.start_position(token.owner_color)
    home = c.home_position(token.owner_color)
    if token.is_on_track and not (start <= token.track_position < home):
        raise InternalInconsistency(
            f"token {token.owner_color.value}#{token.index}: position {token.track_position} out of [{start}, {home})"
        )
    if token.is_at_home and token.track_position != home:
        raise InternalInconsistency(f"token {token.owner_color.value}#{token.index}: home at {token.track_position}")


def verify_players(players: Iterable[Player]):
    for player in players:
        if player.capture_count < 0 or player.captured_points < 0:
            raise InternalInconsistency(f"player {player.id}: negative capture stats")
        for token in player.tokens:
            verify_token(token)
