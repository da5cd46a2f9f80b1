# ludo_server/game_core/token.py

from dataclasses import dataclass
from typing import Any, Dict

from .constants import Color, Zone, HOME_BONUS, NOT_ON_TRACK


@dataclass
class Token:
    """
    Одна фишка игрока.

    Методы - это "чистые" переходы состояния без проверок:
    легальность хода решает move_engine ДО их вызова.
    Очки не хранятся, а вычисляются из шагов и зоны.
    """
    index: int
    owner_color: Color
    zone: Zone = Zone.BASE
    track_position: int = NOT_ON_TRACK
    steps_accumulated: int = 0

    @property
    def score(self) -> int:
        if self.zone == Zone.HOME:
            return self.steps_accumulated + HOME_BONUS
        return self.steps_accumulated

    @property
    def is_at_home(self) -> bool:
        return self.zone == Zone.HOME

    @property
    def is_in_base(self) -> bool:
        return self.zone == Zone.BASE

    @property
    def is_on_track(self) -> bool:
        return self.zone == Zone.TRACK

    def move_to_track(self, start_position: int):
        self.zone = Zone.TRACK
        self.track_position = start_position

    def advance(self, steps: int):
        self.track_position += steps

    def credit_steps(self, steps: int):
        self.steps_accumulated += steps

    def reach_home(self) -> bool:
        """
        Переводит фишку в дом. Бонус входит в score через зону,
        поэтому повторный вызов ничего не меняет.
        Возвращает True, только если переход случился сейчас.
        """
        if self.zone == Zone.HOME:
            return False
        self.zone = Zone.HOME
        return True

    def reset(self):
        """Фишку сбили: обратно на базу, все обнуляется."""
        self.zone = Zone.BASE
        self.track_position = NOT_ON_TRACK
        self.steps_accumulated = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'color': self.owner_color.value,
            'zone': self.zone.value,
            'track_position': self.track_position,
            'steps': self.steps_accumulated,
            'score': self.score,
            'is_at_home': self.is_at_home,
        }
