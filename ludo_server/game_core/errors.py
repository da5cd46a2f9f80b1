# ludo_server/game_core/errors.py

"""
Ошибки игрового ядра.

Все ошибки одного действия ловятся на границе RoomSession (до изменения
состояния) и уходят отправителю событием 'error'. HTTP-слой отдает их
с кодом http_status.
"""


class GameError(Exception):
    code = 'GAME_ERROR'
    http_status = 400
    default_message = 'Game error.'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'status': 'error', 'message': self.message, 'code': self.code}


class NotYourTurn(GameError):
    code = 'NOT_YOUR_TURN'
    http_status = 409
    default_message = 'Not your turn.'


class InvalidMove(GameError):
    code = 'INVALID_MOVE'
    default_message = 'Invalid move.'

    def __init__(self, reason: str = None):
        super().__init__(reason)
        self.reason = self.message


class RoomFull(GameError):
    code = 'ROOM_FULL'
    http_status = 409
    default_message = 'Room is full.'


class RoomNotFound(GameError):
    code = 'ROOM_NOT_FOUND'
    http_status = 404
    default_message = 'Room not found.'


class PlayerNotFound(GameError):
    code = 'PLAYER_NOT_FOUND'
    http_status = 404
    default_message = 'Player not found.'


class GameNotActive(GameError):
    code = 'GAME_NOT_ACTIVE'
    http_status = 409
    default_message = 'Game is not active.'


class GameAlreadyStarted(GameError):
    code = 'GAME_ALREADY_STARTED'
    http_status = 403
    default_message = 'Game has already started.'


class InvalidRoomPassword(GameError):
    code = 'INVALID_ROOM_PASSWORD'
    http_status = 403
    default_message = 'Wrong room password.'


class NotAuthorized(GameError):
    code = 'NOT_AUTHORIZED'
    http_status = 401
    default_message = 'Connection is not bound to this player.'


class SeatTaken(GameError):
    code = 'SEAT_TAKEN'
    http_status = 409
    default_message = 'This player id is already seated in the room.'


class InternalInconsistency(GameError):
    """Нарушен инвариант. Для комнаты фатально: игра завершается без победителя."""
    code = 'INTERNAL_INCONSISTENCY'
    http_status = 500
    default_message = 'Game state is inconsistent.'
