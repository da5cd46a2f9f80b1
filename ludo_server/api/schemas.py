# ludo_server/api/schemas.py

from marshmallow import Schema, fields, pre_load, ValidationError, EXCLUDE
from marshmallow.validate import Length, Range, Regexp

from ludo_server.game_core import MIN_PLAYERS, MAX_PLAYERS

# --- Базовая схема для очистки данных ---

STRIPPED_FIELDS = ('name', 'player_name', 'player_id', 'room_id', 'password', 'created_by')


class BaseStrippedSchema(Schema):
    """
    Базовая схема, которая автоматически "очищает" (strip)
    строковые поля перед любой валидацией. Лишние ключи отбрасываются.
    """
    class Meta:
        unknown = EXCLUDE

    @pre_load
    def strip_whitespace(self, data, **kwargs):
        if not isinstance(data, dict):
            raise ValidationError("Ожидается JSON-объект.")
        data = dict(data)
        for key in STRIPPED_FIELDS:
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        return data


player_id_field = dict(
    required=True,
    validate=[
        Length(min=1, max=64, error="player_id должен быть от 1 до 64 символов."),
        Regexp(r"^[A-Za-z0-9_\-]+$", error="player_id может содержать только латинские буквы, цифры, '_' и '-'."),
    ],
    error_messages={"required": "player_id обязателен."}
)

player_name_field = dict(
    required=True,
    validate=Length(min=1, max=30, error="Имя игрока должно быть от 1 до 30 символов."),
    error_messages={"required": "Имя игрока обязательно."}
)

# --- HTTP ---


class CreateRoomSchema(BaseStrippedSchema):
    name = fields.Str(
        required=True,
        validate=Length(min=1, max=30, error="Название комнаты должно быть от 1 до 30 символов."),
        error_messages={"required": "Название комнаты обязательно."}
    )
    max_players = fields.Int(
        load_default=None,
        strict=True,
        validate=Range(min=MIN_PLAYERS, max=MAX_PLAYERS, error=f"Игроков может быть от {MIN_PLAYERS} до {MAX_PLAYERS}.")
    )
    created_by = fields.Str(load_default=None, validate=Length(max=64))
    password = fields.Str(load_default=None, validate=Length(max=64))
    enable_timer = fields.Bool(load_default=True)
    auto_move = fields.Bool(load_default=True)


class JoinRoomSchema(BaseStrippedSchema):
    player_id = fields.Str(**player_id_field)
    player_name = fields.Str(**player_name_field)
    password = fields.Str(load_default=None)


class ReadySchema(BaseStrippedSchema):
    # Игрок берется из JWT; player_id в теле, если есть, должен с ним совпасть.
    player_id = fields.Str(load_default=None, validate=player_id_field['validate'])
    is_ready = fields.Bool(load_default=True)


# --- Socket.IO ---


class SocketJoinSchema(JoinRoomSchema):
    room_id = fields.Str(
        required=True,
        validate=Length(min=1, max=16),
        error_messages={"required": "room_id обязателен."}
    )
    # Токен места из прошлого входа: без него занятое место не отдается.
    access_token = fields.Str(load_default=None)

    @pre_load
    def upper_room_id(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get('room_id'), str):
            data = dict(data)
            data['room_id'] = data['room_id'].strip().upper()
        return data


class SocketReadySchema(BaseStrippedSchema):
    is_ready = fields.Bool(load_default=True)


class MoveSchema(BaseStrippedSchema):
    token_index = fields.Int(
        required=True,
        strict=True,
        error_messages={"required": "token_index обязателен."}
    )

    @pre_load
    def reject_bool(self, data, **kwargs):
        # bool - подкласс int, True не должен стать фишкой #1.
        if isinstance(data, dict) and isinstance(data.get("token_index"), bool):
            raise ValidationError("Ожидается целое число.", field_name="token_index")
        return data


def first_validation_error(err: ValidationError) -> tuple:
    """(поле, сообщение) первой ошибки валидации."""
    messages = err.messages
    if isinstance(messages, dict) and messages:
        field_name = next(iter(messages))
        field_messages = messages[field_name]
        if isinstance(field_messages, list) and field_messages:
            return field_name, str(field_messages[0])
        return field_name, str(field_messages)
    if isinstance(messages, list) and messages:
        return None, str(messages[0])
    return None, "Unknown validation error"
