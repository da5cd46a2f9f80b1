# ludo_server/api/room_routes.py

from flask import request, jsonify, Blueprint, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity, get_jwt
from marshmallow import ValidationError

from ..extensions import limiter
from ludo_server.game_core.errors import GameError, NotAuthorized
from .schemas import CreateRoomSchema, JoinRoomSchema, ReadySchema, first_validation_error

bp = Blueprint('rooms_api', __name__)

# --- СЛОВАРЬ КОДОВ ОШИБОК ДЛЯ КЛИЕНТА ---
# ИМЯ ПОЛЯ из схемы (schemas.py) -> код ошибки.
VALIDATION_ERROR_CODES = {
    "name": "ROOM_INVALID_NAME",
    "max_players": "ROOM_INVALID_MAX_PLAYERS",
    "player_id": "PLAYER_INVALID_ID",
    "player_name": "PLAYER_INVALID_NAME",
}


def _bad_request(message="Нет данных.", code="GENERIC_BAD_REQUEST"):
    return jsonify({"status": "error", "message": message, "code": code}), 400


def _validation_failed(err: ValidationError):
    field_name, error_message = first_validation_error(err)
    if field_name is None:
        return _bad_request(error_message)
    return _bad_request(
        f"Validation failed on '{field_name}': {error_message}",
        VALIDATION_ERROR_CODES.get(field_name, "VALIDATION_ERROR")
    )


def _game_error(e: GameError):
    return jsonify(e.to_dict()), e.http_status


def _load(schema):
    json_data = request.get_json(silent=True)
    if not json_data:
        raise ValidationError("Нет данных.")
    return schema.load(json_data)


@bp.route('/rooms', methods=['GET'])
def list_rooms():
    rooms = current_app.game_service.list_open_rooms()
    return jsonify({"status": "success", "rooms": rooms})


@bp.route('/rooms', methods=['POST'])
@limiter.limit("30 per 10 minutes")
def create_room():
    try:
        data = _load(CreateRoomSchema())
    except ValidationError as err:
        return _validation_failed(err)

    room = current_app.game_service.create_room(
        name=data['name'],
        max_players=data['max_players'],
        created_by=data['created_by'],
        password=data['password'] or None,
        settings={'enable_timer': data['enable_timer'], 'auto_move': data['auto_move']}
    )
    current_app.logger.info(f"Создана комната {room.id} ('{room.name}').")
    return jsonify({"status": "success", "room": room.to_dict()}), 201


@bp.route('/rooms/<room_id>', methods=['GET'])
def get_room(room_id):
    try:
        room = current_app.game_service.get_room(room_id.upper())
    except GameError as e:
        return _game_error(e)
    return jsonify({"status": "success", "room": room.to_dict()})


def _owns_seat(room_id, player_id):
    """JWT запроса выдан на это место (player_id в этой комнате)."""
    return get_jwt_identity() == player_id and get_jwt().get('room_id') == room_id


@bp.route('/rooms/<room_id>/join', methods=['POST'])
@limiter.limit("60 per 10 minutes")
@jwt_required(optional=True)
def join_room(room_id):
    room_id = room_id.upper()
    try:
        data = _load(JoinRoomSchema())
    except ValidationError as err:
        return _validation_failed(err)

    try:
        player, room = current_app.game_service.join_room(
            room_id, data['player_id'], data['player_name'], data['password'],
            owns_seat=_owns_seat(room_id, data['player_id'])
        )
    except GameError as e:
        return _game_error(e)

    # Токен привязывает Socket.IO-подключение к (room_id, player_id).
    access_token = create_access_token(identity=player.id, additional_claims={'room_id': room.id})
    return jsonify({
        "status": "success",
        "player": player.to_dict(),
        "room": room.to_dict(),
        "access_token": access_token,
    })


@bp.route('/rooms/<room_id>/ready', methods=['POST'])
@jwt_required()
def set_ready(room_id):
    room_id = room_id.upper()
    try:
        # Тело необязательно: по умолчанию is_ready=True.
        data = ReadySchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return _validation_failed(err)

    player_id = get_jwt_identity()
    if not _owns_seat(room_id, data['player_id'] or player_id):
        return _game_error(NotAuthorized("Token is not issued for this seat."))

    try:
        room = current_app.game_service.set_ready(room_id, player_id, data['is_ready'])
    except GameError as e:
        return _game_error(e)
    return jsonify({"status": "success", "room": room.to_dict()})


@bp.route('/rooms/<room_id>/scores', methods=['GET'])
def get_scores(room_id):
    try:
        scores = current_app.game_service.get_scores(room_id.upper())
    except GameError as e:
        return _game_error(e)
    return jsonify({"status": "success", **scores})


@bp.route('/rooms/<room_id>/stats', methods=['GET'])
def get_stats(room_id):
    try:
        room = current_app.game_service.get_room(room_id.upper())
    except GameError as e:
        return _game_error(e)
    return jsonify({"status": "success", "room_id": room.id, "statistics": room.statistics()})
