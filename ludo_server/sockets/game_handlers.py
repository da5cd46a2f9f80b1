# ludo_server/sockets/game_handlers.py

from flask import request, current_app
from flask_socketio import emit, join_room, leave_room
from flask_jwt_extended import create_access_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import InvalidTokenError
from marshmallow import ValidationError
from ..extensions import socketio
from .connection_handlers import decode_seat_token
from ..globals import sid_to_user, sid_to_user_lock, log_event
from ..api.schemas import SocketJoinSchema, SocketReadySchema, MoveSchema, first_validation_error
from ludo_server.game_core.errors import GameError, NotAuthorized, InvalidMove


def _validation_error(err: ValidationError):
    field_name, message = first_validation_error(err)
    emit('error', {
        'status': 'error',
        'message': f"Validation failed on '{field_name}': {message}" if field_name else message,
        'code': 'VALIDATION_ERROR',
    })


@socketio.on('room:join')
def handle_room_join(data):
    """
    Вход в комнату (или переподключение) с привязкой подключения к игроку.
    При SOCKET_AUTH_REQUIRED подключение уже должно быть привязано токеном
    к этому же игроку. Вернуться на уже занятое место можно только с его
    токеном (access_token) или с подключения, которое к нему привязано.
    """
    game_service = current_app.game_service
    sid = request.sid

    try:
        payload = SocketJoinSchema().load(data or {})
    except ValidationError as err:
        _validation_error(err)
        return

    room_id = payload['room_id']
    player_id = payload['player_id']

    binding = game_service.registry.get_binding(sid)
    if current_app.config['SOCKET_AUTH_REQUIRED'] and binding != (room_id, player_id):
        emit('error', NotAuthorized().to_dict())
        return

    owns_seat = False
    if payload['access_token']:
        try:
            owns_seat = decode_seat_token(payload['access_token']) == (room_id, player_id)
        except (InvalidTokenError, JWTExtendedException, KeyError) as e:
            log_event("AUTH_FAILED", f"Invalid seat token: {e}", sid=sid, game_id=room_id)

    if binding and binding[0] != room_id:
        leave_room(binding[0])

    join_room(room_id)
    try:
        player, room = game_service.join_room(
            room_id, player_id, payload['player_name'], payload['password'],
            sid=sid, owns_seat=owns_seat
        )
    except GameError as e:
        if not binding or binding[0] != room_id:
            leave_room(room_id)
        log_event("JOIN_REJECTED", f"{e.code}: {e.message}", sid=sid, game_id=room_id)
        emit('error', e.to_dict())
        return

    with sid_to_user_lock:
        user_data = sid_to_user.setdefault(sid, {})
        user_data.update({"player_id": player.id, "username": player.name, "room_id": room.id})

    log_event("ROOM_JOIN", f"Joined as {player.color.value}.", sid=sid, game_id=room.id)
    access_token = create_access_token(identity=player.id, additional_claims={'room_id': room.id})
    return {'status': 'success', 'player': player.to_dict(), 'room_id': room.id, 'access_token': access_token}


@socketio.on('player:ready')
def handle_player_ready(data=None):
    try:
        payload = SocketReadySchema().load(data or {})
    except ValidationError as err:
        _validation_error(err)
        return
    current_app.game_service.dispatch(request.sid, 'ready', is_ready=payload['is_ready'])


@socketio.on('game:roll')
def handle_roll(data=None):
    current_app.game_service.dispatch(request.sid, 'roll')


@socketio.on('game:move')
def handle_move(data=None):
    try:
        payload = MoveSchema().load(data or {})
    except ValidationError as err:
        _, message = first_validation_error(err)
        emit('error', InvalidMove(f"token_index: {message}").to_dict())
        return
    current_app.game_service.dispatch(request.sid, 'move', token_index=payload['token_index'])


@socketio.on('room:leave')
def handle_room_leave(data=None):
    game_service = current_app.game_service
    sid = request.sid

    binding = game_service.registry.get_binding(sid)
    if game_service.dispatch(sid, 'leave') and binding:
        leave_room(binding[0])
        with sid_to_user_lock:
            user_data = sid_to_user.get(sid)
            if user_data:
                user_data["room_id"] = None
