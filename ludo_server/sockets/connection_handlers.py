# ludo_server/sockets/connection_handlers.py
import datetime
from flask import request, current_app
from flask_socketio import join_room, leave_room
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import InvalidTokenError
from ..extensions import socketio
from ..globals import sid_to_user, sid_to_user_lock, log_event


def _remember_sid(sid, player_id=None, username=None, room_id=None):
    with sid_to_user_lock:
        sid_to_user[sid] = {
            "player_id": player_id,
            "username": username,
            "room_id": room_id,
            "connect_time": datetime.datetime.now(),
        }


def decode_seat_token(token):
    """(room_id, player_id) из токена места. Ошибки токена пробрасываются."""
    decoded_token = decode_token(token)
    return decoded_token['room_id'], decoded_token['sub']


@socketio.on('connect')
def handle_connect(auth=None):
    """
    С токеном (из POST /api/rooms/<id>/join) подключение сразу
    привязывается к игроку. Без токена - только если это разрешено конфигом.
    """
    game_service = current_app.game_service
    sid = request.sid
    token = auth.get('token') if isinstance(auth, dict) else None

    if not token:
        if current_app.config['SOCKET_AUTH_REQUIRED']:
            log_event("AUTH_FAILED", "Connection without token rejected.", sid=sid)
            return False
        _remember_sid(sid)
        log_event("SESSION_START", "Anonymous connection accepted.", sid=sid)
        return

    try:
        room_id, player_id = decode_seat_token(token)
    except (InvalidTokenError, JWTExtendedException, KeyError) as e:
        log_event("AUTH_FAILED", f"Invalid or expired token: {e}", sid=sid)
        return False

    # Сначала входим в комнату Socket.IO, чтобы получить свой же room:data.
    join_room(room_id)
    if not game_service.bind_connection(sid, room_id, player_id):
        leave_room(room_id)
        log_event("AUTH_FAILED", f"Token for unknown seat {player_id}.", sid=sid, game_id=room_id)
        return False

    player = game_service.get_room(room_id).get_player(player_id)
    _remember_sid(sid, player_id=player_id, username=player.name, room_id=room_id)
    log_event("SESSION_START", f"Player '{player.name}' authenticated.", sid=sid, game_id=room_id)


@socketio.on('disconnect')
def handle_disconnect(*args):
    game_service = current_app.game_service

    sid = request.sid
    duration_str = "N/A"

    with sid_to_user_lock:
        user_data = sid_to_user.get(sid)

    if user_data and user_data.get("connect_time"):
        duration = datetime.datetime.now() - user_data["connect_time"]
        duration_str = str(datetime.timedelta(seconds=int(duration.total_seconds())))

    log_event("SESSION_END", f"Disconnected. Session duration: {duration_str}", sid=sid)

    game_service.handle_disconnect(sid)

    with sid_to_user_lock:
        sid_to_user.pop(sid, None)
