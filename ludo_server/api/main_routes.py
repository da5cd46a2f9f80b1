from flask import Blueprint, current_app, jsonify

bp = Blueprint('main', __name__)


@bp.route('/')
def index():
    return jsonify({"service": "ludo-server", "status": "ok"})


@bp.route('/ping')
def ping():
    """Проверка живости для балансировщика."""
    rooms = current_app.game_service.registry.all_rooms()
    return jsonify({"status": "ok", "rooms": len(rooms)})
