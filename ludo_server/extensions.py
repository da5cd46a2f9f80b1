# ludo_server/extensions.py
"""
Инициализация расширений Flask и глобальных объектов.

Экземпляры создаются здесь, а настраиваются в фабрике приложений,
чтобы избежать циклических импортов.
"""

from flask_socketio import SocketIO
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_jwt_extended import JWTManager
import threading
from typing import Dict, Any

# --- Расширения Flask ---

# cors_allowed_origins="*" - для production указать конкретные домены.
socketio = SocketIO(cors_allowed_origins="*")

# Лимиты считаются по IP-адресу клиента.
limiter = Limiter(key_func=get_remote_address)

jwt = JWTManager()


# --- Глобальное управление состоянием ---

# { 'sid': {'player_id': ..., 'username': ..., 'connect_time': ...}, ... }
sid_to_user_map: Dict[str, Any] = {}
sid_to_user_lock = threading.Lock()

