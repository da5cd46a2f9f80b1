# ludo_server/config.py

import os
import datetime

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


class Config:
    """Базовый класс конфигурации (безопасные значения)."""

    JWT_SECRET_KEY = 'ludo-secret-default-key-SHOULD-BE-CHANGED'
    JWT_ACCESS_TOKEN_EXPIRES = datetime.timedelta(hours=12)

    # Относительные пути кладутся в instance-папку приложения.
    DB_FILE = 'rooms.db'
    LOG_FILE = 'application.log'
    STATS_LOG_FILE = 'match_stats.log'

    # --- Таймеры (секунды) ---
    GAME_DURATION_SEC = 600
    TURN_DURATION_SEC = 15
    DEADLINE_CHECK_INTERVAL_SEC = 1
    FINISHED_ROOM_TTL_SEC = 300
    # Лобби, где никто не подключен, живет в памяти не дольше этого.
    LOBBY_IDLE_TTL_SEC = 1800

    MAX_PLAYERS_DEFAULT = 4

    # Без JWT 'room:join' сам привязывает подключение к игроку.
    SOCKET_AUTH_REQUIRED = False
    ENABLE_BACKGROUND_WORKERS = True
    RATELIMIT_ENABLED = True
