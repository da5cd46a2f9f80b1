# ludo_server/services/room_store.py

import json
import sqlite3
import logging
import threading
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

db_lock = threading.RLock()


class RoomStore:
    """
    Write-behind копия комнат в SQLite: один JSON-документ на комнату.
    Во время хода не читается. Ошибки БД логируются и не влияют на игру.
    """
    def __init__(self, db_path: str):
        self.db_path = db_path

    def init_database(self):
        logger.info(f"[DB] Проверка базы данных по пути: {self.db_path}...")
        try:
            with db_lock, sqlite3.connect(self.db_path) as conn:
                conn.execute('''
                CREATE TABLE IF NOT EXISTS rooms (
                    room_id TEXT PRIMARY KEY NOT NULL,
                    game_state TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    document TEXT NOT NULL
                )
                ''')
            logger.info("[DB] Таблица rooms готова.")
        except sqlite3.Error as e:
            logger.error(f"[DB] НЕ УДАЛОСЬ ИНИЦИИРОВАТЬ БАЗУ ДАННЫХ: {e}")

    def save_room(self, document: Dict[str, Any]) -> bool:
        try:
            payload = json.dumps(document, ensure_ascii=False)
            with db_lock, sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    "INSERT INTO rooms (room_id, game_state, updated_at, document) "
                    "VALUES (?, ?, CURRENT_TIMESTAMP, ?) "
                    "ON CONFLICT(room_id) DO UPDATE SET "
                    "game_state = excluded.game_state, updated_at = excluded.updated_at, document = excluded.document",
                    (document['id'], document['game_state'], payload)
                )
            return True
        except sqlite3.Error as e:
            logger.error(f"[DB] Ошибка сохранения комнаты {document.get('id')}: {e}")
            return False

    def load_room(self, room_id: str) -> Optional[Dict[str, Any]]:
        try:
            with db_lock, sqlite3.connect(self.db_path) as conn:
                row = conn.execute("SELECT document FROM rooms WHERE room_id = ?", (room_id,)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"[DB] Ошибка чтения комнаты {room_id}: {e}")
            return None
        return json.loads(row[0]) if row else None

    def list_rooms(self, game_state: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        query = "SELECT document FROM rooms"
        params: tuple = ()
        if game_state:
            query += " WHERE game_state = ?"
            params = (game_state,)
        query += " ORDER BY updated_at DESC LIMIT ?"
        params += (limit,)
        try:
            with db_lock, sqlite3.connect(self.db_path) as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"[DB] Ошибка чтения списка комнат: {e}")
            return []
        return [json.loads(row[0]) for row in rows]
