# ludo_server/services/logging_service.py

import json
import logging
import datetime
import threading
from flask import current_app

logger = logging.getLogger(__name__)

file_lock = threading.RLock()


def _append_line(path: str, line: str):
    with file_lock:
        try:
            with open(path, 'a', encoding='utf-8') as f:
                f.write(line)
        except OSError as e:
            logger.error(f"Не удалось записать в лог-файл {path}: {e}")


def log_match_stats(stats_data):
    """Записывает итог партии одной JSON-строкой (путь из app.config)."""
    stats_data = dict(stats_data)
    stats_data['timestamp'] = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    _append_line(current_app.config['STATS_LOG_FILE'], json.dumps(stats_data, ensure_ascii=False) + '\n')


def log_event_to_file(log_entry):
    """Записывает строку журнала событий (путь из app.config)."""
    _append_line(current_app.config['LOG_FILE'], log_entry)
