import eventlet
eventlet.monkey_patch()

# 2. Обычные импорты
import argparse
import logging
from ludo_server import create_app

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
logger.info("[run.py] Eventlet monkey-patch применен.")

# 3. Создаем приложение
app, socketio = create_app()

if __name__ == '__main__':

    parser = argparse.ArgumentParser(description='Запуск Ludo-сервера (Flask-SocketIO).')
    parser.add_argument(
        '-e', '--env',
        default='local',
        choices=['local', 'prod'],
        help='Режим запуска: local (для разработки) или prod (для боевого сервера). По умолчанию: local.'
    )
    parser.add_argument('-p', '--port', type=int, default=None, help='Порт (по умолчанию 5000 для prod, 4999 для local).')
    args = parser.parse_args()

    if args.env == 'prod':
        port = args.port or 5000
        logger.info(f"[run.py] Запуск в режиме PRODUCTION (prod) на 0.0.0.0:{port}...")
        socketio.run(app, host='0.0.0.0', port=port, debug=False)

    else:
        port = args.port or 4999
        logger.info(f"[run.py] Запуск в режиме LOCAL (dev) на 127.0.0.1:{port}...")
        socketio.run(app,
                     host='127.0.0.1',
                     port=port,
                     debug=True,
                     use_reloader=False,
                     allow_unsafe_werkzeug=True  # Нужно для debug=True при использовании eventlet
                     )
