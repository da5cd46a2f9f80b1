import os
import logging
from flask import Flask
from .extensions import socketio, limiter, jwt
from .globals import log_event
from .workers import start_deadline_watcher

# Получаем логгер
logger = logging.getLogger(__name__)

PATH_KEYS = ('DB_FILE', 'LOG_FILE', 'STATS_LOG_FILE')


def _resolve_paths(app):
    """Относительные пути к файлам кладем в instance-папку."""
    os.makedirs(app.instance_path, exist_ok=True)
    for key in PATH_KEYS:
        if not os.path.isabs(app.config[key]):
            app.config[key] = os.path.join(app.instance_path, app.config[key])


def _configure_logging(app):
    """Настраивает файловый логгер."""
    # Логгер приложения общий по имени: убираем обработчик от прошлого create_app.
    for handler in list(app.logger.handlers):
        if isinstance(handler, logging.FileHandler):
            app.logger.removeHandler(handler)
            handler.close()
    file_handler = logging.FileHandler(app.config['LOG_FILE'], encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)
    logger.info("Файловый логгер настроен.")


def _init_extensions(app):
    """Инициализирует расширения Flask."""
    socketio.init_app(app)
    limiter.init_app(app)
    jwt.init_app(app)
    logger.info("Расширения Flask (SocketIO, Limiter, JWT) инициализированы.")


def _socket_emit(event, payload, to):
    socketio.emit(event, payload, to=to)


def _init_services(app):
    """Инициализирует и внедряет сервисы приложения."""

    from .services.game_service import GameService
    from .services.room_factory import RoomFactory
    from .services.room_registry import RoomRegistry
    from .services.room_store import RoomStore
    from .services.logging_service import log_match_stats

    store = RoomStore(app.config['DB_FILE'])
    store.init_database()

    registry = RoomRegistry(log_event_func=log_event)

    room_factory = RoomFactory(
        config=app.config,
        log_event=log_event,
        log_stats=log_match_stats,
        persist=store.save_room
    )

    game_service = GameService(
        registry=registry,
        factory=room_factory,
        store=store,
        emit=_socket_emit,
        config=app.config,
        log_event=log_event
    )

    # Прикрепляем главный сервис к экземпляру приложения
    app.game_service = game_service
    logger.info("Игровые сервисы (GameService, Factory, Registry, Store) инициализированы.")


def _register_blueprints(app):
    """Регистрирует все маршруты API (Blueprints)."""
    from .api.main_routes import bp as main_bp
    app.register_blueprint(main_bp)

    from .api.room_routes import bp as rooms_bp
    app.register_blueprint(rooms_bp, url_prefix='/api')

    logger.info("Blueprints (маршруты API) зарегистрированы.")


def _register_socketio_handlers():
    """
    Импортирует обработчики SocketIO для их регистрации.
    """
    from .sockets import connection_handlers  # noqa: F401
    from .sockets import game_handlers  # noqa: F401
    logger.info("Обработчики SocketIO (connection, game) зарегистрированы.")


def create_app(config_class=None):
    """
    Фабрика приложений (Паттерн Application Factory).
    """

    app = Flask(__name__, instance_relative_config=True)

    # 1. Загрузка конфигурации
    app.config.from_object(config_class or 'ludo_server.config.Config')
    if config_class is None:
        app.config.from_pyfile('config.py', silent=True)
    _resolve_paths(app)

    # 2. Настройка логирования
    _configure_logging(app)

    # 3. Регистрация обработчиков SocketIO.
    # До init_app: тогда socketio переносит их на сервер каждого приложения.
    _register_socketio_handlers()

    # 4. Инициализация расширений
    _init_extensions(app)

    # 5. Инициализация сервисов
    _init_services(app)

    # 6. Регистрация Blueprints (маршрутов API)
    _register_blueprints(app)

    # 7. Запуск фонового воркера
    if app.config['ENABLE_BACKGROUND_WORKERS'] and not app.config.get('TESTING'):
        logger.info("Запуск фонового потока проверки таймеров (DeadlineWatcher)...")
        start_deadline_watcher(app, socketio)

    app.logger.info("Приложение 'ludo-server' создано.")
    app.logger.info(f"Путь к БД: {app.config['DB_FILE']}")
    app.logger.info(f"Путь к логам: {app.config['LOG_FILE']}")

    return app, socketio
