import logging

logger = logging.getLogger(__name__)


def _deadline_watcher(app, socketio_instance, interval):
    """
    Фоновый воркер: раз в interval секунд проверяет таймеры всех комнат
    (таймаут хода, конец партии) и убирает из памяти давно завершенные комнаты.
    Рассылка идет изнутри GameService под lock каждой комнаты.
    """
    logger.info("[DeadlineWatcher] Поток проверки таймеров запущен.")
    with app.app_context():
        while True:
            try:
                app.game_service.sweep_deadlines()
                app.game_service.prune_stale_rooms()
            except Exception as e:
                logger.error(f"[DeadlineWatcher] КРИТИЧЕСКАЯ ОШИБКА в цикле проверки: {e}", exc_info=True)
            socketio_instance.sleep(interval)


def start_deadline_watcher(app, socketio_instance):
    """
    Публичная функция для запуска воркера из create_app.
    """
    socketio_instance.start_background_task(
        _deadline_watcher,
        app,
        socketio_instance,
        float(app.config['DEADLINE_CHECK_INTERVAL_SEC'])
    )
