"""
Точка входа сервиса жизненного цикла заказов
"""

import asyncio
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from order_lifecycle.core.config import Config
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.services.scheduler import TaskScheduler
from order_lifecycle.services.service_factory import ServiceFactory
from order_lifecycle.utils.sentry import init_sentry


"""
Настройка логирования:
- Пытаемся писать в файл logs/orders.log с ротацией
- Если нет прав на запись, остаёмся только с выводом в консоль
"""

log_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(log_formatter)
if hasattr(console_handler.stream, "reconfigure"):
    console_handler.stream.reconfigure(encoding="utf-8")

handlers: list[logging.Handler] = [console_handler]

log_file_path = Path(Config.LOGS_DIR) / "orders.log"
try:
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        str(log_file_path),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(log_formatter)
    handlers.insert(0, file_handler)
except (PermissionError, OSError) as e:
    sys.stderr.write(f"[logging] WARNING: cannot use file logging at {log_file_path}: {e}\n")

log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)
logging.basicConfig(level=log_level, handlers=handlers)

logger = logging.getLogger(__name__)

if log_level == logging.DEBUG:
    logging.getLogger("order_lifecycle").setLevel(logging.DEBUG)
    logging.getLogger("apscheduler").setLevel(logging.INFO)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.INFO)
    logger.info("DEBUG режим включен (LOG_LEVEL=DEBUG)")
else:
    logging.getLogger("order_lifecycle").setLevel(log_level)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: остаётся KeyboardInterrupt
            pass


async def main():
    """Основная функция запуска сервиса"""
    db = None
    factory = None
    scheduler = None

    try:
        init_sentry()

        try:
            Config.validate()
        except ValueError as e:
            logger.error("Ошибка конфигурации: %s", e)
            sys.exit(1)

        logger.info("=" * 60)
        logger.info("Инициализация базы данных...")
        logger.info(f"   ENVIRONMENT: {Config.ENVIRONMENT}")
        logger.info(f"   DATABASE_URL: {Config.DATABASE_URL}")
        logger.info("=" * 60)

        db = ORMDatabase(Config.DATABASE_URL)
        await db.connect()
        if Config.DATABASE_URL.startswith("sqlite"):
            # Для PostgreSQL схема создаётся миграциями (alembic upgrade head)
            await db.create_tables()
        logger.info("OK: База данных инициализирована")

        factory = ServiceFactory(db)
        logger.info(
            "Хуки после смены статуса: %s", ", ".join(factory.status_service.hook_names)
        )

        scheduler = TaskScheduler(factory)
        await scheduler.start()

        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)
        logger.info("Сервис заказов запущен")
        await stop_event.wait()
        logger.info("Получен сигнал остановки")

    except KeyboardInterrupt:
        logger.info("Получен сигнал остановки (Ctrl+C)")
    except Exception as e:
        logger.exception("Критическая ошибка: %s", e)
    finally:
        logger.info("Начало процедуры остановки...")

        if scheduler:
            try:
                await scheduler.stop()
            except Exception as e:
                logger.error("Ошибка при остановке scheduler: %s", e)

        if factory:
            try:
                await factory.broadcaster.close_all()
            except Exception as e:
                logger.error("Ошибка при закрытии realtime подключений: %s", e)

        if db:
            try:
                await db.disconnect()
            except Exception as e:
                logger.error("Ошибка при отключении БД: %s", e)

        logger.info("Сервис полностью остановлен")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Сервис остановлен пользователем")
    except Exception as e:
        logger.critical("Неожиданная ошибка: %s", e)
        sys.exit(1)
