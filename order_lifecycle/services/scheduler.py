"""
Планировщик задач
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from order_lifecycle.core.config import Config
from order_lifecycle.services.service_factory import ServiceFactory


logger = logging.getLogger(__name__)


class TaskScheduler:
    """Фоновые задачи сервиса заказов"""

    def __init__(self, factory: ServiceFactory):
        """
        Args:
            factory: Фабрика с уже связанными сервисами
        """
        self.factory = factory
        self.scheduler = AsyncIOScheduler()

    async def start(self):
        """Запуск планировщика"""
        # Опрос перевозчиков
        self.scheduler.add_job(
            self.poll_tracking,
            trigger=IntervalTrigger(minutes=Config.TRACKING_POLL_INTERVAL_MINUTES),
            id="poll_tracking",
            name="Опрос трекинга отправлений",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        # Повтор неудачных компенсаций склада
        self.scheduler.add_job(
            self.retry_stock_compensation,
            trigger=IntervalTrigger(minutes=Config.STOCK_RETRY_INTERVAL_MINUTES),
            id="retry_stock_compensation",
            name="Повтор компенсаций склада",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        # Очистка журнала событий (каждый день в 03:30 UTC)
        self.scheduler.add_job(
            self.prune_old_events,
            trigger=CronTrigger(hour=3, minute=30, timezone="UTC"),
            id="prune_old_events",
            name="Очистка старых событий",
            replace_existing=True,
        )

        # Пинг realtime подключений
        self.scheduler.add_job(
            self.realtime_heartbeat,
            trigger=IntervalTrigger(seconds=Config.REALTIME_HEARTBEAT_SECONDS),
            id="realtime_heartbeat",
            name="Realtime heartbeat",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info("Планировщик задач запущен")

    async def stop(self):
        """Остановка планировщика"""
        self.scheduler.shutdown(wait=False)
        await self.factory.status_service.wait_for_side_effects()
        logger.info("Планировщик задач остановлен")

    async def poll_tracking(self):
        try:
            await self.factory.tracking_service.poll_carrier_updates()
        except Exception as e:
            logger.exception(f"Ошибка опроса трекинга: {e}")

    async def retry_stock_compensation(self):
        try:
            await self.factory.stock_compensator.retry_failed_restorations()
        except Exception as e:
            logger.exception(f"Ошибка повтора компенсаций склада: {e}")

    async def prune_old_events(self):
        """Удаление событий старше EVENT_RETENTION_DAYS"""
        try:
            deleted = await self.factory.event_service.prune_events_older_than(
                Config.EVENT_RETENTION_DAYS
            )
            logger.info(f"Очистка журнала: удалено {deleted} событий")
        except Exception as e:
            logger.exception(f"Ошибка очистки журнала событий: {e}")

    async def realtime_heartbeat(self):
        try:
            await self.factory.broadcaster.heartbeat()
        except Exception as e:
            logger.exception(f"Ошибка realtime heartbeat: {e}")
