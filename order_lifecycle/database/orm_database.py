"""
SQLAlchemy ORM Database класс
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from order_lifecycle.core.config import Config
from order_lifecycle.database.orm_models import Base


logger = logging.getLogger(__name__)


class ORMDatabase:
    """Класс для работы с базой данных через SQLAlchemy ORM"""

    def __init__(self, database_url: str | None = None):
        """
        Инициализация ORM Database

        Args:
            database_url: URL базы данных (SQLite или PostgreSQL), по умолчанию Config.DATABASE_URL
        """
        self.database_url = database_url or Config.DATABASE_URL
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self._is_sqlite = self.database_url.startswith("sqlite")
        self._is_memory = self._is_sqlite and ":memory:" in self.database_url

    def _engine_options(self) -> dict:
        if self._is_memory:
            # Одно соединение на весь процесс, иначе каждая сессия видит пустую БД
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        options: dict = {
            "pool_pre_ping": True,  # Проверка соединения перед использованием
            "pool_recycle": 3600,  # Переподключение каждый час
        }
        if self._is_sqlite:
            options["connect_args"] = {"check_same_thread": False}
        return options

    async def connect(self) -> None:
        """Подключение к базе данных"""
        try:
            logger.info("Инициализация подключения к БД...")
            logger.info(f"   Is SQLite: {self._is_sqlite}")

            self.engine = create_async_engine(
                self.database_url,
                echo=False,  # True для отладки SQL
                **self._engine_options(),
            )

            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,  # Важно для async работы
            )

            logger.info("OK: Подключено к базе данных")
            logger.debug("Используйте 'alembic upgrade head' для применения миграций БД")

        except Exception as e:
            logger.exception(f"ERROR: Ошибка подключения к БД: {e}")
            raise

    async def create_tables(self) -> None:
        """Создание схемы без миграций (тесты и локальная разработка)"""
        if not self.engine:
            raise RuntimeError("База данных не подключена")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("OK: Схема БД создана")

    async def disconnect(self) -> None:
        """Отключение от базы данных"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Отключено от базы данных")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Context manager для получения сессии

        Usage:
            async with db.get_session() as session:
                order = await session.get(Order, order_id)
                # Автоматический commit/rollback
        """
        if not self.session_factory:
            raise RuntimeError("База данных не подключена")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug("OK: Транзакция успешно завершена (commit)")
            except Exception as e:
                await session.rollback()
                logger.error(f"ERROR: Транзакция отменена (rollback): {e}")
                raise
