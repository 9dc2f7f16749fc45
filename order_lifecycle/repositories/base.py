"""
Базовый репозиторий для работы с базой данных
"""

import logging
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession


logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Базовый класс для всех репозиториев

    Репозиторий работает в рамках переданной сессии и не управляет
    транзакцией: commit/rollback делает ORMDatabase.get_session().
    """

    model: type[T]

    def __init__(self, session: AsyncSession):
        """
        Инициализация репозитория

        Args:
            session: Сессия SQLAlchemy текущей транзакции
        """
        self.session = session

    async def get(self, entity_id: Any) -> T | None:
        """Получение записи по первичному ключу"""
        return await self.session.get(self.model, entity_id)

    async def add(self, entity: T) -> T:
        """
        Добавление записи с flush (чтобы получить сгенерированный ID)

        Args:
            entity: Новая ORM модель

        Returns:
            Та же модель после flush
        """
        self.session.add(entity)
        await self.session.flush()
        return entity
