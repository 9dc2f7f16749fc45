"""
Alembic environment configuration
"""
import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import engine_from_config, pool
from alembic import context

# Добавляем корневую директорию в путь
sys.path.insert(0, str(Path(__file__).parent.parent))

from order_lifecycle.core.config import Config

config = context.config


def sync_database_url(url: str) -> str:
    """Синхронный драйвер для миграций: sqlite+aiosqlite -> sqlite, postgresql+asyncpg -> postgresql"""
    for async_driver, sync_driver in (
        ("sqlite+aiosqlite", "sqlite"),
        ("postgresql+asyncpg", "postgresql"),
    ):
        if url.startswith(async_driver):
            return sync_driver + url[len(async_driver):]
    return url


config.set_main_option("sqlalchemy.url", sync_database_url(Config.DATABASE_URL))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Импортируем ORM модели для автогенерации миграций
from order_lifecycle.database.orm_models import Base
target_metadata = Base.metadata


def include_object(object, name, type_, reflected, compare_to):
    """Фильтр для игнорирования некоторых изменений при автогенерации"""
    # Внешние ключи в SQLite часто без имён
    if type_ == "foreign_key_constraint":
        return False
    return True


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,  # Важно для SQLite при ALTER TABLE
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,  # Важно для SQLite при ALTER TABLE
            include_object=include_object,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
