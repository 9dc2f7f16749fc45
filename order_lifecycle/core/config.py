"""
Конфигурация сервиса жизненного цикла заказов
"""

import os

from dotenv import load_dotenv


# Загрузка переменных окружения
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Разбор булевого флага из переменной окружения"""
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str | None) -> list[str]:
    """Разбор списка через запятую"""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Класс конфигурации сервиса"""

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # База данных
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///orders.db")

    # Логирование
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOGS_DIR: str = os.getenv("LOGS_DIR", "logs")
    SENTRY_DSN: str | None = os.getenv("SENTRY_DSN")

    # Витрина (ссылки в уведомлениях)
    STOREFRONT_URL: str = os.getenv("STOREFRONT_URL", "http://localhost:3000").rstrip("/")
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "GBP")

    # Приоритет сборки
    HIGH_VALUE_ORDER_CENTS: int = int(os.getenv("HIGH_VALUE_ORDER_CENTS", "20000"))
    URGENT_ORDER_AGE_HOURS: int = int(os.getenv("URGENT_ORDER_AGE_HOURS", "24"))
    HIGH_PRIORITY_ORDER_AGE_HOURS: int = int(os.getenv("HIGH_PRIORITY_ORDER_AGE_HOURS", "12"))

    # Email (SMTP)
    SMTP_HOST: str | None = os.getenv("SMTP_HOST")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str | None = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD: str | None = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS: bool = _parse_bool(os.getenv("SMTP_USE_TLS"), default=False)
    SMTP_START_TLS: bool = _parse_bool(os.getenv("SMTP_START_TLS"), default=True)
    SMTP_TIMEOUT: float = float(os.getenv("SMTP_TIMEOUT", "30"))
    MAIL_FROM: str = os.getenv("MAIL_FROM", "orders@localhost")

    # SMS (Twilio)
    SMS_ENABLED: bool = _parse_bool(os.getenv("SMS_ENABLED"), default=False)
    TWILIO_ACCOUNT_SID: str | None = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: str | None = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_FROM_NUMBER: str | None = os.getenv("TWILIO_FROM_NUMBER")

    # Получатели служебных оповещений
    ADMIN_EMAILS: list[str] = _parse_list(os.getenv("ADMIN_EMAILS"))

    # Внешний сервис склада
    INVENTORY_SERVICE_URL: str = os.getenv("INVENTORY_SERVICE_URL", "http://localhost:8001")
    INVENTORY_TIMEOUT: float = float(os.getenv("INVENTORY_TIMEOUT", "10"))

    # Журнал событий
    CRITICAL_EVENTS_WINDOW_HOURS: int = int(os.getenv("CRITICAL_EVENTS_WINDOW_HOURS", "24"))
    CRITICAL_EVENTS_LIMIT: int = int(os.getenv("CRITICAL_EVENTS_LIMIT", "50"))
    EVENT_RETENTION_DAYS: int = int(os.getenv("EVENT_RETENTION_DAYS", "730"))

    # Трекинг отправлений
    TRACKING_POLL_INTERVAL_MINUTES: int = int(os.getenv("TRACKING_POLL_INTERVAL_MINUTES", "30"))
    TRACKING_POLL_BATCH_SIZE: int = int(os.getenv("TRACKING_POLL_BATCH_SIZE", "50"))
    TRACKING_STALE_MINUTES: int = int(os.getenv("TRACKING_STALE_MINUTES", "30"))

    # Повтор компенсации склада
    STOCK_RETRY_INTERVAL_MINUTES: int = int(os.getenv("STOCK_RETRY_INTERVAL_MINUTES", "15"))
    STOCK_RETRY_MAX_ATTEMPTS: int = int(os.getenv("STOCK_RETRY_MAX_ATTEMPTS", "5"))
    STOCK_RETRY_LOOKBACK_DAYS: int = int(os.getenv("STOCK_RETRY_LOOKBACK_DAYS", "7"))

    # Массовые операции
    BULK_TRANSITION_MAX_ORDERS: int = int(os.getenv("BULK_TRANSITION_MAX_ORDERS", "100"))
    BULK_DEFAULT_REASON: str = "Bulk admin status change"

    # Уведомления
    NOTIFICATION_MAX_ATTEMPTS: int = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", "3"))
    NOTIFICATION_RETRY_DELAY: float = float(os.getenv("NOTIFICATION_RETRY_DELAY", "1.0"))

    # Побочные эффекты после коммита
    SIDE_EFFECT_TIMEOUT_SECONDS: float = float(os.getenv("SIDE_EFFECT_TIMEOUT_SECONDS", "30"))

    # Realtime
    REALTIME_HEARTBEAT_SECONDS: int = int(os.getenv("REALTIME_HEARTBEAT_SECONDS", "30"))

    @classmethod
    def validate(cls) -> None:
        """Валидация конфигурации"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL не установлен в переменных окружения")

        if cls.HIGH_VALUE_ORDER_CENTS <= 0:
            raise ValueError("HIGH_VALUE_ORDER_CENTS должен быть положительным")

        if cls.URGENT_ORDER_AGE_HOURS < cls.HIGH_PRIORITY_ORDER_AGE_HOURS:
            raise ValueError(
                "URGENT_ORDER_AGE_HOURS не может быть меньше HIGH_PRIORITY_ORDER_AGE_HOURS"
            )

        if cls.SMS_ENABLED and not (
            cls.TWILIO_ACCOUNT_SID and cls.TWILIO_AUTH_TOKEN and cls.TWILIO_FROM_NUMBER
        ):
            raise ValueError(
                "SMS_ENABLED=true требует TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN и TWILIO_FROM_NUMBER"
            )

        if not 1 <= cls.BULK_TRANSITION_MAX_ORDERS <= 1000:
            raise ValueError("BULK_TRANSITION_MAX_ORDERS должен быть в диапазоне 1..1000")

        if cls.NOTIFICATION_MAX_ATTEMPTS < 1:
            raise ValueError("NOTIFICATION_MAX_ATTEMPTS должен быть >= 1")
