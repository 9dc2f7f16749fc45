"""
Вспомогательные функции
"""

import logging
import uuid
from datetime import datetime, timezone


logger = logging.getLogger(__name__)


CURRENCY_SYMBOLS = {
    "GBP": "£",
    "EUR": "€",
    "USD": "$",
}


def get_now() -> datetime:
    """
    Получить текущее время в UTC

    SQLite не хранит часовой пояс, поэтому все даты в БД - наивные UTC.

    Returns:
        datetime без tzinfo (UTC)
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_id(prefix: str = "") -> str:
    """Генерация строкового идентификатора (uuid4 hex с необязательным префиксом)"""
    return f"{prefix}{uuid.uuid4().hex}"


def format_order_number(order_id: str) -> str:
    """
    Короткий номер заказа для клиента

    Args:
        order_id: Полный ID заказа

    Returns:
        Последние 8 символов ID в верхнем регистре
    """
    return order_id[-8:].upper()


def format_money(amount_cents: int, currency: str = "GBP") -> str:
    """
    Форматирование суммы в минорных единицах

    Args:
        amount_cents: Сумма в пенсах/центах
        currency: Код валюты ISO 4217

    Returns:
        Строка вида "£12.34"
    """
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    value = f"{amount_cents / 100:.2f}"
    if symbol:
        return f"{symbol}{value}"
    return f"{value} {currency.upper()}"


def format_amount(amount_cents: int) -> str:
    """Сумма без символа валюты: 1234 -> "12.34" """
    return f"{amount_cents / 100:.2f}"


def format_long_date(value: datetime | None) -> str:
    """
    Дата для клиентских писем: "Monday, 19 October 2026"

    Args:
        value: Дата или None

    Returns:
        Отформатированная дата или пустая строка
    """
    if value is None:
        return ""
    return f"{value:%A}, {value.day} {value:%B %Y}"
