"""
Тесты для вспомогательных функций
"""
from datetime import datetime

import pytest

from order_lifecycle.utils.helpers import (
    format_amount,
    format_long_date,
    format_money,
    format_order_number,
    generate_id,
    get_now,
)


@pytest.mark.parametrize(
    ("amount_cents", "currency", "expected"),
    [
        (1234, "GBP", "£12.34"),
        (500, "eur", "€5.00"),
        (0, "USD", "$0.00"),
        (99, "SEK", "0.99 SEK"),  # Валюта без символа
    ],
)
def test_format_money(amount_cents, currency, expected):
    """Тест форматирования суммы в минорных единицах."""
    assert format_money(amount_cents, currency) == expected


def test_format_amount():
    assert format_amount(104999) == "1049.99"


def test_format_order_number():
    """Короткий номер - последние 8 символов в верхнем регистре."""
    assert format_order_number("4f1c2e9a0b7d4c3eab12cd34") == "AB12CD34"


def test_format_long_date():
    assert format_long_date(datetime(2026, 10, 19, 8, 30)) == "Monday, 19 October 2026"
    assert format_long_date(None) == ""


def test_generate_id_unique_with_prefix():
    first = generate_id("PL_")
    second = generate_id("PL_")
    assert first.startswith("PL_")
    assert first != second


def test_get_now_is_naive():
    """Все даты в БД - наивные UTC."""
    assert get_now().tzinfo is None
