"""
Утилиты
"""

from order_lifecycle.utils.helpers import (
    format_amount,
    format_long_date,
    format_money,
    format_order_number,
    generate_id,
    get_now,
)
from order_lifecycle.utils.retry import RetryExhaustedError, retry_async


__all__ = [
    "RetryExhaustedError",
    "format_amount",
    "format_long_date",
    "format_money",
    "format_order_number",
    "generate_id",
    "get_now",
    "retry_async",
]
