"""
Расчёты для сборки заказа: приоритет, зона склада, время комплектации
"""

import zlib
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import FulfillmentPriority
from order_lifecycle.utils.helpers import generate_id, get_now


WAREHOUSE_ZONES = ("A", "B", "C")

BASE_PICK_MINUTES = 5
PICK_MINUTES_PER_LINE = 2


@dataclass(frozen=True)
class PickingItem:
    """Строка листа комплектации"""

    product_id: str
    name: str
    quantity: int
    variant_id: str | None = None
    size: str | None = None
    sku: str | None = None
    location: str | None = None


@dataclass(frozen=True)
class PickingList:
    """Лист комплектации заказа"""

    id: str
    order_id: str
    items: tuple[PickingItem, ...]
    priority: str
    warehouse_zone: str
    estimated_pick_time: int
    created_at: datetime = field(default_factory=get_now)

    @property
    def item_count(self) -> int:
        return len(self.items)


def calculate_order_priority(
    total_cents: int,
    created_at: datetime,
    now: datetime | None = None,
    high_value_threshold_cents: int | None = None,
) -> str:
    """
    Приоритет сборки заказа

    Каскад (первое совпадение):
    дорогой заказ → HIGH; старше 24 ч → URGENT; старше 12 ч → HIGH; иначе NORMAL.

    Args:
        total_cents: Итоговая сумма заказа в минорных единицах
        created_at: Момент создания заказа
        now: Текущее время (для детерминированных расчётов)
        high_value_threshold_cents: Порог "дорогого" заказа

    Returns:
        Значение FulfillmentPriority
    """
    threshold = (
        high_value_threshold_cents
        if high_value_threshold_cents is not None
        else Config.HIGH_VALUE_ORDER_CENTS
    )
    now = now or get_now()
    age = now - created_at

    if total_cents >= threshold:
        return FulfillmentPriority.HIGH
    if age >= timedelta(hours=Config.URGENT_ORDER_AGE_HOURS):
        return FulfillmentPriority.URGENT
    if age >= timedelta(hours=Config.HIGH_PRIORITY_ORDER_AGE_HOURS):
        return FulfillmentPriority.HIGH
    return FulfillmentPriority.NORMAL


def calculate_pick_time(line_count: int) -> int:
    """Оценка времени комплектации в минутах: 5 + 2 на каждую строку"""
    return BASE_PICK_MINUTES + PICK_MINUTES_PER_LINE * line_count


def determine_warehouse_zone(product_ids: Sequence[str]) -> str:
    """
    Зона склада для заказа

    Зона выбирается по crc32 от отсортированного набора товаров, поэтому
    один и тот же набор всегда попадает в одну зону.

    Args:
        product_ids: ID товаров заказа

    Returns:
        Буква зоны ("A", "B" или "C")
    """
    key = ",".join(sorted(product_ids)).encode("utf-8")
    return WAREHOUSE_ZONES[zlib.crc32(key) % len(WAREHOUSE_ZONES)]


def item_location(zone: str, product_id: str) -> str:
    """Адрес ячейки внутри зоны: "A-07" """
    shelf = zlib.crc32(product_id.encode("utf-8")) % 20 + 1
    return f"{zone}-{shelf:02d}"


def build_picking_list(
    order_id: str,
    items: Sequence[PickingItem],
    total_cents: int,
    created_at: datetime,
    now: datetime | None = None,
) -> PickingList:
    """
    Построение листа комплектации

    Args:
        order_id: ID заказа
        items: Строки заказа
        total_cents: Сумма заказа
        created_at: Момент создания заказа
        now: Текущее время

    Returns:
        PickingList с приоритетом, зоной и оценкой времени
    """
    zone = determine_warehouse_zone([item.product_id for item in items])
    located = tuple(
        PickingItem(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            variant_id=item.variant_id,
            size=item.size,
            sku=item.sku,
            location=item_location(zone, item.product_id),
        )
        for item in items
    )
    return PickingList(
        id=generate_id("PL_"),
        order_id=order_id,
        items=located,
        priority=calculate_order_priority(total_cents, created_at, now=now),
        warehouse_zone=zone,
        estimated_pick_time=calculate_pick_time(len(located)),
        created_at=now or get_now(),
    )
