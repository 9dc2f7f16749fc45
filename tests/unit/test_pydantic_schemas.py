"""
Тесты для Pydantic схем
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import ShipmentStatus
from order_lifecycle.schemas import (
    BulkStatusTransitionSchema,
    OrderCreateSchema,
    StatusTransitionRequestSchema,
    TrackingUpdateSchema,
)


ITEM = {"product_id": "prod_1", "name": "Hoodie", "quantity": 2, "unit_price_cents": 4500}


class TestOrderCreateSchema:
    """Тесты для OrderCreateSchema"""

    def test_valid_order_creation(self):
        """Тест создания валидного заказа"""
        data = OrderCreateSchema(
            email="  Buyer@Example.COM ",
            currency="gbp",
            items=[ITEM, {**ITEM, "product_id": "prod_2", "quantity": 1}],
            discount_cents=1000,
            tax_cents=200,
            shipping_cents=499,
        )
        assert data.email == "buyer@example.com"
        assert data.currency == "GBP"
        assert data.subtotal_cents == 13500
        assert data.total_cents == 13500 - 1000 + 200 + 499

    def test_total_never_negative(self):
        """Скидка больше суммы даёт ноль, а не отрицательную сумму"""
        data = OrderCreateSchema(email="a@b.co", items=[ITEM], discount_cents=50000)
        assert data.total_cents == 0

    def test_default_currency(self):
        data = OrderCreateSchema(email="a@b.co", items=[ITEM])
        assert data.currency == Config.DEFAULT_CURRENCY

    def test_phone_formatting(self):
        """Тест очистки телефона"""
        data = OrderCreateSchema(email="a@b.co", phone="+44 (7700) 900-123", items=[ITEM])
        assert data.phone == "+447700900123"

    def test_invalid_phone_format(self):
        with pytest.raises(ValidationError) as exc_info:
            OrderCreateSchema(email="a@b.co", phone="call me", items=[ITEM])
        assert "Invalid phone number" in str(exc_info.value)

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            OrderCreateSchema(email="not-an-email", items=[ITEM])

    def test_empty_items(self):
        """Заказ без строк недопустим"""
        with pytest.raises(ValidationError):
            OrderCreateSchema(email="a@b.co", items=[])

    def test_zero_quantity(self):
        with pytest.raises(ValidationError):
            OrderCreateSchema(email="a@b.co", items=[{**ITEM, "quantity": 0}])


class TestStatusTransitionRequestSchema:
    """Тесты запроса на смену статуса"""

    def test_status_normalized(self):
        request = StatusTransitionRequestSchema(status=" shipped ", tracking_number="T1", carrier="dpd")
        assert request.status == "SHIPPED"
        assert request.force is False

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc_info:
            StatusTransitionRequestSchema(status="LOST")
        assert "Unknown order status" in str(exc_info.value)

    def test_tracking_without_carrier(self):
        """Трек-номер без перевозчика отклоняется"""
        with pytest.raises(ValidationError) as exc_info:
            StatusTransitionRequestSchema(status="SHIPPED", tracking_number="T1")
        assert "must be provided together" in str(exc_info.value)


class TestBulkStatusTransitionSchema:
    """Тесты массового запроса"""

    def test_deduplicates_ids(self):
        request = BulkStatusTransitionSchema(order_ids=[" o1", "o2", "o1 "], status="cancelled")
        assert request.order_ids == ["o1", "o2"]
        assert request.status == "CANCELLED"
        assert request.reason == Config.BULK_DEFAULT_REASON

    def test_explicit_reason(self):
        request = BulkStatusTransitionSchema(order_ids=["o1"], status="PAID", reason="Batch fix")
        assert request.reason == "Batch fix"

    def test_empty_id(self):
        with pytest.raises(ValidationError):
            BulkStatusTransitionSchema(order_ids=["o1", "  "], status="PAID")

    def test_too_many_orders(self, monkeypatch):
        """Лимит BULK_TRANSITION_MAX_ORDERS"""
        monkeypatch.setattr(Config, "BULK_TRANSITION_MAX_ORDERS", 2)
        with pytest.raises(ValidationError) as exc_info:
            BulkStatusTransitionSchema(order_ids=["o1", "o2", "o3"], status="PAID")
        assert "Too many orders" in str(exc_info.value)


class TestTrackingUpdateSchema:
    """Тесты обновления трекинга"""

    def test_status_normalized(self):
        update = TrackingUpdateSchema(status="in-transit")
        assert update.status == ShipmentStatus.IN_TRANSIT

    def test_unknown_status_becomes_exception(self):
        assert TrackingUpdateSchema(status="lost in space").status == ShipmentStatus.EXCEPTION

    def test_empty_status(self):
        with pytest.raises(ValidationError):
            TrackingUpdateSchema(status="   ")

    def test_aware_timestamp_to_naive_utc(self):
        """Дата с часовым поясом переводится в наивную UTC"""
        aware = datetime(2026, 10, 19, 15, 0, tzinfo=timezone(timedelta(hours=3)))
        update = TrackingUpdateSchema(status="DELIVERED", timestamp=aware)
        assert update.timestamp == datetime(2026, 10, 19, 12, 0)
        assert update.timestamp.tzinfo is None
