"""Pydantic схемы для валидации заказов и запросов на смену статуса"""
import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import OrderStatus


EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")


class OrderItemCreateSchema(BaseModel):
    """Строка заказа при оформлении"""

    product_id: str = Field(..., min_length=1, max_length=64)
    variant_id: str | None = Field(None, max_length=64)
    size: str | None = Field(None, max_length=32)
    name: str = Field(..., min_length=1, max_length=255, description="Название на момент покупки")
    sku: str | None = Field(None, max_length=64)
    quantity: int = Field(..., gt=0, le=1000)
    unit_price_cents: int = Field(..., ge=0)

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


class OrderCreateSchema(BaseModel):
    """Схема создания заказа (после оформления на витрине)"""

    email: str = Field(..., min_length=3, max_length=320)
    user_id: str | None = Field(None, max_length=64)
    phone: str | None = Field(None, max_length=32)
    customer_name: str | None = Field(None, max_length=200)
    currency: str = Field(default_factory=lambda: Config.DEFAULT_CURRENCY, min_length=3, max_length=3)
    items: list[OrderItemCreateSchema] = Field(..., min_length=1)
    discount_cents: int = Field(0, ge=0)
    tax_cents: int = Field(0, ge=0)
    shipping_cents: int = Field(0, ge=0)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_REGEX.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Телефон в формате E.164 (пробелы, скобки и дефисы удаляются)"""
        if v is None:
            return None
        cleaned = re.sub(r"[\s\-()]", "", v)
        if not cleaned:
            return None
        if not PHONE_REGEX.match(cleaned):
            raise ValueError("Invalid phone number")
        return cleaned

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def subtotal_cents(self) -> int:
        return sum(item.line_total_cents for item in self.items)

    @property
    def total_cents(self) -> int:
        return max(
            self.subtotal_cents - self.discount_cents + self.tax_cents + self.shipping_cents, 0
        )


class StatusTransitionRequestSchema(BaseModel):
    """Запрос на смену статуса одного заказа"""

    status: str = Field(..., description="Целевой статус")
    reason: str | None = Field(None, max_length=500)
    actor_id: str | None = Field(None, max_length=64)
    force: bool = False
    tracking_number: str | None = Field(None, min_length=1, max_length=64)
    carrier: str | None = Field(None, min_length=1, max_length=64)
    service: str | None = Field(None, max_length=64)
    estimated_delivery: datetime | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        v = v.strip().upper()
        if not OrderStatus.is_valid(v):
            raise ValueError(
                f"Unknown order status. Allowed: {', '.join(OrderStatus.all_statuses())}"
            )
        return v

    @model_validator(mode="after")
    def validate_tracking_pair(self) -> "StatusTransitionRequestSchema":
        """Трек-номер и перевозчик передаются только вместе"""
        if bool(self.tracking_number) != bool(self.carrier):
            raise ValueError("tracking_number and carrier must be provided together")
        return self


class BulkStatusTransitionSchema(BaseModel):
    """Запрос на массовую смену статуса (админка)"""

    order_ids: list[str] = Field(..., min_length=1)
    status: str
    reason: str | None = Field(None, max_length=500, validate_default=True)
    actor_id: str | None = Field(None, max_length=64)
    continue_on_error: bool = False

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        v = v.strip().upper()
        if not OrderStatus.is_valid(v):
            raise ValueError(
                f"Unknown order status. Allowed: {', '.join(OrderStatus.all_statuses())}"
            )
        return v

    @field_validator("order_ids")
    @classmethod
    def validate_order_ids(cls, v: list[str]) -> list[str]:
        """Не больше BULK_TRANSITION_MAX_ORDERS, без дублей (порядок сохраняется)"""
        if len(v) > Config.BULK_TRANSITION_MAX_ORDERS:
            raise ValueError(
                f"Too many orders: maximum {Config.BULK_TRANSITION_MAX_ORDERS} per request"
            )
        unique: list[str] = []
        for order_id in v:
            order_id = order_id.strip()
            if not order_id:
                raise ValueError("Order id must not be empty")
            if order_id not in unique:
                unique.append(order_id)
        return unique

    @field_validator("reason")
    @classmethod
    def default_reason(cls, v: str | None) -> str:
        return v or Config.BULK_DEFAULT_REASON
