"""Pydantic схемы для трекинга отправлений"""
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from order_lifecycle.domain.shipment_state_machine import ShipmentStateMachine
from order_lifecycle.utils.helpers import get_now


class TrackingUpdateSchema(BaseModel):
    """Обновление статуса от перевозчика (опрос или вебхук)"""

    status: str
    timestamp: datetime = Field(default_factory=get_now)
    location: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=500)
    estimated_delivery: datetime | None = None

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        """Статус перевозчика приводится к внутреннему (неизвестный - EXCEPTION)"""
        if not v or not v.strip():
            raise ValueError("Tracking status must not be empty")
        return ShipmentStateMachine.normalize(v)

    @field_validator("timestamp", "estimated_delivery")
    @classmethod
    def to_naive_utc(cls, v: datetime | None) -> datetime | None:
        """Даты храним как наивные UTC"""
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v
