"""
Типизированные метаданные событий журнала заказа

Метаданные хранятся в колонке order_events.meta как JSON. Для известных
типов событий JSON разбирается в соответствующую pydantic-модель
(discriminated union по полю kind), всё остальное - в RawMetadata.
"""

import json
import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from order_lifecycle.core.constants import OrderEventKind


logger = logging.getLogger(__name__)

METADATA_SCHEMA_VERSION = 1


class EventMetadataBase(BaseModel):
    """Общие поля метаданных"""

    model_config = ConfigDict(extra="allow")

    schema_version: int = METADATA_SCHEMA_VERSION
    actor_id: str | None = None


class OrderCreatedMetadata(EventMetadataBase):
    kind: Literal["ORDER_CREATED"] = "ORDER_CREATED"
    total_cents: int
    currency: str
    item_count: int


class StatusChangeMetadata(EventMetadataBase):
    kind: Literal["STATUS_CHANGED"] = "STATUS_CHANGED"
    from_status: str
    to_status: str
    reason: str | None = None
    forced: bool = False
    warnings: list[str] = Field(default_factory=list)


class StatusUnchangedMetadata(EventMetadataBase):
    kind: Literal["STATUS_UNCHANGED"] = "STATUS_UNCHANGED"
    status: str
    reason: str | None = None


class TransitionRejectedMetadata(EventMetadataBase):
    kind: Literal["STATUS_TRANSITION_REJECTED"] = "STATUS_TRANSITION_REJECTED"
    from_status: str
    to_status: str
    error_code: str
    error: str
    valid_transitions: list[str] = Field(default_factory=list)
    forced: bool = False


class PaymentMetadata(EventMetadataBase):
    kind: Literal["PAYMENT_ATTEMPT", "PAYMENT_SUCCEEDED", "PAYMENT_FAILED"]
    payment_id: str | None = None
    provider: str | None = None
    amount_cents: int | None = None
    currency: str | None = None
    failure_reason: str | None = None


class StockRestoredMetadata(EventMetadataBase):
    kind: Literal["STOCK_RESTORED"] = "STOCK_RESTORED"
    reason: str
    total_quantity: int
    restored_item_count: int
    retry_attempt: int = 0


class StockFailureMetadata(EventMetadataBase):
    kind: Literal["STOCK_RESTORATION_FAILED", "STOCK_SHORTAGE"]
    reason: str | None = None
    error: str | None = None
    product_ids: list[str] = Field(default_factory=list)
    retry_attempt: int = 0


class FulfillmentMetadata(EventMetadataBase):
    kind: Literal["FULFILLMENT_STARTED", "PICKING_COMPLETED", "ORDER_PACKED"]
    picking_list_id: str | None = None
    warehouse_zone: str | None = None
    priority: str | None = None
    estimated_pick_time: int | None = None
    item_count: int | None = None
    picked_by: str | None = None
    package_weight_grams: int | None = None


class ShippingMetadata(EventMetadataBase):
    kind: Literal["SHIPPING_PROCESSED"] = "SHIPPING_PROCESSED"
    tracking_number: str
    carrier: str
    service: str | None = None
    estimated_delivery: str | None = None


class TrackingUpdateMetadata(EventMetadataBase):
    kind: Literal["TRACKING_UPDATE"] = "TRACKING_UPDATE"
    tracking_number: str
    carrier: str
    shipment_status: str
    previous_status: str | None = None
    location: str | None = None
    description: str | None = None
    estimated_delivery: str | None = None


class DeliveryMetadata(EventMetadataBase):
    kind: Literal["DELIVERY_CONFIRMED"] = "DELIVERY_CONFIRMED"
    delivered_at: str
    tracking_number: str | None = None
    carrier: str | None = None
    location: str | None = None


class NotificationMetadata(EventMetadataBase):
    kind: Literal["NOTIFICATION_SENT", "NOTIFICATION_FAILED"]
    notification_id: str | None = None
    template: str | None = None
    channels: dict[str, bool] = Field(default_factory=dict)
    notification_method: str | None = None
    original_event_id: int | None = None
    failure_reason: str | None = None


class NotificationErrorMetadata(EventMetadataBase):
    kind: Literal["NOTIFICATION_ERROR"] = "NOTIFICATION_ERROR"
    error: str
    template: str | None = None
    to_status: str | None = None


class SystemMetadata(EventMetadataBase):
    kind: Literal["SYSTEM_ERROR", "WEBHOOK_FAILURE", "SIDE_EFFECT_FAILED"]
    component: str | None = None
    error: str | None = None
    error_type: str | None = None
    retry_attempt: int = 0


KnownEventMetadata = Annotated[
    Union[
        OrderCreatedMetadata,
        StatusChangeMetadata,
        StatusUnchangedMetadata,
        TransitionRejectedMetadata,
        PaymentMetadata,
        StockRestoredMetadata,
        StockFailureMetadata,
        FulfillmentMetadata,
        ShippingMetadata,
        TrackingUpdateMetadata,
        DeliveryMetadata,
        NotificationMetadata,
        NotificationErrorMetadata,
        SystemMetadata,
    ],
    Field(discriminator="kind"),
]


class RawMetadata(BaseModel):
    """Метаданные неизвестного типа или не прошедшие валидацию"""

    kind: str
    data: dict[str, Any] = Field(default_factory=dict)


EventMetadata = Union[KnownEventMetadata, RawMetadata]

_known_adapter: TypeAdapter = TypeAdapter(KnownEventMetadata)

KNOWN_KINDS: frozenset[str] = frozenset(
    {
        OrderEventKind.ORDER_CREATED,
        OrderEventKind.STATUS_CHANGED,
        OrderEventKind.STATUS_UNCHANGED,
        OrderEventKind.STATUS_TRANSITION_REJECTED,
        OrderEventKind.PAYMENT_ATTEMPT,
        OrderEventKind.PAYMENT_SUCCEEDED,
        OrderEventKind.PAYMENT_FAILED,
        OrderEventKind.STOCK_RESTORED,
        OrderEventKind.STOCK_RESTORATION_FAILED,
        OrderEventKind.STOCK_SHORTAGE,
        OrderEventKind.FULFILLMENT_STARTED,
        OrderEventKind.PICKING_COMPLETED,
        OrderEventKind.ORDER_PACKED,
        OrderEventKind.SHIPPING_PROCESSED,
        OrderEventKind.TRACKING_UPDATE,
        OrderEventKind.DELIVERY_CONFIRMED,
        OrderEventKind.NOTIFICATION_SENT,
        OrderEventKind.NOTIFICATION_FAILED,
        OrderEventKind.NOTIFICATION_ERROR,
        OrderEventKind.SYSTEM_ERROR,
        OrderEventKind.WEBHOOK_FAILURE,
        OrderEventKind.SIDE_EFFECT_FAILED,
    }
)


def serialize_metadata(metadata: EventMetadata | None) -> str | None:
    """
    Сериализация метаданных для записи в БД

    Args:
        metadata: Модель метаданных или None

    Returns:
        JSON строка или None
    """
    if metadata is None:
        return None
    if isinstance(metadata, RawMetadata):
        payload = dict(metadata.data)
        payload.setdefault("schema_version", METADATA_SCHEMA_VERSION)
        return json.dumps(payload, default=str)
    return metadata.model_dump_json(exclude_none=True)


def parse_event_metadata(kind: str, raw: str | None) -> EventMetadata | None:
    """
    Разбор JSON метаданных события

    Args:
        kind: Тип события
        raw: JSON из колонки meta

    Returns:
        Типизированная модель, RawMetadata или None если метаданных нет
    """
    if raw is None:
        return None

    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Повреждённые метаданные события %s: не JSON", kind)
        return RawMetadata(kind=kind, data={"raw": raw})

    if not isinstance(data, dict):
        return RawMetadata(kind=kind, data={"value": data})

    if kind not in KNOWN_KINDS:
        return RawMetadata(kind=kind, data=data)

    try:
        return _known_adapter.validate_python({**data, "kind": kind})
    except ValidationError as e:
        logger.warning("Метаданные события %s не соответствуют схеме: %s", kind, e)
        return RawMetadata(kind=kind, data=data)
