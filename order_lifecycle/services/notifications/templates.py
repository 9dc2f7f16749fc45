"""
Шаблоны уведомлений о заказах

Подстановка текстовая: {{variable}} заменяется значением, неизвестные
плейсхолдеры остаются как есть.
"""

import re
from dataclasses import dataclass, field
from typing import Any


PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

SIGNATURE = "Best regards,\nThe Orders Team"
HTML_SIGNATURE = "<p>Best regards,<br>The Orders Team</p>"


@dataclass(frozen=True)
class NotificationTemplate:
    """Шаблон уведомления"""

    id: str
    name: str
    subject: str
    text_content: str
    html_content: str
    sms_content: str | None = None
    variables: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RenderedNotification:
    subject: str
    text_content: str
    html_content: str
    sms_content: str | None = None


def render_text(text: str, variables: dict[str, Any]) -> str:
    """
    Подстановка переменных в строку

    Args:
        text: Текст с плейсхолдерами {{name}}
        variables: Значения

    Returns:
        Текст с подставленными значениями
    """

    def replace(match: re.Match) -> str:
        value = variables.get(match.group(1))
        if value is None or value == "":
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def render_template(template: NotificationTemplate, variables: dict[str, Any]) -> RenderedNotification:
    return RenderedNotification(
        subject=render_text(template.subject, variables),
        text_content=render_text(template.text_content, variables),
        html_content=render_text(template.html_content, variables),
        sms_content=render_text(template.sms_content, variables) if template.sms_content else None,
    )


TEMPLATES: dict[str, NotificationTemplate] = {
    "ORDER_PROCESSING": NotificationTemplate(
        id="ORDER_PROCESSING",
        name="Order Processing",
        subject="Your order #{{orderNumber}} is being prepared",
        text_content=(
            "Good news! Your order is now being prepared for shipment.\n\n"
            "Order #{{orderNumber}}\n"
            "Status: Processing\n"
            "Expected shipping: {{expectedShipping}}\n\n"
            "Track your order: {{trackingUrl}}\n\n" + SIGNATURE
        ),
        html_content=(
            "<h2>Good news! Your order is being prepared</h2>"
            "<h3>Order #{{orderNumber}}</h3>"
            "<p><strong>Status:</strong> Processing</p>"
            "<p><strong>Expected shipping:</strong> {{expectedShipping}}</p>"
            '<p><a href="{{trackingUrl}}">Track your order</a></p>' + HTML_SIGNATURE
        ),
        sms_content=(
            "Order #{{orderNumber}} is being prepared! Expected shipping: "
            "{{expectedShipping}}. Track: {{trackingUrl}}"
        ),
        variables=("orderNumber", "expectedShipping", "trackingUrl"),
    ),
    "ORDER_SHIPPED": NotificationTemplate(
        id="ORDER_SHIPPED",
        name="Order Shipped",
        subject="Your order #{{orderNumber}} has shipped!",
        text_content=(
            "Great news! Your order has been shipped.\n\n"
            "Order #{{orderNumber}}\n"
            "Tracking Number: {{trackingNumber}}\n"
            "Carrier: {{carrier}}\n"
            "Expected delivery: {{deliveryDate}}\n\n"
            "Track your package: {{carrierTrackingUrl}}\n\n" + SIGNATURE
        ),
        html_content=(
            "<h2>Great news! Your order has shipped</h2>"
            "<h3>Order #{{orderNumber}}</h3>"
            "<p><strong>Tracking Number:</strong> <code>{{trackingNumber}}</code></p>"
            "<p><strong>Carrier:</strong> {{carrier}}</p>"
            "<p><strong>Expected delivery:</strong> {{deliveryDate}}</p>"
            '<p><a href="{{carrierTrackingUrl}}">Track package</a></p>' + HTML_SIGNATURE
        ),
        sms_content=(
            "Order #{{orderNumber}} shipped via {{carrier}}! Tracking: {{trackingNumber}}. "
            "Expected: {{deliveryDate}}"
        ),
        variables=("orderNumber", "trackingNumber", "carrier", "deliveryDate", "carrierTrackingUrl"),
    ),
    "ORDER_DELIVERED": NotificationTemplate(
        id="ORDER_DELIVERED",
        name="Order Delivered",
        subject="Your order #{{orderNumber}} has been delivered!",
        text_content=(
            "Fantastic! Your order has been delivered.\n\n"
            "Order #{{orderNumber}}\n"
            "Delivered on: {{deliveryDate}}\n\n"
            "We hope you love your purchase! Leave a review: {{reviewUrl}}\n\n" + SIGNATURE
        ),
        html_content=(
            "<h2>Fantastic! Your order has been delivered</h2>"
            "<h3>Order #{{orderNumber}}</h3>"
            "<p><strong>Delivered on:</strong> {{deliveryDate}}</p>"
            '<p>We hope you love your purchase! <a href="{{reviewUrl}}">Leave a review</a>.</p>'
            + HTML_SIGNATURE
        ),
        sms_content=(
            "Order #{{orderNumber}} delivered on {{deliveryDate}}. Leave a review: {{reviewUrl}}"
        ),
        variables=("orderNumber", "deliveryDate", "reviewUrl"),
    ),
    "ORDER_CANCELLED": NotificationTemplate(
        id="ORDER_CANCELLED",
        name="Order Cancelled",
        subject="Order #{{orderNumber}} has been cancelled",
        text_content=(
            "Your order has been cancelled.\n\n"
            "Order #{{orderNumber}}\n"
            "Cancelled on: {{cancellationDate}}\n"
            "Reason: {{cancellationReason}}\n\n"
            "Any payments will be refunded within 3-5 business days.\n\n" + SIGNATURE
        ),
        html_content=(
            "<h2>Order Cancelled</h2>"
            "<h3>Order #{{orderNumber}}</h3>"
            "<p><strong>Cancelled on:</strong> {{cancellationDate}}</p>"
            "<p><strong>Reason:</strong> {{cancellationReason}}</p>"
            "<p>Any payments will be refunded within 3-5 business days.</p>" + HTML_SIGNATURE
        ),
        sms_content="Order #{{orderNumber}} cancelled. Refund processed within 3-5 days.",
        variables=("orderNumber", "cancellationDate", "cancellationReason"),
    ),
    "ORDER_REFUNDED": NotificationTemplate(
        id="ORDER_REFUNDED",
        name="Order Refunded",
        subject="Refund issued for order #{{orderNumber}}",
        text_content=(
            "We have issued a refund for your order.\n\n"
            "Order #{{orderNumber}}\n"
            "Refund amount: {{totalFormatted}}\n"
            "Refunded on: {{refundDate}}\n\n"
            "Depending on your bank, the funds may take 5-10 business days to appear.\n\n"
            + SIGNATURE
        ),
        html_content=(
            "<h2>Refund issued</h2>"
            "<h3>Order #{{orderNumber}}</h3>"
            "<p><strong>Refund amount:</strong> {{totalFormatted}}</p>"
            "<p><strong>Refunded on:</strong> {{refundDate}}</p>"
            "<p>Depending on your bank, the funds may take 5-10 business days to appear.</p>"
            + HTML_SIGNATURE
        ),
        sms_content="Refund of {{totalFormatted}} issued for order #{{orderNumber}}.",
        variables=("orderNumber", "totalFormatted", "refundDate"),
    ),
    "PAYMENT_FAILED": NotificationTemplate(
        id="PAYMENT_FAILED",
        name="Payment Failed",
        subject="Payment issue with order #{{orderNumber}} - Action required",
        text_content=(
            "We encountered an issue processing payment for your order.\n\n"
            "Order #{{orderNumber}}\n"
            "Amount: {{totalFormatted}}\n"
            "Issue: {{failureReason}}\n\n"
            "Please update your payment method to complete your order:\n"
            "{{paymentUpdateUrl}}\n\n"
            "If you have questions, contact our support team: {{supportUrl}}\n\n" + SIGNATURE
        ),
        html_content=(
            "<h2>Payment Issue - Action Required</h2>"
            "<h3>Order #{{orderNumber}}</h3>"
            "<p><strong>Amount:</strong> {{totalFormatted}}</p>"
            "<p><strong>Issue:</strong> {{failureReason}}</p>"
            '<p><a href="{{paymentUpdateUrl}}">Update payment method</a></p>'
            '<p>If you have questions, <a href="{{supportUrl}}">contact our support team</a>.</p>'
            + HTML_SIGNATURE
        ),
        sms_content=(
            "Payment failed for order #{{orderNumber}}. Update payment: {{paymentUpdateUrl}}"
        ),
        variables=(
            "orderNumber",
            "totalFormatted",
            "failureReason",
            "paymentUpdateUrl",
            "supportUrl",
        ),
    ),
    "LOW_STOCK_ALERT": NotificationTemplate(
        id="LOW_STOCK_ALERT",
        name="Low Stock Alert",
        subject="Low Stock Alert - {{productName}}",
        text_content=(
            "Low Stock Alert\n\n"
            "Product: {{productName}}\n"
            "SKU: {{productSku}}\n"
            "Current Stock: {{currentStock}}\n"
            "Threshold: {{threshold}}\n\n"
            "Immediate restocking recommended."
        ),
        html_content=(
            "<h2>Low Stock Alert</h2>"
            "<h3>{{productName}}</h3>"
            "<p><strong>SKU:</strong> {{productSku}}</p>"
            "<p><strong>Current Stock:</strong> {{currentStock}}</p>"
            "<p><strong>Alert Threshold:</strong> {{threshold}}</p>"
            "<p><strong>Action Required:</strong> Immediate restocking recommended.</p>"
        ),
        variables=("productName", "productSku", "currentStock", "threshold"),
    ),
}

# Полный отказ каналов по этим шаблонам эскалируется администраторам
CRITICAL_TEMPLATES = frozenset({"PAYMENT_FAILED", "LOW_STOCK_ALERT"})


def get_template(template_id: str) -> NotificationTemplate | None:
    return TEMPLATES.get(template_id)


def list_templates() -> list[NotificationTemplate]:
    return list(TEMPLATES.values())
