"""
Опциональная интеграция Sentry для error tracking

События об ошибках переходов помечаются тегами заказа (order_id,
target_status, operation), а контакты покупателя вырезаются до отправки.
"""

import logging
import re
from typing import Any

from order_lifecycle.core.config import Config


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(\.[\w-]+)+")
PII_KEYS = frozenset({"email", "customer_email", "phone", "customer_phone", "ip_address"})
REDACTED = "[redacted]"

_sentry_enabled = False


def _scrub_mapping(data: dict[str, Any]) -> dict[str, Any]:
    return {key: (REDACTED if key in PII_KEYS else value) for key, value in data.items()}


def scrub_event(event: dict[str, Any], hint: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    before_send: убирает email и телефоны покупателей из события

    Args:
        event: Событие Sentry
        hint: Подсказка SDK (не используется)

    Returns:
        Очищенное событие
    """
    if isinstance(event.get("user"), dict):
        event["user"] = _scrub_mapping(event["user"])

    extra = event.get("extra")
    if isinstance(extra, dict):
        event["extra"] = _scrub_mapping(extra)

    contexts = event.get("contexts")
    if isinstance(contexts, dict) and isinstance(contexts.get("order"), dict):
        contexts["order"] = _scrub_mapping(contexts["order"])

    message = event.get("message")
    if isinstance(message, str):
        event["message"] = EMAIL_PATTERN.sub(REDACTED, message)

    logentry = event.get("logentry")
    if isinstance(logentry, dict) and isinstance(logentry.get("message"), str):
        logentry["message"] = EMAIL_PATTERN.sub(REDACTED, logentry["message"])

    return event


def init_sentry() -> str | None:
    """
    Инициализация Sentry для error tracking (опционально)

    Returns:
        Sentry DSN если успешно, None если Sentry не настроен
    """
    global _sentry_enabled

    sentry_dsn = Config.SENTRY_DSN
    environment = Config.ENVIRONMENT

    if not sentry_dsn:
        logger.info("Sentry DSN не настроен, error tracking отключен")
        return None

    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=environment,
            traces_sample_rate=0.1,
            integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
            before_send=scrub_event,
            send_default_pii=False,
            attach_stacktrace=True,
            max_breadcrumbs=50,
        )
    except ImportError:
        logger.warning(
            "Sentry SDK не установлен. "
            "Установите: pip install sentry-sdk или pip install -e .[monitoring]"
        )
        return None
    except Exception as e:
        logger.error(f"Ошибка инициализации Sentry: {e}")
        return None

    _sentry_enabled = True
    logger.info(f"Sentry инициализирован (environment: {environment})")
    return sentry_dsn


def capture_order_error(
    exc: BaseException,
    order_id: str,
    target_status: str | None = None,
    operation: str = "transition",
) -> str | None:
    """
    Отправка исключения в Sentry с тегами заказа

    Args:
        exc: Исключение
        order_id: ID заказа
        target_status: Целевой статус перехода
        operation: transition, bulk_transition и т.п.

    Returns:
        ID события Sentry или None, если Sentry не инициализирован
    """
    if not _sentry_enabled:
        return None

    import sentry_sdk

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("order_id", order_id)
        scope.set_tag("operation", operation)
        if target_status:
            scope.set_tag("target_status", target_status)
        scope.set_context("order", {"order_id": order_id, "target_status": target_status})
        return sentry_sdk.capture_exception(exc)
