"""
Factory для создания сервисов и связывания хуков оркестратора
"""

import logging

from order_lifecycle.core.config import Config
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.services.fulfillment_service import FulfillmentService
from order_lifecycle.services.notifications import (
    ConsoleMailTransport,
    ConsoleSmsTransport,
    InAppNotificationStore,
    NotificationService,
    OrderNotificationHandler,
    SmtpMailTransport,
    TwilioSmsTransport,
)
from order_lifecycle.services.notifications.transports import MailTransport, SmsTransport
from order_lifecycle.services.order_event_service import OrderEventService
from order_lifecycle.services.order_service import OrderService
from order_lifecycle.services.order_status_service import OrderStatusService
from order_lifecycle.services.realtime import RealtimeBroadcaster
from order_lifecycle.services.shipping_service import (
    CarrierGateway,
    MockCarrierGateway,
    ShippingService,
)
from order_lifecycle.services.stock_compensator import (
    HttpInventoryService,
    InventoryService,
    StockCompensator,
)
from order_lifecycle.services.tracking_service import TrackingService


logger = logging.getLogger(__name__)


class ServiceFactory:
    """
    Factory для создания сервисов с инжекцией зависимостей

    Внешние интеграции (склад, перевозчик, почта, SMS) можно передать
    явно; иначе они собираются из Config.
    """

    def __init__(
        self,
        db: ORMDatabase,
        inventory: InventoryService | None = None,
        carrier: CarrierGateway | None = None,
        mail: MailTransport | None = None,
        sms: SmsTransport | None = None,
        side_effect_timeout: float | None = None,
        notification_retry_delay: float | None = None,
    ):
        """
        Args:
            db: База данных
            inventory: Сервис склада
            carrier: Шлюз перевозчика
            mail: Почтовый транспорт
            sms: SMS транспорт
            side_effect_timeout: Таймаут хука после коммита
            notification_retry_delay: Базовая задержка повторов уведомлений
        """
        self.db = db
        self._inventory = inventory
        self._carrier = carrier
        self._mail = mail
        self._sms = sms
        self._side_effect_timeout = side_effect_timeout
        self._notification_retry_delay = notification_retry_delay
        self.reset()

    # ==================== ИНТЕГРАЦИИ ====================

    @property
    def inventory(self) -> InventoryService:
        if self._inventory is None:
            self._inventory = HttpInventoryService(Config.INVENTORY_SERVICE_URL)
        return self._inventory

    @property
    def carrier(self) -> CarrierGateway:
        if self._carrier is None:
            self._carrier = MockCarrierGateway()
        return self._carrier

    @property
    def mail(self) -> MailTransport:
        if self._mail is None:
            if Config.SMTP_HOST:
                self._mail = SmtpMailTransport.from_config()
            else:
                logger.warning("SMTP_HOST не задан: письма пишутся в лог")
                self._mail = ConsoleMailTransport()
        return self._mail

    @property
    def sms(self) -> SmsTransport:
        if self._sms is None:
            if Config.SMS_ENABLED and Config.TWILIO_ACCOUNT_SID and Config.TWILIO_AUTH_TOKEN:
                self._sms = TwilioSmsTransport.from_config()
            else:
                self._sms = ConsoleSmsTransport()
        return self._sms

    # ==================== СЕРВИСЫ ====================

    @property
    def event_service(self) -> OrderEventService:
        if self._event_service is None:
            self._event_service = OrderEventService(self.db)
        return self._event_service

    @property
    def order_service(self) -> OrderService:
        if self._order_service is None:
            self._order_service = OrderService(self.db, self.event_service)
        return self._order_service

    @property
    def broadcaster(self) -> RealtimeBroadcaster:
        if self._broadcaster is None:
            self._broadcaster = RealtimeBroadcaster()
        return self._broadcaster

    @property
    def stock_compensator(self) -> StockCompensator:
        if self._stock_compensator is None:
            self._stock_compensator = StockCompensator(self.db, self.event_service, self.inventory)
        return self._stock_compensator

    @property
    def shipping_service(self) -> ShippingService:
        if self._shipping_service is None:
            self._shipping_service = ShippingService(self.db, self.event_service, self.carrier)
        return self._shipping_service

    @property
    def notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(
                self.event_service,
                mail=self.mail,
                sms=self.sms,
                in_app=InAppNotificationStore(self.db),
                retry_delay=self._notification_retry_delay,
            )
        return self._notification_service

    @property
    def notification_handler(self) -> OrderNotificationHandler:
        if self._notification_handler is None:
            self._notification_handler = OrderNotificationHandler(
                self.db, self.notification_service, self.event_service
            )
        return self._notification_handler

    @property
    def status_service(self) -> OrderStatusService:
        """Оркестратор со всеми хуками после коммита"""
        if self._status_service is None:
            service = OrderStatusService(
                self.db, self.event_service, side_effect_timeout=self._side_effect_timeout
            )
            self._status_service = service
            service.register_hook("stock", self.stock_compensator.on_status_changed)
            service.register_hook("fulfillment", self.fulfillment_service.on_status_changed)
            service.register_hook("shipping", self.shipping_service.on_status_changed)
            service.register_hook("notifications", self.notification_handler.on_status_changed)
            service.register_hook("realtime", self.broadcaster.on_status_changed)
        return self._status_service

    @property
    def fulfillment_service(self) -> FulfillmentService:
        if self._fulfillment_service is None:
            self._fulfillment_service = FulfillmentService(
                self.db, self.event_service, self.shipping_service, self.status_service
            )
        return self._fulfillment_service

    @property
    def tracking_service(self) -> TrackingService:
        if self._tracking_service is None:
            self._tracking_service = TrackingService(
                self.db, self.event_service, self.carrier, self.broadcaster, self.status_service
            )
        return self._tracking_service

    def reset(self):
        """Сброс кэшированных сервисов (для тестирования)"""
        self._event_service: OrderEventService | None = None
        self._order_service: OrderService | None = None
        self._broadcaster: RealtimeBroadcaster | None = None
        self._stock_compensator: StockCompensator | None = None
        self._shipping_service: ShippingService | None = None
        self._notification_service: NotificationService | None = None
        self._notification_handler: OrderNotificationHandler | None = None
        self._status_service: OrderStatusService | None = None
        self._fulfillment_service: FulfillmentService | None = None
        self._tracking_service: TrackingService | None = None
        logger.debug("ServiceFactory: сервисы сброшены")
