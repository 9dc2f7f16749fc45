"""
Конфигурация pytest и общие фикстуры
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Добавляем корневую директорию в путь
ROOT_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT_DIR))

from order_lifecycle.core.config import Config
from order_lifecycle.core.constants import OrderStatus
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.schemas.order import OrderCreateSchema
from order_lifecycle.services.notifications.transports import TransportError
from order_lifecycle.services.service_factory import ServiceFactory
from order_lifecycle.services.shipping_service import MockCarrierGateway
from order_lifecycle.services.stock_compensator import StockRestorationResult


class FakeMailTransport:
    """Почтовый транспорт, запоминающий письма"""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.attempts = 0
        self.sent: list[dict] = []

    async def send(self, to, subject, text, html=None):
        self.attempts += 1
        if self.failures < 0 or self.attempts <= self.failures:
            raise TransportError(f"SMTP unavailable (attempt {self.attempts})")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


class FakeSmsTransport:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send(self, to, body):
        if self.fail:
            raise TransportError("Twilio unavailable")
        self.sent.append({"to": to, "body": body})


class FakeInventory:
    """Сервис склада с управляемым результатом"""

    def __init__(self, success: bool = True, error: str = "Warehouse offline"):
        self.success = success
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def restore_stock(self, order_id, reason):
        self.calls.append((order_id, reason))
        if self.success:
            return StockRestorationResult(success=True, restored_item_count=2)
        return StockRestorationResult(success=False, error=self.error)


class RecordingWriter:
    """Поток SSE клиента"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.frames: list[str] = []
        self.closed = False

    async def write(self, data):
        if self.fail:
            raise ConnectionResetError("client gone")
        self.frames.append(data)

    async def close(self):
        self.closed = True


@pytest_asyncio.fixture
async def db(tmp_path):
    """Файловая SQLite БД на время теста"""
    database = ORMDatabase(f"sqlite+aiosqlite:///{tmp_path / 'orders_test.db'}")
    await database.connect()
    await database.create_tables()
    yield database
    await database.disconnect()


@pytest.fixture
def mail():
    return FakeMailTransport()


@pytest.fixture
def sms():
    return FakeSmsTransport()


@pytest.fixture
def inventory():
    return FakeInventory()


@pytest.fixture
def carrier():
    return MockCarrierGateway()


@pytest_asyncio.fixture
async def factory(db, inventory, carrier, mail, sms):
    """Фабрика сервисов с тестовыми интеграциями"""
    services = ServiceFactory(
        db,
        inventory=inventory,
        carrier=carrier,
        mail=mail,
        sms=sms,
        side_effect_timeout=5,
        notification_retry_delay=0,
    )
    yield services
    await services.status_service.wait_for_side_effects()


@pytest.fixture
def admin_emails(monkeypatch):
    """Адреса администраторов для оповещений"""
    emails = ["ops@example.com"]
    monkeypatch.setattr(Config, "ADMIN_EMAILS", emails)
    return emails


def make_order_data(**overrides) -> OrderCreateSchema:
    """Данные оформления заказа по умолчанию"""
    data = {
        "email": "Buyer@Example.com",
        "user_id": "user_42",
        "phone": "+44 7700 900123",
        "customer_name": "Ada Lovelace",
        "currency": "gbp",
        "items": [
            {
                "product_id": "prod_hoodie",
                "name": "Black Hoodie",
                "size": "M",
                "quantity": 2,
                "unit_price_cents": 4500,
            },
            {
                "product_id": "prod_cap",
                "name": "Logo Cap",
                "quantity": 1,
                "unit_price_cents": 1500,
            },
        ],
        "shipping_cents": 499,
    }
    data.update(overrides)
    return OrderCreateSchema(**data)


@pytest.fixture
def order_data():
    return make_order_data


@pytest_asyncio.fixture
async def create_order(factory):
    """Создание заказа и (по желанию) продвижение до статуса"""

    path = [
        OrderStatus.AWAITING_PAYMENT,
        OrderStatus.PAID,
        OrderStatus.FULFILLING,
    ]

    async def _create(status: str = OrderStatus.PENDING, **overrides):
        order = await factory.order_service.create_order(make_order_data(**overrides))
        for step in path:
            if order.status == status:
                break
            result = await factory.status_service.transition_order_status(
                order.id, step, actor_id="admin_1"
            )
            assert result.success, result.error
            order = result.order
        await factory.status_service.wait_for_side_effects()
        return order

    return _create


@pytest.fixture
def make_writer():
    """Фабрика SSE потоков: make_writer() / make_writer(fail=True)"""
    return RecordingWriter
