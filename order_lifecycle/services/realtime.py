"""
Realtime рассылка обновлений заказов подключённым клиентам (SSE)

Реестр подключений принадлежит одному объекту и защищён asyncio.Lock.
Доставка best-effort и только внутри процесса: при нескольких
инстансах клиент видит события своего инстанса.
"""

import asyncio
import json
import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from order_lifecycle.domain.order_snapshot import TransitionContext
from order_lifecycle.utils.helpers import get_now


logger = logging.getLogger(__name__)

ORDERS_CHANNEL = "orders"
ADMIN_CHANNEL = "admin"


class ConnectionWriter(Protocol):
    """Канал до клиента (обёртка над потоком SSE ответа)"""

    async def write(self, data: str) -> None: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class RealtimeEvent:
    """Событие для клиентов"""

    type: str
    payload: dict[str, Any]
    user_id: str | None = None  # None - без привязки к пользователю
    channel: str | None = None  # None - любой канал
    order_id: str | None = None
    timestamp: datetime = field(default_factory=get_now)

    def matches(self, connection: "RealtimeConnection") -> bool:
        if self.user_id is not None and connection.user_id != self.user_id:
            return False
        return self.channel is None or connection.channel == self.channel

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {
            "type": self.type,
            "data": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.order_id:
            message["orderId"] = self.order_id
        return message


@dataclass
class RealtimeConnection:
    connection_id: str
    writer: ConnectionWriter
    user_id: str | None = None
    channel: str = ORDERS_CHANNEL
    connected_at: datetime = field(default_factory=get_now)


def format_sse(message: dict[str, Any]) -> str:
    """Кадр Server-Sent Events"""
    return f"data: {json.dumps(message, default=str)}\n\n"


def build_connection_id(user_id: str | None, channel: str) -> str:
    """ID подключения вида "<user>-<channel>-<ms timestamp>-<suffix>" """
    millis = int(time.time() * 1000)
    return f"{user_id or 'anonymous'}-{channel}-{millis}-{uuid.uuid4().hex[:6]}"


class RealtimeBroadcaster:
    """Реестр подключений и рассылка событий"""

    def __init__(self):
        self._connections: dict[str, RealtimeConnection] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def add_connection(
        self,
        connection_id: str,
        writer: ConnectionWriter,
        user_id: str | None = None,
        channel: str = ORDERS_CHANNEL,
    ) -> RealtimeConnection:
        """
        Регистрация подключения

        Подключение с тем же ID заменяет старое (старое закрывается).
        """
        connection = RealtimeConnection(connection_id, writer, user_id, channel)
        async with self._lock:
            previous = self._connections.pop(connection_id, None)
            self._connections[connection_id] = connection
        if previous is not None:
            await self._close_quietly(previous)
        logger.debug(f"Realtime: подключение {connection_id} (всего {self.connection_count})")
        return connection

    async def remove_connection(self, connection_id: str) -> None:
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
        if connection is not None:
            await self._close_quietly(connection)
            logger.debug(f"Realtime: отключение {connection_id}")

    @asynccontextmanager
    async def connection(
        self,
        writer: ConnectionWriter,
        user_id: str | None = None,
        channel: str = ORDERS_CHANNEL,
    ) -> AsyncIterator[RealtimeConnection]:
        """
        Подключение на время жизни запроса

        Usage:
            async with broadcaster.connection(writer, user_id=user.id) as conn:
                await request_closed.wait()
        """
        connection = await self.add_connection(
            build_connection_id(user_id, channel), writer, user_id, channel
        )
        try:
            yield connection
        finally:
            await self.remove_connection(connection.connection_id)

    async def broadcast(self, event: RealtimeEvent) -> int:
        """
        Рассылка события

        Событие с user_id получают только подключения этого пользователя.
        Подключения, запись в которые упала, удаляются из реестра.

        Returns:
            Количество успешных доставок
        """
        async with self._lock:
            targets = [conn for conn in self._connections.values() if event.matches(conn)]

        frame = format_sse(event.to_message())
        results = await asyncio.gather(
            *(conn.writer.write(frame) for conn in targets), return_exceptions=True
        )

        delivered = 0
        dead: list[RealtimeConnection] = []
        for conn, outcome in zip(targets, results):
            if isinstance(outcome, BaseException):
                logger.warning(f"Realtime: запись в {conn.connection_id} не удалась: {outcome}")
                dead.append(conn)
            else:
                delivered += 1

        if dead:
            async with self._lock:
                for conn in dead:
                    if self._connections.get(conn.connection_id) is conn:
                        del self._connections[conn.connection_id]
            for conn in dead:
                await self._close_quietly(conn)

        return delivered

    async def heartbeat(self) -> int:
        """Пинг всех подключений (заодно чистит мёртвые)"""
        return await self.broadcast(RealtimeEvent(type="heartbeat", payload={}))

    async def close_all(self) -> None:
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for conn in connections:
            await self._close_quietly(conn)

    async def on_status_changed(self, context: TransitionContext) -> None:
        """Хук после коммита: кабинет покупателя и админская панель"""
        order = context.order
        payload = {
            "orderId": order.id,
            "fromStatus": context.from_status,
            "toStatus": context.to_status,
            "orderStatus": order.status,
            "reason": context.reason,
        }
        if order.user_id:
            await self.broadcast(
                RealtimeEvent(
                    type="order_update", payload=payload, user_id=order.user_id, order_id=order.id
                )
            )
        await self.broadcast(
            RealtimeEvent(
                type="order_update", payload=payload, channel=ADMIN_CHANNEL, order_id=order.id
            )
        )

    @staticmethod
    async def _close_quietly(connection: RealtimeConnection) -> None:
        try:
            await connection.writer.close()
        except Exception as e:
            logger.debug(f"Realtime: ошибка закрытия {connection.connection_id}: {e}")
