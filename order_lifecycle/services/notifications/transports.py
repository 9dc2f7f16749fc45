"""
Транспорты уведомлений: email (SMTP), SMS (Twilio), личный кабинет (БД)
"""

import asyncio
import logging
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from order_lifecycle.core.config import Config
from order_lifecycle.database.orm_database import ORMDatabase
from order_lifecycle.database.orm_models import InAppNotification


logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Транспорт не смог доставить сообщение"""


class MailTransport(Protocol):
    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> None: ...


class SmsTransport(Protocol):
    async def send(self, to: str, body: str) -> None: ...


class SmtpMailTransport:
    """Отправка писем через SMTP (aiosmtplib)"""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool = False,
        start_tls: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or Config.MAIL_FROM
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> "SmtpMailTransport":
        return cls(
            host=Config.SMTP_HOST or "localhost",
            port=Config.SMTP_PORT,
            username=Config.SMTP_USERNAME,
            password=Config.SMTP_PASSWORD,
            sender=Config.MAIL_FROM,
            use_tls=Config.SMTP_USE_TLS,
            start_tls=Config.SMTP_START_TLS,
            timeout=Config.SMTP_TIMEOUT,
        )

    def build_message(self, to: str, subject: str, text: str, html: str | None = None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        """
        Отправка письма

        Raises:
            TransportError: SMTP сервер отказал или недоступен
        """
        message = self.build_message(to, subject, text, html)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.use_tls,
                start_tls=self.start_tls if not self.use_tls else False,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise TransportError(f"SMTP delivery to {to} failed: {e}") from e
        logger.info(f"Email '{subject}' отправлен на {to}")


class ConsoleMailTransport:
    """Письма в лог (SMTP не настроен)"""

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        logger.info(f"[EMAIL] to={to} subject={subject!r}\n{text}")


class TwilioSmsTransport:
    """Отправка SMS через Twilio"""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self.client = Client(account_sid, auth_token)
        self.from_number = from_number

    @classmethod
    def from_config(cls) -> "TwilioSmsTransport":
        return cls(
            Config.TWILIO_ACCOUNT_SID or "",
            Config.TWILIO_AUTH_TOKEN or "",
            Config.TWILIO_FROM_NUMBER or "",
        )

    async def send(self, to: str, body: str) -> None:
        """
        Отправка SMS (синхронный клиент Twilio в executor)

        Raises:
            TransportError: Twilio вернул ошибку
        """
        loop = asyncio.get_running_loop()
        try:
            message = await loop.run_in_executor(
                None,
                lambda: self.client.messages.create(body=body, from_=self.from_number, to=to),
            )
        except TwilioRestException as e:
            raise TransportError(f"Twilio error {e.code}: {e.msg}") from e
        logger.info(f"SMS отправлено на {to} (SID: {message.sid})")


class ConsoleSmsTransport:
    """SMS в лог (Twilio не настроен)"""

    async def send(self, to: str, body: str) -> None:
        logger.info(f"[SMS] to={to}: {body}")


class InAppNotificationStore:
    """Уведомления в личном кабинете"""

    def __init__(self, db: ORMDatabase):
        self.db = db

    async def send(
        self,
        user_id: str,
        title: str,
        message: str,
        order_id: str | None = None,
        notification_type: str = "ORDER_UPDATE",
    ) -> int:
        """
        Сохранение уведомления

        Returns:
            ID записи
        """
        async with self.db.get_session() as session:
            notification = InAppNotification(
                user_id=user_id,
                order_id=order_id,
                notification_type=notification_type,
                title=title,
                message=message,
                is_read=False,
            )
            session.add(notification)
            await session.flush()
            notification_id = notification.id
        logger.debug(f"In-app уведомление #{notification_id} для пользователя {user_id}")
        return notification_id
