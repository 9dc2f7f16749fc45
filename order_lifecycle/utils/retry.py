"""
Retry механизм для обращений к внешним транспортам с экспоненциальным backoff
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Все попытки исчерпаны"""

    def __init__(self, func_name: str, attempts: int, last_exception: BaseException):
        self.func_name = func_name
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(f"{func_name}: {attempts} attempt(s) failed: {last_exception}")


def compute_backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
) -> float:
    """
    Задержка перед следующей попыткой

    Args:
        attempt: Номер неудачной попытки (с 1)
        base_delay: Базовая задержка (секунды)
        max_delay: Максимальная задержка (секунды)
        exponential_base: База экспоненты

    Returns:
        Задержка в секундах
    """
    return min(base_delay * (exponential_base ** (attempt - 1)), max_delay)


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Декоратор для повтора async вызовов с экспоненциальным backoff

    В отличие от "тихих" обёрток, после исчерпания попыток поднимает
    RetryExhaustedError, чтобы вызывающий код мог зафиксировать отказ.

    Args:
        max_attempts: Максимальное количество попыток
        base_delay: Базовая задержка между попытками (секунды)
        max_delay: Максимальная задержка между попытками (секунды)
        exponential_base: База для экспоненциального роста задержки
        exceptions: Кортеж исключений для повтора
        on_retry: Колбэк (номер попытки, исключение) перед каждым повтором

    Example:
        @retry_async(max_attempts=5)
        async def send(transport, message):
            return await transport.send(message)
    """

    if max_attempts < 1:
        raise ValueError("max_attempts должен быть >= 1")

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: BaseException | None = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)

                except exceptions as e:
                    last_exception = e
                    logger.warning(
                        "%s: %s occurred. Attempt %d/%d. Error: %s",
                        func.__name__,
                        type(e).__name__,
                        attempt,
                        max_attempts,
                        str(e),
                    )

                    if attempt >= max_attempts:
                        break

                    if on_retry is not None:
                        on_retry(attempt, e)

                    delay = compute_backoff_delay(attempt, base_delay, max_delay, exponential_base)
                    if delay > 0:
                        logger.info("Retrying in %.2f seconds...", delay)
                        await asyncio.sleep(delay)

            if last_exception is None:
                raise RuntimeError(f"{func.__name__}: no attempts were made")

            logger.error(
                "%s: Max attempts reached. Giving up. Last error: %s",
                func.__name__,
                str(last_exception),
            )
            raise RetryExhaustedError(func.__name__, max_attempts, last_exception)

        return wrapper

    return decorator
