"""
Тесты механизма повторов
"""

import pytest

from order_lifecycle.utils.retry import RetryExhaustedError, compute_backoff_delay, retry_async


class TestComputeBackoffDelay:
    def test_exponential_growth(self):
        assert compute_backoff_delay(1, base_delay=1.0) == 1.0
        assert compute_backoff_delay(3, base_delay=1.0) == 4.0

    def test_capped(self):
        assert compute_backoff_delay(10, base_delay=1.0, max_delay=5.0) == 5.0


class TestRetryAsync:
    """Тесты декоратора retry_async"""

    async def test_success_after_failures(self):
        """Вызов проходит со второй попытки"""
        calls = []

        @retry_async(max_attempts=3, base_delay=0)
        async def flaky():
            calls.append(1)
            if len(calls) < 2:
                raise ConnectionError("temporary")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 2

    async def test_exhausted(self):
        """После исчерпания попыток - RetryExhaustedError с последней ошибкой"""
        retries = []

        @retry_async(max_attempts=3, base_delay=0, on_retry=lambda n, e: retries.append(n))
        async def always_fails():
            raise TimeoutError("smtp timeout")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await always_fails()

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, TimeoutError)
        assert retries == [1, 2]

    async def test_unlisted_exception_not_retried(self):
        calls = []

        @retry_async(max_attempts=3, base_delay=0, exceptions=(ConnectionError,))
        async def broken():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await broken()
        assert len(calls) == 1

    def test_requires_at_least_one_attempt(self):
        """Ноль попыток - ошибка конфигурации при создании декоратора"""
        with pytest.raises(ValueError, match="max_attempts"):
            retry_async(max_attempts=0)
