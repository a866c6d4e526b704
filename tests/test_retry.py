"""Bounded retry helper tests"""

import pytest

from booking_service.exceptions import ExternalServiceError
from booking_service.shared.retry import call_with_retry


class Flaky:
    def __init__(self, failures, error):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


async def test_retries_transient_errors_until_success():
    func = Flaky(2, ExternalServiceError("503", status=503, retryable=True))

    assert await call_with_retry(func, operation="test", max_attempts=3, base_delay=0) == "ok"
    assert func.calls == 3


async def test_gives_up_after_max_attempts():
    func = Flaky(5, ExternalServiceError("503", status=503, retryable=True))

    with pytest.raises(ExternalServiceError):
        await call_with_retry(func, operation="test", max_attempts=3, base_delay=0)
    assert func.calls == 3


async def test_permanent_errors_not_retried():
    func = Flaky(5, ExternalServiceError("400", status=400, retryable=False))

    with pytest.raises(ExternalServiceError):
        await call_with_retry(func, operation="test", max_attempts=3, base_delay=0)
    assert func.calls == 1


async def test_backoff_doubles(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("booking_service.shared.retry.asyncio.sleep", fake_sleep)
    func = Flaky(3, ConnectionError("reset"))

    assert await call_with_retry(func, operation="test", max_attempts=4, base_delay=0.5) == "ok"
    assert delays == [0.5, 1.0, 2.0]
