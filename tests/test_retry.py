"""Test retry decorator"""
import pytest
from unittest.mock import AsyncMock, patch

from playlist_core.exceptions import InvalidOperationError, ServiceError
from playlist_app.utils.retry import backoff_delays, retry_async


def test_backoff_delays_capped():
    assert list(backoff_delays(5, 1.0, 3.0, 2.0)) == [1.0, 2.0, 3.0, 3.0]
    assert list(backoff_delays(1, 1.0, 3.0, 2.0)) == []


@pytest.mark.asyncio
class TestRetryAsync:
    async def test_succeeds_after_retries(self):
        calls = {"n": 0}

        @retry_async(max_attempts=3, initial_delay=0, exceptions=(ServiceError,))
        async def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise ServiceError("try again")
            return "ok"

        with patch("playlist_app.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await flaky() == "ok"
        assert calls["n"] == 3
        assert sleep.await_count == 2

    async def test_other_exceptions_not_retried(self):
        calls = {"n": 0}

        @retry_async(max_attempts=3, initial_delay=0, exceptions=(ServiceError,))
        async def invalid():
            calls["n"] += 1
            raise InvalidOperationError("bad")

        with pytest.raises(InvalidOperationError):
            await invalid()
        assert calls["n"] == 1

    async def test_last_error_raised(self):
        @retry_async(max_attempts=2, initial_delay=0)
        async def always_fails():
            raise ServiceError("down")

        with pytest.raises(ServiceError, match="down"):
            await always_fails()
