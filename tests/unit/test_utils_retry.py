"""Tests for ossbot/utils/retry.py."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from ossbot.utils.retry import async_retry, server_error


class TestAsyncRetry:
    """Tests for the async_retry decorator."""

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        func = AsyncMock(return_value="ok")
        func.__name__ = "func"

        assert await async_retry()(func)() == "ok"
        func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        """Should retry matching exceptions with exponential backoff."""
        func = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        func.__name__ = "func"
        sleep = AsyncMock()

        with patch("ossbot.utils.retry.asyncio.sleep", new=sleep):
            result = await async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(ConnectionError,))(func)()

        assert result == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        func.__name__ = "func"

        with patch("ossbot.utils.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError):
                await async_retry(max_attempts=2, exceptions=(ConnectionError,))(func)()

        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_other_exceptions_not_retried(self):
        """Should propagate exceptions outside the retry list immediately."""
        func = AsyncMock(side_effect=ValueError("bad"))
        func.__name__ = "func"

        with pytest.raises(ValueError):
            await async_retry(exceptions=(ConnectionError,))(func)()

        func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retry_if_result(self):
        """Should retry while the predicate rejects the result."""
        func = AsyncMock(side_effect=[503, 502, 200])
        func.__name__ = "func"
        sleep = AsyncMock()

        with patch("ossbot.utils.retry.asyncio.sleep", new=sleep):
            result = await async_retry(max_attempts=3, retry_if=lambda status: status >= 500)(func)()

        assert result == 200
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_if_returns_last_result(self):
        """Should hand back the last rejected result once attempts run out."""
        func = AsyncMock(return_value=503)
        func.__name__ = "func"

        with patch("ossbot.utils.retry.asyncio.sleep", new=AsyncMock()):
            result = await async_retry(max_attempts=2, retry_if=lambda status: status >= 500)(func)()

        assert result == 503
        assert func.await_count == 2


class TestServerError:
    def test_status_codes(self):
        assert server_error(httpx.Response(503))
        assert not server_error(httpx.Response(404))
        assert not server_error(None)
