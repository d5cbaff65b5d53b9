import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from jito_bundler.rpc_fallback import RpcFallbackSender, pending_fallbacks, schedule_fallback_send


class TestScheduleFallbackSend:

    pytestmark = pytest.mark.unit

    @pytest.mark.asyncio
    async def test_disabled_with_zero_delay(self):
        sender = AsyncMock()
        assert schedule_fallback_send(b"tx", sender, 0) is None
        sender.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_after_delay(self, caplog):
        sender = AsyncMock(return_value="sig-123")

        with caplog.at_level(logging.INFO, logger="jito_bundler.rpc_fallback"):
            task = schedule_fallback_send(b"tx-bytes", sender, 0.01)
            assert pending_fallbacks() >= 1
            sender.assert_not_called()

            await task
            await asyncio.sleep(0)

        sender.assert_awaited_once_with(b"tx-bytes")
        assert "signature=sig-123" in caplog.text
        assert task not in asyncio.all_tasks()

    @pytest.mark.asyncio
    async def test_detached_from_caller(self):
        sender = AsyncMock(return_value="sig")

        async def submit():
            schedule_fallback_send(b"tx", sender, 0.01)
            return "bundle-id"

        # The scheduling coroutine returns before the fallback runs
        assert await submit() == "bundle-id"
        sender.assert_not_called()

        await asyncio.sleep(0.05)
        sender.assert_awaited_once_with(b"tx")

    @pytest.mark.asyncio
    async def test_failures_are_only_logged(self, caplog):
        sender = AsyncMock(side_effect=RuntimeError("already processed"))

        with caplog.at_level(logging.DEBUG, logger="jito_bundler.rpc_fallback"):
            task = schedule_fallback_send(b"tx", sender, 0.01)
            await task

        assert task.exception() is None
        assert "already processed" in caplog.text


class TestRpcFallbackSender:

    pytestmark = pytest.mark.unit

    @pytest.mark.asyncio
    async def test_send_raw_transaction(self):
        with patch("jito_bundler.rpc_fallback.AsyncClient") as mock_client_class:
            mock_client = MagicMock()
            mock_client.send_raw_transaction = AsyncMock(return_value=MagicMock(value="sig-abc"))
            mock_client.close = AsyncMock()
            mock_client_class.return_value = mock_client

            sender = RpcFallbackSender("http://localhost:8899")
            signature = await sender(b"signed-tx")

            assert signature == "sig-abc"
            mock_client_class.assert_called_once_with("http://localhost:8899")
            args, kwargs = mock_client.send_raw_transaction.call_args
            assert args == (b"signed-tx",)
            assert kwargs["opts"].skip_preflight is True
            mock_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_closed_on_error(self):
        with patch("jito_bundler.rpc_fallback.AsyncClient") as mock_client_class:
            mock_client = MagicMock()
            mock_client.send_raw_transaction = AsyncMock(side_effect=RuntimeError("node down"))
            mock_client.close = AsyncMock()
            mock_client_class.return_value = mock_client

            with pytest.raises(RuntimeError, match="node down"):
                await RpcFallbackSender("http://localhost:8899").send(b"signed-tx")

            mock_client.close.assert_awaited_once()


class TestClientScheduling:

    pytestmark = pytest.mark.unit

    @pytest.mark.asyncio
    async def test_rpc_url_becomes_sender(self, client):
        with patch("jito_bundler.rpc_fallback.AsyncClient") as mock_client_class:
            mock_client = MagicMock()
            mock_client.send_raw_transaction = AsyncMock(return_value=MagicMock(value="sig"))
            mock_client.close = AsyncMock()
            mock_client_class.return_value = mock_client

            task = client.schedule_rpc_fallback(b"liq-tx", "http://localhost:8899", 0.01)
            await task

            mock_client.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disabled_delay(self, client):
        assert client.schedule_rpc_fallback(b"liq-tx", AsyncMock(), 0) is None
