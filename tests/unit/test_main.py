"""Unit tests for the process entry point."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config import Settings
from src.main import run


@pytest.fixture
def servers():
    with (
        patch("src.main.setup_logging"),
        patch("src.main.uvicorn.Config") as config_cls,
        patch("src.main.uvicorn.Server") as server_cls,
    ):
        server_cls.return_value.serve = AsyncMock()
        yield config_cls, server_cls


class TestRun:
    @pytest.mark.asyncio
    async def test_serves_api_and_terminal_listeners(self, servers, monkeypatch):
        monkeypatch.delenv("TERMINAL_PORT", raising=False)
        config_cls, server_cls = servers

        await run(Settings(api_port=6000))

        ports = [call.kwargs["port"] for call in config_cls.call_args_list]
        assert ports == [6000, 6001]
        assert server_cls.return_value.serve.await_count == 2

    @pytest.mark.asyncio
    async def test_logs_configuration_summary(self, servers):
        logger = MagicMock()
        with patch("src.main.logger", logger):
            await run(Settings(k8s_namespace="runners"))

        fields = next(
            call.kwargs for call in logger.info.call_args_list if call.args[:1] == ("Starting with configuration",)
        )
        assert fields["kubernetes"]["namespace"] == "runners"

    @pytest.mark.asyncio
    async def test_invalid_configuration_exits(self, servers, monkeypatch):
        monkeypatch.setenv("TERMINAL_PORT", "6000")
        _, server_cls = servers

        with pytest.raises(SystemExit):
            await run(Settings(api_port=6000))

        server_cls.assert_not_called()
