"""Unit tests for the model status query and probe command handlers."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from application.agents.llm_provider import GatewayConfig
from application.commands import ProbeModelGatewayCommand, ProbeModelGatewayCommandHandler
from application.queries import GetModelStatusQuery, GetModelStatusQueryHandler
from integration.models import ModelStatusDto


class TestGetModelStatusQueryHandler:
    """Reading status never probes."""

    @pytest.mark.asyncio
    async def test_returns_current_status(self, gateway_config: GatewayConfig) -> None:
        handler = GetModelStatusQueryHandler(gateway_config)

        result = await handler.handle_async(GetModelStatusQuery())

        assert result.is_success
        assert result.data == ModelStatusDto(ready=True, model="test-model")

    @pytest.mark.asyncio
    async def test_not_ready(self) -> None:
        handler = GetModelStatusQueryHandler(GatewayConfig())

        result = await handler.handle_async(GetModelStatusQuery())

        assert result.data == ModelStatusDto(ready=False, model="gpt-oss")


class TestProbeModelGatewayCommandHandler:
    """An explicit re-check runs the probe and reports its outcome."""

    @pytest.mark.asyncio
    async def test_reprobes(self) -> None:
        probe = MagicMock()
        probe.probe_async = AsyncMock(return_value=GatewayConfig(ready=True, model_name="gpt-oss-20b"))
        handler = ProbeModelGatewayCommandHandler(probe)

        result = await handler.handle_async(ProbeModelGatewayCommand())

        probe.probe_async.assert_awaited_once()
        assert result.is_success
        assert result.data == ModelStatusDto(ready=True, model="gpt-oss-20b")
