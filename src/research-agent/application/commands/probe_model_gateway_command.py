"""Probe model gateway command with handler.

Re-runs the startup probe on demand, so a model server started after the
service can be picked up without a restart.
"""

import logging
from dataclasses import dataclass

from neuroglia.core import OperationResult
from neuroglia.mediation import Command, CommandHandler

from infrastructure.model_gateway_probe import ModelGatewayProbe
from integration.models import ModelStatusDto

log = logging.getLogger(__name__)


@dataclass
class ProbeModelGatewayCommand(Command[OperationResult[ModelStatusDto]]):
    """Command to re-check the model server's availability."""


class ProbeModelGatewayCommandHandler(CommandHandler[ProbeModelGatewayCommand, OperationResult[ModelStatusDto]]):
    """Handle an explicit gateway re-check."""

    def __init__(self, probe: ModelGatewayProbe) -> None:
        super().__init__()
        self._probe = probe

    async def handle_async(self, request: ProbeModelGatewayCommand) -> OperationResult[ModelStatusDto]:
        """Handle probe model gateway command."""
        gateway_config = await self._probe.probe_async()
        log.info(f"Model gateway re-check: ready={gateway_config.ready}, model={gateway_config.model_name}")
        return self.ok(ModelStatusDto.from_gateway_config(gateway_config))
