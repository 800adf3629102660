"""Query for the model server's readiness and display name."""

import logging
from dataclasses import dataclass

from neuroglia.core import OperationResult
from neuroglia.mediation import Query, QueryHandler

from application.agents.llm_provider import GatewayConfig
from integration.models import ModelStatusDto

logger = logging.getLogger(__name__)


@dataclass
class GetModelStatusQuery(Query[OperationResult[ModelStatusDto]]):
    """Query to read the current gateway readiness without probing."""


class GetModelStatusQueryHandler(QueryHandler[GetModelStatusQuery, OperationResult[ModelStatusDto]]):
    """Handler for GetModelStatusQuery."""

    def __init__(self, gateway_config: GatewayConfig) -> None:
        super().__init__()
        self._gateway_config = gateway_config

    async def handle_async(self, query: GetModelStatusQuery) -> OperationResult[ModelStatusDto]:
        return self.ok(ModelStatusDto.from_gateway_config(self._gateway_config))
