"""AI controller: research chat over Server-Sent Events and model status."""

import logging
from typing import Any

from classy_fastapi.decorators import get, post
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from neuroglia.dependency_injection import ServiceProviderBase
from neuroglia.mapping import Mapper
from neuroglia.mediation import Mediator
from neuroglia.mvc import ControllerBase
from pydantic import BaseModel, Field

from application.agents import NOT_READY_MESSAGE, GatewayConfig, ResearchAgent
from application.commands import ProbeModelGatewayCommand
from application.queries import GetModelStatusQuery
from application.services import SSE_HEADERS, ChatStreamRelay
from observability import chat_requests

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    """Request body for a research chat."""

    message: str = Field(..., min_length=1, description="The user's question")


class ModelStatusResponse(BaseModel):
    """Response describing the model server's readiness."""

    ready: bool
    model: str


class AiController(ControllerBase):
    """Controller for the research assistant endpoints."""

    def __init__(self, service_provider: ServiceProviderBase, mapper: Mapper, mediator: Mediator):
        super().__init__(service_provider, mapper, mediator)

    @post("/chat")
    async def chat(self, request: ChatRequest, fastapi_request: Request) -> Any:
        """
        Ask the research assistant a question.

        **Output:** a `text/event-stream` of `data: <json>` frames, each with a
        `type` of `search_start`, `search_results`, `fetch_start`,
        `fetch_results`, `stream`, and finally `done` or `error`.

        Returns 503 when the model server has not answered the startup probe.
        """
        if not request.message.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message required")

        chat_requests.add(1)

        gateway_config = self.service_provider.get_required_service(GatewayConfig)
        if not gateway_config.ready:
            logger.warning("Chat request refused: model server not ready")
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"message": NOT_READY_MESSAGE})

        agent = self.service_provider.get_required_service(ResearchAgent)
        relay = ChatStreamRelay(is_disconnected=fastapi_request.is_disconnected)

        return StreamingResponse(
            relay.stream(agent.run_stream(request.message)),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @get("/status", response_model=ModelStatusResponse)
    async def get_status(self) -> Any:
        """Get whether the model server is ready and the discovered model name."""
        return self.process(await self.mediator.execute_async(GetModelStatusQuery()))

    @post("/probe", response_model=ModelStatusResponse)
    async def probe(self) -> Any:
        """Re-check the model server now and return the refreshed status."""
        return self.process(await self.mediator.execute_async(ProbeModelGatewayCommand()))
