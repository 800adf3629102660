"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Test configuration and markers
- A scripted Model Gateway that replays canned responses
- Tool fixtures backed by httpx.MockTransport
- Agent factories
"""

import json
from collections.abc import Callable
from typing import Any, Optional

import httpx
import pytest
from _pytest.config import Config

from application.agents.agent_config import AgentConfig
from application.agents.llm_provider import GatewayConfig, LlmConfig, LlmMessage, LlmProvider, LlmResponse, LlmToolCall, LlmToolDefinition
from application.agents.research_agent import ResearchAgent
from application.tools import PageFetchTool, ToolRegistry, WebSearchTool

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (may use external services)")
    config.addinivalue_line("markers", "asyncio: Async tests")


# ============================================================================
# MODEL GATEWAY FIXTURES
# ============================================================================


class ScriptedLlmProvider(LlmProvider):
    """Model Gateway that replays a fixed list of responses (or raises errors).

    Each call records a snapshot of the transcript it was given.
    """

    def __init__(self, script: list[Any], gateway_config: Optional[GatewayConfig] = None) -> None:
        super().__init__(LlmConfig(model="scripted-model"))
        self._script = list(script)
        self._gateway_config = gateway_config or GatewayConfig(ready=True)
        self.calls: list[list[LlmMessage]] = []
        self.tools_seen: list[Optional[list[LlmToolDefinition]]] = []
        self.closed = False

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def chat(self, messages: list[LlmMessage], tools: Optional[list[LlmToolDefinition]] = None) -> LlmResponse:
        self.calls.append(list(messages))
        self.tools_seen.append(tools)
        if not self._script:
            raise AssertionError("Model gateway called more times than scripted")
        step = self._script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    async def probe(self) -> GatewayConfig:
        return self._gateway_config

    async def close(self) -> None:
        self.closed = True


def tool_call_response(*calls: tuple[str, dict[str, Any]], id_prefix: str = "call") -> LlmResponse:
    """Build an assistant response requesting the given tool calls."""
    return LlmResponse(
        content="",
        tool_calls=[LlmToolCall(id=f"{id_prefix}_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)],
        finish_reason="tool_calls",
    )


def final_response(content: str) -> LlmResponse:
    """Build an assistant response carrying final content."""
    return LlmResponse(content=content)


# ============================================================================
# TOOL FIXTURES
# ============================================================================

SEARCH_URL = "http://searxng.test/search"


def searxng_payload(*results: dict[str, Any]) -> dict[str, Any]:
    return {"results": list(results)}


def json_handler(payload: Any, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=json.dumps(payload), headers={"Content-Type": "application/json"})

    return handler


def html_handler(body: str, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body, headers={"Content-Type": "text/html"})

    return handler


def recording_transport(handler: Callable[[httpx.Request], httpx.Response]) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """Wrap a handler so every request it sees is kept for assertions."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return httpx.MockTransport(record), seen


def make_registry(
    search_handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    fetch_handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
) -> ToolRegistry:
    web_search = WebSearchTool(
        search_url=SEARCH_URL,
        transport=httpx.MockTransport(search_handler or json_handler(searxng_payload())),
    )
    page_fetch = PageFetchTool(
        user_agent="Mozilla/5.0 (compatible; ResearchAgent/1.0)",
        transport=httpx.MockTransport(fetch_handler or html_handler("<p>empty</p>")),
    )
    return ToolRegistry([web_search, page_fetch])


def make_agent(
    script: list[Any],
    registry: Optional[ToolRegistry] = None,
    max_iterations: int = 8,
    ready: bool = True,
) -> tuple[ResearchAgent, ScriptedLlmProvider]:
    gateway_config = GatewayConfig(ready=ready, model_name="test-model")
    provider = ScriptedLlmProvider(script, gateway_config)
    config = AgentConfig(system_prompt="Only state facts from retrieved results.", max_iterations=max_iterations)
    agent = ResearchAgent(provider, gateway_config, registry or make_registry(), config)
    return agent, provider


async def collect(agent: ResearchAgent, message: str) -> list[dict[str, Any]]:
    """Run the agent to completion and return the wire shape of every event."""
    return [event.to_dict() async for event in agent.run_stream(message)]


@pytest.fixture
def gateway_config() -> GatewayConfig:
    """A gateway that answered its probe."""
    return GatewayConfig(ready=True, model_name="test-model")
