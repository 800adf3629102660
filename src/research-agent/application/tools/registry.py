"""Registry of the tools offered to the model during a research run."""

import logging
import time
from typing import TYPE_CHECKING, Any, Optional

from jsonschema import Draft7Validator
from opentelemetry import trace

from application.agents.llm_provider import LlmToolDefinition
from application.tools.base import ResearchTool
from observability import tool_execution_count, tool_execution_time

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ToolRegistry:
    """Owns the fixed tool set and its declarations.

    The declaration list is built once and never mutated, so the same
    declarations are presented to the model on every request of every run.
    """

    def __init__(self, tools: list[ResearchTool]) -> None:
        self._tools: dict[str, ResearchTool] = {tool.name: tool for tool in tools}
        self._definitions = tuple(tool.definition for tool in tools)
        self._validators = {tool.name: Draft7Validator(tool.parameters) for tool in tools}

    @property
    def definitions(self) -> list[LlmToolDefinition]:
        """Get the tool declarations in registration order."""
        return list(self._definitions)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ResearchTool]:
        """Get a tool by name, or None when the model asked for something unknown."""
        return self._tools.get(name)

    def validate_arguments(self, name: str, arguments: dict[str, Any]) -> list[str]:
        """Validate arguments against the tool's JSON Schema.

        Returns:
            Up to five ``path: message`` strings; empty when arguments are valid
        """
        errors = list(self._validators[name].iter_errors(arguments))
        messages = []
        for error in errors[:5]:
            path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
            messages.append(f"{path}: {error.message}")
        return messages

    async def execute(self, tool: ResearchTool, arguments: dict[str, Any]) -> str:
        """Execute a tool, recording timing and counts."""
        start_time = time.time()
        with tracer.start_as_current_span(f"tool.{tool.name}") as span:
            span.set_attribute("tool.name", tool.name)
            try:
                result = await tool.execute(arguments)
            except Exception as e:
                logger.exception(f"Tool {tool.name} raised unexpectedly: {e}")
                span.set_attribute("error", True)
                result = tool.unexpected_failure(e)
            duration_ms = (time.time() - start_time) * 1000
            span.set_attribute("tool.result_length", len(result))

        tool_execution_count.add(1, {"tool_name": tool.name})
        tool_execution_time.record(duration_ms, {"tool_name": tool.name})
        logger.info(f"Tool {tool.name} finished in {duration_ms:.0f}ms ({len(result)} chars)")
        return result

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> "ToolRegistry":
        """Create the web search and page fetch tools and register them as singletons.

        Args:
            builder: The application builder

        Returns:
            The configured registry
        """
        from application.settings import app_settings
        from application.tools.page_fetch import PageFetchTool
        from application.tools.web_search import WebSearchTool

        web_search = WebSearchTool(
            search_url=app_settings.search_url,
            language=app_settings.search_language,
            timeout=app_settings.search_timeout,
            max_results=app_settings.search_max_results,
        )
        page_fetch = PageFetchTool(
            user_agent=app_settings.fetch_user_agent,
            timeout=app_settings.fetch_timeout,
            max_chars=app_settings.fetch_max_chars,
            preview_chars=app_settings.fetch_preview_chars,
        )
        registry = ToolRegistry([web_search, page_fetch])

        builder.services.add_singleton(WebSearchTool, singleton=web_search)
        builder.services.add_singleton(PageFetchTool, singleton=page_fetch)
        builder.services.add_singleton(ToolRegistry, singleton=registry)

        logger.info(f"Configured ToolRegistry: tools={registry.tool_names}, search_url={app_settings.search_url}")
        return registry
