"""Shared pieces for the research tools.

Tools never raise past their boundary: every failure is rendered as text
and handed back to the model as a normal tool result.
"""

import html
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx

from application.agents.base_agent import ProgressEvent
from application.agents.llm_provider import LlmToolDefinition
from observability import tool_execution_errors


def extract_text_from_html(html_content: str) -> str:
    """Extract plain text from HTML content."""
    text = re.sub(r"<script[^>]*>.*?</script>", "", html_content, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<style[^>]*>.*?</style>", "", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


class ResearchTool(ABC):
    """A capability the model can invoke during a research run.

    Subclasses declare their name, description and JSON Schema parameters,
    execute against an upstream HTTP service, and describe the progress
    events that bracket each execution.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    failure_label: str = "Tool failed"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialize the tool.

        Args:
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self._transport = transport

    @property
    def definition(self) -> LlmToolDefinition:
        """Get the declaration offered to the model."""
        return LlmToolDefinition(name=self.name, description=self.description, parameters=self.parameters)

    def _create_client(self, timeout: float, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport, **kwargs)

    def _failed(self, text: str, reason: str) -> str:
        tool_execution_errors.add(1, {"tool_name": self.name, "reason": reason})
        return text

    def unexpected_failure(self, error: Exception) -> str:
        """Render an exception that escaped `execute` as a tool result."""
        return self._failed(f"{self.failure_label}: {str(error) or type(error).__name__}", "unexpected_error")

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> str:
        """Run the tool and return its textual result (or error text)."""
        pass

    @abstractmethod
    def start_event(self, arguments: dict[str, Any]) -> ProgressEvent:
        """Build the event emitted immediately before execution."""
        pass

    @abstractmethod
    def results_event(self, arguments: dict[str, Any], result: str) -> ProgressEvent:
        """Build the event emitted immediately after execution."""
        pass
