"""LLM Provider abstraction for Research Agent.

This module defines the Model Gateway contract used by the research loop:
a transcript plus tool declarations go in, an assistant response comes out.
Concrete gateways live in ``infrastructure.adapters``.

Design Principles:
- Interface-based design so the agent never touches HTTP directly
- Dataclasses for configuration and message structures
- Tool/function calling support as first-class citizen
- A single error type for every gateway failure
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Unified Error Handling
# =============================================================================


class LlmProviderError(Exception):
    """Base error class for all Model Gateway errors.

    Any non-success response, transport failure or malformed payload from the
    chat-completion endpoint surfaces as this error. The agent treats it as
    fatal for the current run.

    Attributes:
        message: Human-readable error message
        error_code: Categorized error code for programmatic handling
        provider: The provider that raised the error
        is_retryable: Whether the operation might succeed on retry
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        provider: str,
        is_retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.provider = provider
        self.is_retryable = is_retryable
        self.details = details or {}

    def __repr__(self) -> str:
        return f"LlmProviderError({self.provider}:{self.error_code}: {self.message})"


# =============================================================================
# Gateway Readiness
# =============================================================================


@dataclass
class GatewayConfig:
    """Readiness of the model endpoint, shared read-only across runs.

    Written only by the startup probe (and explicit re-checks). Agents and
    controllers read it to decide whether a run may start.

    Attributes:
        ready: Whether the model endpoint answered the last probe
        model_name: Display name discovered from the endpoint's model list
    """

    ready: bool = False
    model_name: str = "gpt-oss"


# =============================================================================
# Transcript Types
# =============================================================================


class LlmMessageRole(str, Enum):
    """Role of a message in the LLM conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class LlmToolCall:
    """A tool call requested by the LLM.

    Attributes:
        id: Unique identifier for this tool call (for matching with results)
        name: Name of the tool to call
        arguments: Arguments to pass to the tool (as dict)
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LlmMessage:
    """A message in the LLM conversation.

    Messages are frozen: once appended to a transcript they are never mutated.

    Attributes:
        role: Role of the message sender
        content: Text content of the message
        tool_calls: Optional list of tool calls (assistant messages only)
        tool_call_id: Optional ID linking to a tool call (tool messages only)
    """

    role: LlmMessageRole
    content: str
    tool_calls: Optional[tuple[LlmToolCall, ...]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "LlmMessage":
        """Create a system message."""
        return cls(role=LlmMessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "LlmMessage":
        """Create a user message."""
        return cls(role=LlmMessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Optional[list[LlmToolCall]] = None,
    ) -> "LlmMessage":
        """Create an assistant message."""
        return cls(
            role=LlmMessageRole.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> "LlmMessage":
        """Create a tool result message."""
        return cls(role=LlmMessageRole.TOOL, content=content, tool_call_id=tool_call_id)


@dataclass
class LlmResponse:
    """Response from an LLM.

    Attributes:
        content: Text content of the response (may be empty when tools are requested)
        tool_calls: Optional list of tool calls requested
        finish_reason: Why the response ended (stop, tool_calls, length, etc.)
        usage: Optional token usage statistics
    """

    content: str
    tool_calls: Optional[list[LlmToolCall]] = None
    finish_reason: str = "stop"
    usage: Optional[dict[str, int]] = None

    @property
    def has_tool_calls(self) -> bool:
        """Check if response contains tool calls."""
        return bool(self.tool_calls)


@dataclass(frozen=True)
class LlmToolDefinition:
    """Definition of a tool that can be called by the LLM.

    Attributes:
        name: Unique name of the tool
        description: Human-readable description of what the tool does
        parameters: JSON Schema defining the tool's parameters
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class LlmConfig:
    """Configuration for an LLM provider.

    Attributes:
        model: Model identifier sent with every request
        temperature: Sampling temperature (0.0 = deterministic, 1.0 = creative)
        max_tokens: Maximum tokens to generate (None = model default)
        timeout: Request timeout in seconds
        base_url: Base URL for the API
        api_key: API key (if applicable)
        extra: Provider-specific extra configuration
    """

    model: str
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    timeout: float = 120.0
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Control Token Sanitizing
# =============================================================================

_FINAL_CHANNEL_PATTERN = re.compile(r"<\|channel\|>final<\|message\|>(.*?)(?:<\|end\|>|$)", re.DOTALL)
_CONTROL_TOKEN_PATTERN = re.compile(r"<\|[^|]+\|>")


def strip_control_tokens(content: str) -> str:
    """Remove model-internal channel markers from assistant content.

    Some open-weight models wrap their answer in channel markup such as
    ``<|channel|>analysis<|message|>...<|end|><|channel|>final<|message|>...``.
    When a final channel is present only its text is kept; any remaining
    ``<|...|>`` token is then dropped.
    """
    if not content:
        return ""
    match = _FINAL_CHANNEL_PATTERN.search(content)
    if match:
        content = match.group(1).strip()
    return _CONTROL_TOKEN_PATTERN.sub("", content).strip()


class LlmProvider(ABC):
    """Abstract base class for Model Gateways.

    Implementations:
    - OpenAiCompatibleLlmProvider: OpenAI-compatible REST endpoints (LM Studio, vLLM, ...)

    Usage:
        provider = OpenAiCompatibleLlmProvider(config, gateway_config)
        response = await provider.chat(transcript, tools=declarations)
    """

    def __init__(self, config: LlmConfig) -> None:
        """Initialize the LLM provider.

        Args:
            config: Provider configuration
        """
        self._config = config

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider identifier used in errors and metrics."""
        pass

    @property
    def config(self) -> LlmConfig:
        """Get the provider configuration."""
        return self._config

    @property
    def model(self) -> str:
        """Get the model identifier."""
        return self._config.model

    @abstractmethod
    async def chat(
        self,
        messages: list[LlmMessage],
        tools: Optional[list[LlmToolDefinition]] = None,
    ) -> LlmResponse:
        """Send a chat completion request.

        Args:
            messages: The full transcript so far
            tools: The tool declarations offered to the model

        Returns:
            Either tool calls with empty/placeholder content, or final content

        Raises:
            LlmProviderError: On any non-success response or transport failure
        """
        pass

    @abstractmethod
    async def probe(self) -> GatewayConfig:
        """Check the endpoint and refresh the shared readiness object.

        Never raises; failures leave ``ready`` unset.

        Returns:
            The refreshed gateway readiness
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the provider."""
        pass

    async def __aenter__(self) -> "LlmProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
