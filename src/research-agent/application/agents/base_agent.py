"""Base Agent abstraction for Research Agent.

This module defines the abstract Agent interface and associated types
for driving a chat-completion model through tool calls.

Design Principles:
- Interface-based design for different agent implementations
- Event-driven communication: agents yield progress events, transports relay them
- Per-run state owned by a single run and never shared
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from application.agents.agent_config import AgentConfig
from application.agents.llm_provider import GatewayConfig, LlmMessage, LlmProvider

logger = logging.getLogger(__name__)


class ProgressEventType(str, Enum):
    """Types of events emitted to the client during a research run."""

    # Tool events
    SEARCH_START = "search_start"
    SEARCH_RESULTS = "search_results"
    FETCH_START = "fetch_start"
    FETCH_RESULTS = "fetch_results"

    # Answer events
    STREAM = "stream"

    # Terminal events
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({ProgressEventType.DONE, ProgressEventType.ERROR})


@dataclass(frozen=True)
class ProgressEvent:
    """An event emitted by an agent during execution.

    Attributes:
        type: Type of the event
        data: Event-specific payload (query, results, url, content or message)
    """

    type: ProgressEventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape ``{"type": ..., **payload}``."""
        return {"type": self.type.value, **self.data}

    @classmethod
    def stream(cls, content: str) -> "ProgressEvent":
        return cls(ProgressEventType.STREAM, {"content": content})

    @classmethod
    def done(cls, content: str) -> "ProgressEvent":
        return cls(ProgressEventType.DONE, {"content": content})

    @classmethod
    def error(cls, message: str) -> "ProgressEvent":
        return cls(ProgressEventType.ERROR, {"message": message})


class RunState(str, Enum):
    """States of a single research run."""

    SEEDED = "seeded"
    AWAITING_MODEL = "awaiting_model"
    TOOL_DISPATCH = "tool_dispatch"
    DONE = "done"
    EXHAUSTED = "exhausted"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.EXHAUSTED, RunState.ERROR)


class AgentError(Exception):
    """Error during agent execution.

    Attributes:
        message: Human-readable error message
        error_code: Categorized error code
        is_retryable: Whether the operation might succeed on retry
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        error_code: str = "agent_error",
        is_retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.is_retryable = is_retryable
        self.details = details or {}


@dataclass
class AgentRunContext:
    """State of one research run.

    Created when a request arrives and discarded when its stream closes.
    The transcript is append-only: messages are added, never replaced.

    Attributes:
        user_message: The user's input message
        transcript: Messages exchanged with the model so far
        state: Current state of the run
        round_trips: Number of model calls made
        pending_tool_calls: Tool calls awaiting dispatch (set in TOOL_DISPATCH)
        final_content: Answer content once the run reaches a terminal state
        error: Failure details when the run ends in ERROR
    """

    user_message: str
    transcript: list[LlmMessage] = field(default_factory=list)
    state: RunState = RunState.SEEDED
    round_trips: int = 0
    pending_tool_calls: list[Any] = field(default_factory=list)
    final_content: str | None = None
    error: AgentError | None = None

    def append(self, message: LlmMessage) -> None:
        self.transcript.append(message)


class Agent(ABC):
    """Abstract base class for AI agents.

    An Agent orchestrates the interaction between a user, an LLM, and tools
    to accomplish tasks, yielding progress events as it goes.

    Implementations:
    - ResearchAgent: Bounded search/fetch loop with a state machine

    Usage:
        agent = ResearchAgent(llm_provider, gateway_config, tool_registry, config)
        async for event in agent.run_stream("What's the weather in Paris today?"):
            handle_event(event)
    """

    def __init__(
        self,
        llm_provider: LlmProvider,
        gateway_config: GatewayConfig,
        config: AgentConfig | None = None,
    ) -> None:
        """Initialize the agent.

        Args:
            llm_provider: The LLM provider to use for inference
            gateway_config: Shared readiness of the model endpoint
            config: Agent configuration (uses defaults if None)
        """
        self._llm = llm_provider
        self._gateway_config = gateway_config
        self._config = config or AgentConfig.default()

    @property
    def config(self) -> AgentConfig:
        """Get the agent configuration."""
        return self._config

    @property
    def is_ready(self) -> bool:
        """Whether the model endpoint answered the last probe."""
        return self._gateway_config.ready

    @abstractmethod
    def run_stream(self, user_message: str) -> AsyncIterator[ProgressEvent]:
        """Run the agent on a user request with streaming events.

        This method is an async generator - implementations should use
        `async def` with `yield` statements. The last event is always
        terminal (``done`` or ``error``).

        Args:
            user_message: The user's request text

        Yields:
            Events as the agent executes
        """
        raise NotImplementedError

    def _build_messages(self, user_message: str) -> list[LlmMessage]:
        """Build the seed transcript: one system message and one user message."""
        return [
            LlmMessage.system(self._config.system_prompt),
            LlmMessage.user(user_message),
        ]
