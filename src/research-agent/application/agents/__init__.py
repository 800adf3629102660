"""Agent abstractions for Research Agent.

This package contains:
- Agent base class, configuration and progress events
- LLM provider (Model Gateway) abstractions
- ResearchAgent state machine implementation
"""

from application.agents.agent_config import AgentConfig
from application.agents.base_agent import Agent, AgentError, AgentRunContext, ProgressEvent, ProgressEventType, RunState
from application.agents.llm_provider import (
    GatewayConfig,
    LlmConfig,
    LlmMessage,
    LlmMessageRole,
    LlmProvider,
    LlmProviderError,
    LlmResponse,
    LlmToolCall,
    LlmToolDefinition,
    strip_control_tokens,
)
from application.agents.research_agent import NOT_READY_MESSAGE, ResearchAgent

__all__ = [
    # Agent
    "Agent",
    "AgentConfig",
    "AgentError",
    "AgentRunContext",
    "NOT_READY_MESSAGE",
    "ProgressEvent",
    "ProgressEventType",
    "ResearchAgent",
    "RunState",
    # LLM Provider
    "GatewayConfig",
    "LlmProvider",
    "LlmProviderError",
    "LlmConfig",
    "LlmMessage",
    "LlmMessageRole",
    "LlmResponse",
    "LlmToolCall",
    "LlmToolDefinition",
    "strip_control_tokens",
]
