"""Agent configuration for Research Agent.

This module defines the configuration dataclass for agents: the system
prompt, the iteration budget and the fallback answer used when the budget
runs out.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for an Agent.

    Attributes:
        name: Human-readable name for the agent
        system_prompt: The behavioral rules sent as the first transcript message
        max_iterations: Maximum number of model round-trips in a single run
        exhausted_message: Final answer when the budget is used up without one
    """

    # Identity
    name: str = "research-assistant"

    # System prompt - defines the agent's behavior
    system_prompt: str = """You are a helpful assistant with web browsing capability.
Use web_search to find information and fetch_url to read a page when search results are not enough.
Only state facts present in the results you retrieved, and say so honestly when you cannot find the answer."""

    # Iteration limits (safety bounds)
    max_iterations: int = 8

    exhausted_message: str = "I've searched multiple times but couldn't find a complete answer."

    @classmethod
    def default(cls) -> "AgentConfig":
        """Create a default agent configuration."""
        return cls()
