"""Infrastructure layer for Research Agent.

Contains:
- adapters/: External service adapters (OpenAI-compatible model server)
- model_gateway_probe.py: Startup readiness probe (HostedService)
"""

from infrastructure.adapters.openai_compatible_provider import OpenAiCompatibleLlmProvider
from infrastructure.model_gateway_probe import ModelGatewayProbe

__all__ = [
    # LLM Adapters
    "OpenAiCompatibleLlmProvider",
    # Hosted services
    "ModelGatewayProbe",
]
