"""Infrastructure adapters for Research Agent."""

from infrastructure.adapters.openai_compatible_provider import OpenAiCompatibleLlmProvider, display_name_from_model_id

__all__ = [
    "OpenAiCompatibleLlmProvider",
    "display_name_from_model_id",
]
