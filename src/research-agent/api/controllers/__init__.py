"""API controllers for Research Agent.

Controllers are auto-discovered by WebApplicationBuilder from this package.
"""

from api.controllers.ai_controller import AiController

__all__ = [
    "AiController",
]
