"""Research Agent main application entry point with Neuroglia framework."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from neuroglia.hosting.web import SubAppConfig, WebApplicationBuilder
from neuroglia.mapping import Mapper
from neuroglia.mediation import Mediator
from neuroglia.serialization.json import JsonSerializer

from application.agents.research_agent import ResearchAgent
from application.settings import app_settings, configure_logging
from application.tools.registry import ToolRegistry
from infrastructure.adapters.openai_compatible_provider import OpenAiCompatibleLlmProvider
from infrastructure.model_gateway_probe import ModelGatewayProbe

configure_logging(log_level=app_settings.log_level)
log = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the Research Agent application.

    Creates one API sub-app (/api prefix) exposing the research chat stream
    and the model status endpoints.

    Returns:
        Configured FastAPI application with Neuroglia framework
    """
    log.debug("🚀 Creating Research Agent application...")

    builder = WebApplicationBuilder(app_settings=app_settings)

    # Configure core Neuroglia services
    Mediator.configure(builder, ["application.commands", "application.queries"])
    Mapper.configure(builder, ["application.commands", "application.queries", "integration.models"])
    JsonSerializer.configure(builder, ["integration.models"])

    # Configure infrastructure services
    _configure_infrastructure_services(builder)

    builder.add_sub_app(
        SubAppConfig(
            path="/api",
            name="api",
            title=f"{app_settings.app_name} API",
            description="Research chat over Server-Sent Events with web search and page fetch tools",
            version=app_settings.app_version,
            controllers=["api.controllers"],
            docs_url="/docs",
        )
    )

    # Build the application
    app = builder.build_app_with_lifespan(
        title="Research Agent",
        description="Tool-augmented chat orchestrator for a local model server",
        version=app_settings.app_version,
        debug=app_settings.debug,
    )

    if app_settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    log.info("✅ Research Agent application created successfully!")
    log.info("📊 Access points:")
    log.info(f"   - Chat: POST http://localhost:{app_settings.app_port}/api/ai/chat")
    log.info(f"   - API Docs: http://localhost:{app_settings.app_port}/api/docs")
    return app


def _configure_infrastructure_services(builder: WebApplicationBuilder) -> None:
    """Configure infrastructure services in the DI container.

    Args:
        builder: The WebApplicationBuilder
    """
    log.info("🔧 Configuring infrastructure services...")

    # ==========================================================================
    # Model Gateway (OpenAI-compatible model server) + shared GatewayConfig
    # ==========================================================================
    llm_provider = OpenAiCompatibleLlmProvider.configure(builder)

    # ==========================================================================
    # Startup probe (HostedService)
    # ==========================================================================
    # Discovers the served model and marks the gateway ready; chat requests
    # are refused with 503 until it succeeds.
    ModelGatewayProbe.configure(builder, llm_provider)

    # ==========================================================================
    # Tools and Agent
    # ==========================================================================
    ToolRegistry.configure(builder)
    ResearchAgent.configure(builder)

    log.info("✅ Infrastructure services configured")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:create_app",
        factory=True,
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=app_settings.debug,
    )
