"""Model Gateway startup probe.

This module provides a hosted service that checks the model server once on
startup and records the result in the shared ``GatewayConfig``.

Implements HostedService for proper lifecycle management:
- start_async(): Called on application startup to probe the model server
- stop_async(): Called on application shutdown to close HTTP clients

A failed probe does not stop the application: chat requests are refused
with a "not ready" response until an explicit re-check succeeds.
"""

import logging
from typing import TYPE_CHECKING

from neuroglia.hosting.abstractions import HostedService

from application.agents.llm_provider import GatewayConfig, LlmProvider

if TYPE_CHECKING:
    from neuroglia.hosting.web import WebApplicationBuilder

logger = logging.getLogger(__name__)


class ModelGatewayProbe(HostedService):
    """Hosted service that probes the model server on startup.

    The probe is the only writer of ``GatewayConfig``; everything else reads it.
    """

    def __init__(self, llm_provider: LlmProvider) -> None:
        self._llm_provider = llm_provider

    # =========================================================================
    # HostedService Lifecycle Methods
    # =========================================================================

    async def start_async(self) -> None:
        """Probe the model server.

        Called automatically by the Neuroglia host during application startup.
        """
        gateway_config = await self.probe_async()
        if gateway_config.ready:
            logger.info(f"✅ ModelGatewayProbe started: model={gateway_config.model_name}")
        else:
            logger.warning("⚠️ ModelGatewayProbe started: model server not reachable, chat disabled until re-check")

    async def stop_async(self) -> None:
        """Close the provider's HTTP client on shutdown."""
        await self._llm_provider.close()
        logger.info("✅ ModelGatewayProbe stopped")

    async def probe_async(self) -> GatewayConfig:
        """Run the probe now and return the refreshed readiness."""
        return await self._llm_provider.probe()

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def configure(builder: "WebApplicationBuilder", llm_provider: LlmProvider) -> "WebApplicationBuilder":
        """Configure and register the probe service.

        Args:
            builder: WebApplicationBuilder instance for service registration
            llm_provider: The Model Gateway to probe

        Returns:
            The builder instance for fluent chaining
        """
        logger.info("🔧 Configuring ModelGatewayProbe...")

        probe = ModelGatewayProbe(llm_provider)

        # Register as HostedService for lifecycle management (start_async/stop_async)
        builder.services.add_singleton(HostedService, singleton=probe)

        # Also register as singleton so the re-check command can reach it
        builder.services.add_singleton(ModelGatewayProbe, singleton=probe)

        logger.info("✅ ModelGatewayProbe configured")
        return builder
