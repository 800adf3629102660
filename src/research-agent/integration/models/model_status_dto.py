"""Model status DTO returned by the status and probe endpoints."""

from dataclasses import dataclass

from application.agents.llm_provider import GatewayConfig


@dataclass
class ModelStatusDto:
    """Readiness of the model server as seen by the client."""

    ready: bool
    model: str

    @classmethod
    def from_gateway_config(cls, gateway_config: GatewayConfig) -> "ModelStatusDto":
        return cls(ready=gateway_config.ready, model=gateway_config.model_name)
