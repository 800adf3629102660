"""Application commands package.

All commands are re-exported here for Neuroglia framework auto-discovery.
"""

from .probe_model_gateway_command import ProbeModelGatewayCommand, ProbeModelGatewayCommandHandler

__all__ = [
    "ProbeModelGatewayCommand",
    "ProbeModelGatewayCommandHandler",
]
