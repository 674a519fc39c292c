"""Workflow engine gateways.

The planner compiles instruction sets; a gateway sends them to an engine.
"""

from planner.gateway.base import (
    EngineGateway,
    EngineRejectedError,
    EngineUnavailableError,
    GatewayError,
)
from planner.gateway.http import HttpEngineGateway

__all__ = [
    "EngineGateway",
    "EngineRejectedError",
    "EngineUnavailableError",
    "GatewayError",
    "HttpEngineGateway",
]
