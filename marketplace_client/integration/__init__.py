"""Backend API integration: request gateway and in-flight request tracking."""

from marketplace_client.integration.gateway import RequestGateway
from marketplace_client.integration.inflight import InFlightTracker

__all__ = ["InFlightTracker", "RequestGateway"]
