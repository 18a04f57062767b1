"""
Service dependencies for FastAPI.

Tests override these to inject fake routing providers.
"""

from ifta_backend.app.core.config import settings
from ifta_backend.app.services.leg_tracker import TripLegTracker
from ifta_backend.app.services.routing_provider import HereRoutingProvider


def get_routing_provider() -> HereRoutingProvider:
    """
    Build the HERE routing client from settings.
    
    Raises:
        RoutingConfigurationError: HERE_API_KEY is not set
    """
    return HereRoutingProvider(
        api_key=settings.here_api_key,
        base_url=settings.here_routing_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )


def get_leg_tracker() -> TripLegTracker:
    """Trip leg tracker configured from settings."""
    return TripLegTracker()
