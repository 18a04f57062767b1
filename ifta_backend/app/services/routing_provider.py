"""
Truck Routing Provider client (HERE Routing API v8).

Requests truck routes with per-span state annotations. The call has a hard
total timeout and is never retried here; callers retry by issuing a new
request.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ifta_backend.app.core.config import settings
from ifta_backend.app.core.exceptions import RoutingConfigurationError, RoutingProviderUnavailableError
from ifta_backend.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger("ifta.routing")


class ProviderTimeoutError(Exception):
    """The provider did not answer within the configured timeout."""


class ProviderResponseError(Exception):
    """The provider answered with an HTTP error or an undecodable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


routing_circuit_breaker = CircuitBreaker(
    failure_threshold=settings.provider_failure_threshold,
    reset_timeout=settings.provider_reset_timeout_seconds,
    counted_exceptions=(ProviderTimeoutError, RoutingProviderUnavailableError),
    name="here-routing",
)


class HereRoutingProvider:
    """
    HERE Routing v8 client.

    `route()` returns the decoded JSON body; interpreting it is the span
    parser's job.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://router.hereapi.com/v8/routes",
        timeout_seconds: float = 15.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise RoutingConfigurationError()
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.circuit_breaker = circuit_breaker or routing_circuit_breaker
        self.transport = transport

    def build_params(self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> Dict[str, str]:
        return {
            "apiKey": self.api_key,
            "origin": f"{origin_lat},{origin_lng}",
            "destination": f"{dest_lat},{dest_lng}",
            "transportMode": "truck",
            "routingMode": "fast",
            "units": "imperial",
            "return": "summary",
            "spans": "stateCode,length",
            "truck[trailerCount]": "1",
        }

    async def route(self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> Dict[str, Any]:
        """
        Request a truck route.

        Raises:
            ProviderTimeoutError: No answer within the timeout
            ProviderResponseError: HTTP error status or invalid JSON
            RoutingProviderUnavailableError: Network failure or open circuit
        """
        params = self.build_params(origin_lat, origin_lng, dest_lat, dest_lng)
        logger.info("Requesting truck route %s -> %s", params["origin"], params["destination"])

        try:
            return await self.circuit_breaker.call(self._fetch, params)
        except CircuitOpenError as exc:
            raise RoutingProviderUnavailableError(str(exc)) from exc

    async def _fetch(self, params: Dict[str, str]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            try:
                response = await asyncio.wait_for(
                    client.get(self.base_url, params=params),
                    timeout=self.timeout_seconds,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
                logger.warning("Routing provider timed out after %ss", self.timeout_seconds)
                raise ProviderTimeoutError(f"No response within {self.timeout_seconds}s") from exc
            except httpx.TransportError as exc:
                logger.error("Routing provider unreachable: %s", exc)
                raise RoutingProviderUnavailableError(f"Routing provider unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("Routing provider error %s: %s", response.status_code, response.text[:200])
            raise ProviderResponseError(
                f"Routing provider returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderResponseError("Routing provider returned invalid JSON", response.status_code) from exc

        if not isinstance(body, dict):
            raise ProviderResponseError("Routing provider returned a non-object JSON body", response.status_code)
        return body
