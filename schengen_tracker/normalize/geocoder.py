"""Reverse-geocoding providers: coordinates → country."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from schengen_tracker.config import GEOCODE_TIMEOUT_SECONDS, GEOCODE_URL, GEOCODE_USER_AGENT
from schengen_tracker.errors import GeocodeFailure
from schengen_tracker.models import Coordinate, Country
from schengen_tracker.normalize.countries import name_for

logger = logging.getLogger(__name__)


class ReverseGeocoder(ABC):
    """Provider contract. Return None when the point is not in any country."""

    @abstractmethod
    async def reverse(self, coordinate: Coordinate) -> Optional[Country]:
        ...


class NominatimGeocoder(ReverseGeocoder):
    """OpenStreetMap Nominatim-compatible /reverse endpoint."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        url: str = GEOCODE_URL,
        user_agent: str = GEOCODE_USER_AGENT,
    ):
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=GEOCODE_TIMEOUT_SECONDS)
        self._url = url
        self._user_agent = user_agent

    async def reverse(self, coordinate: Coordinate) -> Optional[Country]:
        params = {
            "format": "jsonv2",
            "lat": f"{coordinate.lat:.6f}",
            "lon": f"{coordinate.lng:.6f}",
            "zoom": 3,  # country level
        }
        try:
            response = await self._client.get(
                self._url,
                params=params,
                headers={"User-Agent": self._user_agent, "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise GeocodeFailure(f"Reverse geocoding request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise GeocodeFailure(f"Reverse geocoding failed ({response.status_code})")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocodeFailure("Reverse geocoding returned invalid JSON") from exc

        if not isinstance(payload, dict) or "error" in payload:
            # Open sea, poles, etc.
            return None

        address = payload.get("address") or {}
        code = (address.get("country_code") or "").strip().upper()
        if len(code) != 2:
            return None
        name = name_for(code) or address.get("country") or code
        return Country(code, name)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
