"""Locations the weather is fetched for."""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

import requests

from settings import Settings
from weather_provider import Coordinates, MalformedResponseError, NetworkError


class LocationProviderBase(ABC):
    """Source of coordinates for one location entry."""

    name: str = ""

    @abstractmethod
    async def coordinates(self) -> Coordinates:
        """
        Resolve the coordinates to fetch weather for.

        Raises:
            NetworkError: If a lookup was needed and failed
        """


class FixedLocation(LocationProviderBase):
    """A user-selected place with known coordinates."""

    def __init__(self, name: str, lat: float, lon: float):
        if not -90 <= lat <= 90 or not -180 <= lon <= 180:
            raise ValueError(f"Invalid coordinates: {lat}, {lon}")
        self.name = name
        self.lat = lat
        self.lon = lon

    async def coordinates(self) -> Coordinates:
        return self.lat, self.lon

    def __eq__(self, other):
        if not isinstance(other, FixedLocation):
            return NotImplemented
        return (self.name, self.lat, self.lon) == (other.name, other.lat, other.lon)

    def __repr__(self):
        return f"FixedLocation({self.name!r}, {self.lat}, {self.lon})"


class IpLocation(LocationProviderBase):
    """
    Best-effort device location from an IP geolocation service.

    The result is cached for `refresh_minutes`; when a later lookup fails
    the cached position keeps being used.
    """

    URL = "https://ipinfo.io/json"

    def __init__(
        self,
        refresh_minutes: float = 30.0,
        timeout: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = "My Location"
        self.refresh_minutes = refresh_minutes
        self.timeout = timeout
        self._clock = clock
        self._cached: Optional[Coordinates] = None
        self._cached_at: Optional[float] = None
        self.city = "Unknown"
        self.country = "Unknown"

    def _lookup(self) -> dict:
        logging.info(f"Looking up device location: {self.URL}")
        response = requests.get(self.URL, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _is_fresh(self) -> bool:
        if self._cached is None or self._cached_at is None:
            return False
        return self._clock() - self._cached_at < self.refresh_minutes * 60

    async def coordinates(self) -> Coordinates:
        if self._is_fresh():
            return self._cached
        try:
            data = await asyncio.to_thread(self._lookup)
            lat, lon = (float(part) for part in data["loc"].split(","))
        except requests.exceptions.RequestException as e:
            if self._cached is not None:
                logging.warning(f"Location lookup failed, using cached location: {e}")
                return self._cached
            raise NetworkError(f"Location lookup failed: {e}") from e
        except (KeyError, ValueError, AttributeError) as e:
            if self._cached is not None:
                logging.warning(f"Location lookup returned bad data, using cached location: {e}")
                return self._cached
            raise MalformedResponseError(f"Location lookup returned bad data: {e}") from e

        self.city = data.get("city") or "Unknown"
        self.country = data.get("country") or "Unknown"
        self._cached = (lat, lon)
        self._cached_at = self._clock()
        logging.info(f"Device location: {self.city}, {self.country} ({lat}, {lon})")
        return self._cached


class LocationList:
    """Configured locations plus the selected index (actual-city)."""

    def __init__(self, settings: Settings, locations: Sequence[LocationProviderBase]):
        if not locations:
            raise ValueError("At least one location is required")
        self.settings = settings
        self._locations: List[LocationProviderBase] = list(locations)

    @property
    def locations(self) -> List[LocationProviderBase]:
        return list(self._locations)

    @property
    def selected_index(self) -> int:
        index = self.settings.get_int("actual-city")
        if index > len(self._locations) - 1:
            logging.warning(f"Selected location {index} out of range, using the last one")
            index = len(self._locations) - 1
        return max(index, 0)

    def select(self, index: int) -> None:
        if not 0 <= index < len(self._locations):
            raise IndexError(f"No location at index {index}")
        self.settings.set_int("actual-city", index)

    @property
    def current(self) -> LocationProviderBase:
        return self._locations[self.selected_index]

    async def coordinates(self) -> Coordinates:
        return await self.current.coordinates()
