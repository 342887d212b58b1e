"""Weather provider abstraction - allows swapping different weather APIs."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from weather_data import WeatherSnapshot

Coordinates = Tuple[float, float]


class WeatherProvider(IntEnum):
    """Provider identifiers as stored in the weather-provider setting."""
    AUTO = 0
    OPENWEATHERMAP = 1
    OPENMETEO = 2


PROVIDER_NAMES = {
    WeatherProvider.OPENWEATHERMAP: "OpenWeatherMap",
    WeatherProvider.OPENMETEO: "Open-Meteo",
}

PROVIDER_URLS = {
    WeatherProvider.OPENWEATHERMAP: "https://openweathermap.org/",
    WeatherProvider.OPENMETEO: "https://open-meteo.com/",
}


def provider_name(provider) -> str:
    try:
        return PROVIDER_NAMES[WeatherProvider(provider)]
    except (KeyError, ValueError):
        return "Unknown"


def provider_url(provider) -> Optional[str]:
    try:
        return PROVIDER_URLS.get(WeatherProvider(provider))
    except ValueError:
        return None


@dataclass(frozen=True)
class RateLimitPolicy:
    """How the scheduler reacts when a provider answers HTTP 429."""
    rotate_delay_seconds: float = 1.0
    backoff_seconds: float = 600.0


@dataclass(frozen=True)
class FetchOptions:
    """Per-request parameters derived from settings by the client."""
    forecast_days: int
    api_key: Optional[str] = None
    lang: Optional[str] = None
    use_catalog_text: bool = False
    now: Optional[datetime] = None
    tz: Optional[tzinfo] = field(default=None, compare=False)

    def current_time(self) -> datetime:
        return self.now if self.now is not None else datetime.now(timezone.utc)


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    provider_id: WeatherProvider
    max_forecast_days: int = 1
    requires_api_key: bool = False
    api_key_setting: Optional[str] = None
    rate_limit_policy: RateLimitPolicy = RateLimitPolicy()

    @property
    def name(self) -> str:
        return provider_name(self.provider_id)

    @property
    def url(self) -> Optional[str]:
        return provider_url(self.provider_id)

    @abstractmethod
    async def fetch(self, coordinates: Coordinates, options: FetchOptions) -> WeatherSnapshot:
        """
        Fetch current conditions and the forecast for a location.

        Returns:
            WeatherSnapshot: Current weather with its forecast attached

        Raises:
            TooManyRequestsError: If the provider rate limited the request
            NetworkError: If the provider could not be reached
            MalformedResponseError: If the response could not be parsed
            WeatherProviderError: For any other unsuccessful response
        """

    @abstractmethod
    def describe(self, code) -> str:
        """Condition text for one of this provider's condition codes."""


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""


class NetworkError(WeatherProviderError):
    """The provider could not be reached."""


class MalformedResponseError(WeatherProviderError):
    """The provider answered with a body that could not be parsed."""


class ConfigurationError(WeatherProviderError):
    """The provider cannot be used with the current configuration."""


class TooManyRequestsError(WeatherProviderError):
    """The provider rejected the request with HTTP 429."""

    def __init__(self, provider: WeatherProvider):
        self.provider = WeatherProvider(provider)
        super().__init__(f"Provider {provider_name(provider)} has received too many requests.")


class ProviderRegistry:
    """Weather providers keyed by identifier."""

    def __init__(self, providers: Optional[List[WeatherProviderBase]] = None):
        self._providers: Dict[WeatherProvider, WeatherProviderBase] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: WeatherProviderBase) -> None:
        self._providers[WeatherProvider(provider.provider_id)] = provider

    def get(self, provider_id) -> WeatherProviderBase:
        try:
            return self._providers[WeatherProvider(provider_id)]
        except (KeyError, ValueError):
            raise ConfigurationError(f"Invalid weather provider: {provider_id}")

    def ids(self) -> List[WeatherProvider]:
        return sorted(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, provider_id) -> bool:
        try:
            return WeatherProvider(provider_id) in self._providers
        except ValueError:
            return False
