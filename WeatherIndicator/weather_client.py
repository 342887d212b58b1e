"""Weather client: provider selection, rotation and fetch orchestration."""
import logging
import random
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional

import units
from location import LocationProviderBase
from openmeteo_provider import OpenMeteoProvider
from openweather_provider import OpenWeatherProvider
from settings import Settings
from weather_data import WeatherSnapshot
from weather_provider import (
    ConfigurationError,
    Coordinates,
    FetchOptions,
    ProviderRegistry,
    TooManyRequestsError,
    WeatherProvider,
    WeatherProviderBase,
    WeatherProviderError,
    provider_name,
)


def build_registry(timeout: int = 10) -> ProviderRegistry:
    """Registry with every provider this client knows how to talk to."""
    return ProviderRegistry([
        OpenWeatherProvider(timeout=timeout),
        OpenMeteoProvider(timeout=timeout),
    ])


def clamp(lo: int, value: int, hi: int) -> int:
    return min(max(lo, value), hi)


ProviderFilter = Callable[[WeatherProviderBase], bool]


def any_provider(provider: WeatherProviderBase) -> bool:
    return True


class ProviderRotation:
    """
    Which provider automatic selection is using, and which one failed
    first in the current round of rate-limit retries.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.current: Optional[WeatherProvider] = None
        self.first_failed: Optional[WeatherProvider] = None
        self._rng = rng or random.Random()

    def choose(
        self,
        registry: ProviderRegistry,
        days_forecast: int,
        usable: ProviderFilter = any_provider,
    ) -> WeatherProvider:
        """
        Pick a provider lazily; random among the usable ones covering the
        requested forecast horizon, spreading load between them.
        """
        if self.current in registry and usable(registry.get(self.current)):
            return self.current
        ids = [provider_id for provider_id in registry.ids() if usable(registry.get(provider_id))]
        if not ids:
            # nothing usable; keep a selection so the configuration check can report why
            ids = registry.ids()
        candidates = [
            provider_id for provider_id in ids
            if registry.get(provider_id).max_forecast_days >= days_forecast + 1
        ]
        if candidates:
            self.current = self._rng.choice(candidates)
        elif WeatherProvider.OPENWEATHERMAP in ids:
            self.current = WeatherProvider.OPENWEATHERMAP
        else:
            self.current = ids[0]
        logging.info(f"Automatic provider selection chose {provider_name(self.current)}")
        return self.current

    def _following(self, registry: ProviderRegistry, provider: WeatherProvider, usable: ProviderFilter):
        """Usable providers after `provider` up to the one that failed first."""
        ids = registry.ids()
        start = ids.index(provider)
        for step in range(1, len(ids)):
            candidate = ids[(start + step) % len(ids)]
            if candidate == self.first_failed:
                return
            if usable(registry.get(candidate)):
                yield candidate

    def advance(
        self,
        registry: ProviderRegistry,
        failed: WeatherProvider,
        usable: ProviderFilter = any_provider,
    ) -> bool:
        """
        Move to the next usable provider after `failed` was rate limited.

        Returns:
            True if an untried provider is now selected, False once the
            cycle is back at the provider that failed first
        """
        if failed not in registry:
            return False
        if self.first_failed is None:
            self.first_failed = failed
        following = next(self._following(registry, failed, usable), None)
        if following is None:
            return False
        logging.info(f"Rotating weather provider: {provider_name(failed)} -> {provider_name(following)}")
        self.current = following
        return True

    def remaining(self, registry: ProviderRegistry, usable: ProviderFilter = any_provider) -> int:
        """Usable providers still untried after the current one in this round."""
        if self.current not in registry:
            return 0
        return sum(1 for _ in self._following(registry, self.current, usable))

    def reset(self) -> None:
        self.first_failed = None


class WeatherClient:
    """
    Fetches weather for the selected location from the active provider.

    `fetch` returns None for any transient failure (network, parse or an
    unexpected HTTP status) so callers keep showing the last good data.
    Rate limiting and configuration problems are raised instead, since
    they need a different reaction.
    """

    def __init__(
        self,
        settings: Settings,
        location: LocationProviderBase,
        registry: Optional[ProviderRegistry] = None,
        rotation: Optional[ProviderRotation] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.settings = settings
        self.location = location
        self.registry = registry or build_registry()
        self.rotation = rotation or ProviderRotation()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.tz = tz

    @property
    def automatic_selection(self) -> bool:
        return self.settings.get_enum("weather-provider") == WeatherProvider.AUTO

    def active_provider_id(self) -> WeatherProvider:
        """
        Raises:
            ConfigurationError: If the weather-provider setting holds an
                unknown value
        """
        if self.automatic_selection:
            return self.rotation.choose(self.registry, self.settings.days_forecast, self.provider_configured)
        value = self.settings.get_enum("weather-provider")
        try:
            return WeatherProvider(value)
        except ValueError:
            raise ConfigurationError(f"Invalid weather provider: {value}")

    def active_provider(self) -> WeatherProviderBase:
        return self.registry.get(self.active_provider_id())

    def provider_not_working(self, failed: WeatherProvider) -> bool:
        """
        Rotate away from a rate-limited provider when selection is
        automatic. Returns True if the fetch should be tried again.
        """
        if not self.automatic_selection:
            return False
        return self.rotation.advance(self.registry, failed, self.provider_configured)

    def providers_remaining(self) -> int:
        return self.rotation.remaining(self.registry, self.provider_configured)

    def api_key(self, provider: WeatherProviderBase) -> Optional[str]:
        if not provider.api_key_setting:
            return None
        return self.settings.get_string(provider.api_key_setting).strip() or None

    def provider_configured(self, provider: WeatherProviderBase) -> bool:
        """False for a provider that needs an API key nobody has set."""
        return not provider.requires_api_key or self.api_key(provider) is not None

    def check_configuration(self) -> None:
        """
        Raises:
            ConfigurationError: If the active provider needs an API key
                and none is configured
        """
        provider = self.active_provider()
        if provider.requires_api_key and not self.api_key(provider):
            raise ConfigurationError(
                f"{provider.name} does not work without an API key. "
                f"Register at {provider.url} and set WEATHER_API_KEY."
            )

    def clamp_forecast_days(self, provider: WeatherProviderBase) -> int:
        """
        Total forecast days (today included) to request from `provider`.

        A days-forecast setting beyond what the provider offers is
        corrected downward and written back.
        """
        requested = self.settings.days_forecast
        total = clamp(1, requested + 1, provider.max_forecast_days)
        if total - 1 != requested:
            logging.info(f"Forecast days {requested} not supported by {provider.name}, using {total - 1}")
            with self.settings.frozen():
                self.settings.set_int("days-forecast", total - 1)
        return total

    def fetch_options(self, provider: WeatherProviderBase) -> FetchOptions:
        lang = None
        if self.settings.provider_translations:
            lang = self.settings.get_string("provider-lang") or units.parse_locale(self.settings.locale).language
        return FetchOptions(
            forecast_days=self.clamp_forecast_days(provider),
            api_key=self.api_key(provider),
            lang=lang,
            use_catalog_text=self.settings.translate_condition and not self.settings.provider_translations,
            now=self._clock(),
            tz=self.tz,
        )

    async def fetch(self, coordinates: Optional[Coordinates] = None) -> Optional[WeatherSnapshot]:
        """
        Fetch current weather with its forecast.

        Returns:
            WeatherSnapshot, or None if the fetch failed transiently

        Raises:
            TooManyRequestsError: If the provider rate limited us
            ConfigurationError: If the provider is misconfigured
        """
        provider = self.active_provider()
        self.check_configuration()
        options = self.fetch_options(provider)
        try:
            if coordinates is None:
                coordinates = await self.location.coordinates()
            logging.info(f"Fetching weather from {provider.name} for {coordinates}")
            snapshot = await provider.fetch(coordinates, options)
        except (TooManyRequestsError, ConfigurationError):
            raise
        except WeatherProviderError as e:
            logging.warning(f"Weather fetch from {provider.name} failed: {e}")
            return None

        self.rotation.reset()
        if self.settings.forecast_disabled:
            snapshot = snapshot.without_forecast()
        return snapshot
