"""Weather domain model - pure data structures independent of any API."""
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Tuple

import units
from settings import Settings

if TYPE_CHECKING:
    from forecast_timeline import ForecastTimeline

SUNRISE = "sunrise"
SUNSET = "sunset"


@dataclass(frozen=True)
class WeatherSnapshot:
    """
    Weather at one moment, independent of any specific API.

    Temperatures are in Celsius, pressure in millibar and speeds in m/s.
    Any numeric field may be None when the provider did not report it.
    """
    temp: Optional[float]
    feels_like: Optional[float]
    humidity: Optional[float]
    pressure: Optional[float]
    wind_speed: Optional[float]
    wind_deg: Optional[float]
    wind_gust: Optional[float]
    condition_code: Optional[int]
    condition: str  # e.g., "broken clouds", "Light Rain"
    icon: str  # themed icon name, e.g. "weather-overcast-symbolic"
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    forecast: Optional["ForecastTimeline"] = None

    def __post_init__(self):
        if not isinstance(self.condition, str):
            raise TypeError(
                f"Weather condition {self.condition!r} was type "
                f"{type(self.condition).__name__} not str"
            )

    def has_forecast(self) -> bool:
        return self.forecast is not None and self.forecast.day_count() > 0

    def gusts_available(self) -> bool:
        return not units.is_missing(self.wind_gust)

    def without_forecast(self) -> "WeatherSnapshot":
        return replace(self, forecast=None)

    def next_sun_event(self, now: Optional[datetime] = None) -> Optional[Tuple[str, datetime]]:
        """
        Which of sunrise or sunset the panel should show.

        Sunset is shown when it is closer than sunrise, otherwise sunrise.
        """
        if self.sunrise is None or self.sunset is None:
            return None
        now = now or datetime.now(timezone.utc)
        if self.sunrise - now > self.sunset - now:
            return SUNSET, self.sunset
        return SUNRISE, self.sunrise

    def display_temperature(self, settings: Settings, locale: Optional[str] = None) -> str:
        return units.format_temperature(
            self.temp, settings.temperature_unit, settings.decimal_places, locale
        )

    def display_feels_like(self, settings: Settings, locale: Optional[str] = None) -> str:
        return units.format_temperature(
            self.feels_like, settings.temperature_unit, settings.decimal_places, locale
        )

    def display_humidity(self) -> str:
        return units.format_humidity(self.humidity)

    def display_pressure(self, settings: Settings, locale: Optional[str] = None) -> str:
        return units.format_pressure(
            self.pressure, settings.pressure_unit, settings.pressure_decimal_places, locale
        )

    def display_wind(self, settings: Settings, locale: Optional[str] = None) -> str:
        return units.format_wind(
            self.wind_speed,
            self.wind_deg,
            settings.wind_speed_unit,
            settings.speed_decimal_places,
            settings.wind_direction_arrows,
            locale,
        )

    def display_gusts(self, settings: Settings, locale: Optional[str] = None) -> str:
        return units.format_wind(
            self.wind_gust,
            self.wind_deg,
            settings.wind_speed_unit,
            settings.speed_decimal_places,
            settings.wind_direction_arrows,
            locale,
        )
