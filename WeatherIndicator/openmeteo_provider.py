"""Open-Meteo forecast API provider (no API key required)."""
import asyncio
import logging
from datetime import timedelta, timezone
from typing import Optional

import requests

import conditions
from forecast_timeline import (
    POD_DAY,
    SLOT_HOURS,
    SLOTS_PER_DAY,
    ForecastSlot,
    ForecastTimeline,
    correct_sun_times,
    utc_from_timestamp,
)
from openweather_provider import is_success
from weather_data import WeatherSnapshot
from weather_provider import (
    Coordinates,
    FetchOptions,
    MalformedResponseError,
    NetworkError,
    TooManyRequestsError,
    WeatherProvider,
    WeatherProviderBase,
    WeatherProviderError,
)

VARIABLES = [
    "temperature_2m",
    "apparent_temperature",
    "relative_humidity_2m",
    "pressure_msl",
    "wind_speed_10m",
    "wind_direction_10m",
    "wind_gusts_10m",
    "weather_code",
    "is_day",
]


class OpenMeteoProvider(WeatherProviderBase):
    """
    Weather provider using the Open-Meteo forecast API.

    A single request returns current conditions, hourly values and the
    daily sunrise/sunset. Hourly values are sampled every three hours so
    the timeline has the same shape as OpenWeatherMap's.
    """

    BASE_URL = "https://api.open-meteo.com/v1/forecast"
    API_MAX_DAYS = 16

    provider_id = WeatherProvider.OPENMETEO
    # one extra API day is needed to fill the last forecast row
    max_forecast_days = API_MAX_DAYS - 1

    def __init__(self, timeout: int = 10):
        self.timeout = timeout

    def describe(self, code) -> str:
        return conditions.condition_text(self.provider_id, code)

    def _params(self, coordinates: Coordinates, options: FetchOptions) -> dict:
        lat, lon = coordinates
        return {
            "latitude": str(lat),
            "longitude": str(lon),
            "current": ",".join(VARIABLES),
            "hourly": ",".join(VARIABLES),
            "daily": "sunrise,sunset",
            "wind_speed_unit": "ms",
            "timeformat": "unixtime",
            "timezone": "GMT",
            "forecast_days": min(options.forecast_days + 1, self.API_MAX_DAYS),
        }

    def _get(self, params: dict):
        logging.info(f"Making Open-Meteo API request: {self.BASE_URL}")
        response = requests.get(self.BASE_URL, params=params, timeout=self.timeout)
        logging.info(f"API response status: {response.status_code}")
        try:
            body = response.json()
        except ValueError:
            if is_success(response.status_code):
                raise
            body = {"reason": response.text[:200]}
        return response.status_code, body

    async def fetch(self, coordinates: Coordinates, options: FetchOptions) -> WeatherSnapshot:
        params = self._params(coordinates, options)
        try:
            status, data = await asyncio.to_thread(self._get, params)
        except ValueError as e:
            logging.error(f"Failed to decode API response: {e}")
            raise MalformedResponseError(f"Failed to decode response: {e}") from e
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise NetworkError(f"Network error: {e}") from e

        if not is_success(status):
            logging.error(f"Invalid API response from Open-Meteo {status}: '{data.get('reason')}'")
            if status == 429:
                raise TooManyRequestsError(self.provider_id)
            raise WeatherProviderError(f"Open-Meteo API error {status}: {data.get('reason', 'Unknown error')}")

        try:
            return self._parse(data, options)
        except (KeyError, IndexError, ValueError, TypeError) as e:
            logging.error(f"Failed to parse API response: {e}", exc_info=True)
            raise MalformedResponseError(f"Failed to parse response: {e}") from e

    def _snapshot(self, values: dict, sunrise, sunset, forecast=None) -> WeatherSnapshot:
        code = values.get("weather_code")
        return WeatherSnapshot(
            temp=values.get("temperature_2m"),
            feels_like=values.get("apparent_temperature"),
            humidity=values.get("relative_humidity_2m"),
            pressure=values.get("pressure_msl"),
            wind_speed=values.get("wind_speed_10m"),
            wind_deg=values.get("wind_direction_10m"),
            wind_gust=values.get("wind_gusts_10m"),
            condition_code=code,
            condition=self.describe(code),
            icon=conditions.icon_name(self.provider_id, code, not values.get("is_day", 1)),
            sunrise=sunrise,
            sunset=sunset,
            forecast=forecast,
        )

    def _parse(self, data: dict, options: FetchOptions) -> WeatherSnapshot:
        hourly = data["hourly"]
        times = hourly["time"]
        now = options.current_time().astimezone(timezone.utc)
        slot_start = now.replace(minute=0, second=0, microsecond=0) - timedelta(hours=now.hour % SLOT_HOURS)
        first = first_index_at_or_after(times, slot_start.timestamp())
        if first is None:
            raise MalformedResponseError("Hourly forecast does not cover the current time")

        indices = list(range(first, len(times), SLOT_HOURS))[:options.forecast_days * SLOTS_PER_DAY]
        hour_values = [{name: hourly.get(name, [None] * len(times))[i] for name in VARIABLES} for i in indices]

        daily = data["daily"]
        pod = POD_DAY if hour_values[0].get("is_day") else "n"
        sunrise, sunset = correct_sun_times(
            utc_from_timestamp(daily["sunrise"][0]),
            utc_from_timestamp(daily["sunset"][0]),
            pod,
        )

        slots = []
        for i, values in zip(indices, hour_values):
            start = utc_from_timestamp(times[i])
            slots.append(ForecastSlot(start, start + timedelta(hours=SLOT_HOURS), self._snapshot(values, sunrise, sunset)))

        timeline = ForecastTimeline.from_slots(slots)
        snapshot = self._snapshot(data["current"], sunrise, sunset, timeline)
        logging.info(f"Successfully parsed weather data: {snapshot.temp}°C, {snapshot.condition}")
        return snapshot


def first_index_at_or_after(times, timestamp: float) -> Optional[int]:
    for index, value in enumerate(times):
        if value >= timestamp:
            return index
    return None
