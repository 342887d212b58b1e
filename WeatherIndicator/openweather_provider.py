"""OpenWeatherMap current weather + 5 day / 3 hour forecast provider."""
import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Tuple

import requests

import conditions
from forecast_timeline import SLOT_HOURS, SLOTS_PER_DAY, ForecastSlot, ForecastTimeline, correct_sun_times, utc_from_timestamp
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

DT_TXT_PATTERN = re.compile(r"^([0-9]{4})-([0-9]{2})-([0-9]{2}) ([0-9]{2}):")


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class OpenWeatherProvider(WeatherProviderBase):
    """
    Weather provider using the free OpenWeatherMap 2.5 API.

    Current conditions come from /weather and the forecast from
    /forecast (3 hour steps, 5 days): https://openweathermap.org/forecast5
    """

    CURRENT_URL = "https://api.openweathermap.org/data/2.5/weather"
    FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"

    provider_id = WeatherProvider.OPENWEATHERMAP
    max_forecast_days = 5
    requires_api_key = True
    api_key_setting = "owm-api-key"

    def __init__(self, timeout: int = 10):
        """
        Initialize OpenWeatherMap provider.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout

    def describe(self, code) -> str:
        return conditions.condition_text(self.provider_id, code)

    def _params(self, coordinates: Coordinates, options: FetchOptions) -> dict:
        lat, lon = coordinates
        params = {
            "lat": str(lat),
            "lon": str(lon),
            "units": "metric",
        }
        if options.lang:
            params["lang"] = options.lang
        if options.api_key:
            params["appid"] = options.api_key
        return params

    def _get(self, url: str, params: dict) -> Tuple[int, dict]:
        logging.info(f"Making OpenWeatherMap API request: {url}")
        logging.debug(f"Request parameters: lat={params['lat']}, lon={params['lon']}, lang={params.get('lang')}")
        response = requests.get(url, params=params, timeout=self.timeout)
        logging.info(f"API response status: {response.status_code}")
        try:
            body = response.json()
        except ValueError:
            if is_success(response.status_code):
                raise
            body = {"message": response.text[:200]}
        return response.status_code, body

    async def fetch(self, coordinates: Coordinates, options: FetchOptions) -> WeatherSnapshot:
        """
        Fetch current weather and forecast concurrently.

        Both requests must succeed. A 429 on either raises
        TooManyRequestsError; any other unsuccessful status raises
        WeatherProviderError.
        """
        params = self._params(coordinates, options)
        try:
            (status, current), (forecast_status, forecast) = await asyncio.gather(
                asyncio.to_thread(self._get, self.CURRENT_URL, params),
                asyncio.to_thread(self._get, self.FORECAST_URL, params),
            )
        except ValueError as e:
            logging.error(f"Failed to decode API response: {e}")
            raise MalformedResponseError(f"Failed to decode response: {e}") from e
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise NetworkError(f"Network error: {e}") from e

        if not is_success(status) or not is_success(forecast_status):
            logging.error(
                f"Invalid API response from OpenWeatherMap {status}/{forecast_status}: "
                f"'{current.get('message')}'/'{forecast.get('message')}'"
            )
            if status == 429 or forecast_status == 429:
                raise TooManyRequestsError(self.provider_id)
            raise WeatherProviderError(
                f"OpenWeatherMap API error {status}/{forecast_status}: "
                f"{current.get('message') or forecast.get('message') or 'Unknown error'}"
            )

        logging.debug(f"API response (truncated): {str(current)[:500]}...")
        try:
            return self._parse(current, forecast, options)
        except (KeyError, IndexError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Failed to parse API response: {e}", exc_info=True)
            raise MalformedResponseError(f"Failed to parse response: {e}") from e

    def _condition(self, weather: dict, options: FetchOptions) -> str:
        if options.use_catalog_text:
            return self.describe(weather.get("id"))
        return weather.get("description", "")

    def _snapshot(self, data: dict, options: FetchOptions, sunrise, sunset, forecast=None) -> WeatherSnapshot:
        main = data["main"]
        wind = data.get("wind") or {}
        weather = data["weather"][0]
        icon = weather.get("icon", "")
        return WeatherSnapshot(
            temp=main.get("temp"),
            feels_like=main.get("feels_like"),
            humidity=main.get("humidity"),
            pressure=main.get("pressure"),
            wind_speed=wind.get("speed"),
            wind_deg=wind.get("deg"),
            wind_gust=wind.get("gust"),
            condition_code=weather.get("id"),
            condition=self._condition(weather, options),
            icon=conditions.icon_name(self.provider_id, icon, icon.endswith("n")),
            sunrise=sunrise,
            sunset=sunset,
            forecast=forecast,
        )

    def _parse(self, current: dict, forecast: dict, options: FetchOptions) -> WeatherSnapshot:
        entries = forecast["list"]
        if not entries:
            raise MalformedResponseError("Forecast response has an empty 'list'")

        sys_block = current["sys"]
        sunrise, sunset = correct_sun_times(
            utc_from_timestamp(sys_block["sunrise"]),
            utc_from_timestamp(sys_block["sunset"]),
            entries[0].get("sys", {}).get("pod"),
        )

        slots = []
        for entry in entries[:options.forecast_days * SLOTS_PER_DAY]:
            start = parse_dt_txt(entry["dt_txt"])
            slots.append(ForecastSlot(
                start,
                start + timedelta(hours=SLOT_HOURS),
                self._snapshot(entry, options, sunrise, sunset),
            ))

        timeline = ForecastTimeline.from_slots(slots)
        snapshot = self._snapshot(current, options, sunrise, sunset, timeline)
        logging.info(f"Successfully parsed weather data: {snapshot.temp}°C, {snapshot.condition}")
        return snapshot


def parse_dt_txt(text: str) -> datetime:
    """Parse an OpenWeatherMap "YYYY-MM-DD HH:MM:SS" UTC timestamp."""
    match = DT_TXT_PATTERN.match(text)
    if not match:
        raise ValueError(f"Unrecognised forecast timestamp: {text!r}")
    year, month, day, hour = (int(part) for part in match.groups())
    return datetime(year, month, day, hour, tzinfo=timezone.utc)
