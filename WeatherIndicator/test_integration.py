"""Integration tests - can optionally hit real APIs (disabled by default)."""
import os

import pytest

from location import FixedLocation
from openweather_provider import OpenWeatherProvider
from settings import Settings
from weather_client import WeatherClient
from weather_provider import FetchOptions, WeatherProvider

COORDS = (33.44, -94.04)  # Example coordinates


@pytest.mark.asyncio
@pytest.mark.skipif(
    not os.environ.get("WEATHER_API_KEY"),
    reason="WEATHER_API_KEY not set - skipping integration test"
)
async def test_openweather_integration():
    """
    Integration test that hits the real OpenWeatherMap API.

    Set WEATHER_API_KEY environment variable to run this test.
    """
    provider = OpenWeatherProvider()

    weather = await provider.fetch(COORDS, FetchOptions(forecast_days=2, api_key=os.environ["WEATHER_API_KEY"]))

    assert weather.temp is not None
    assert weather.condition
    assert weather.forecast.day_count() >= 1


@pytest.mark.asyncio
@pytest.mark.skipif(
    not os.environ.get("WEATHER_API_KEY"),
    reason="WEATHER_API_KEY not set - skipping integration test"
)
async def test_weather_client_integration():
    """Integration test for WeatherClient against both real providers."""
    for provider in (WeatherProvider.OPENWEATHERMAP, WeatherProvider.OPENMETEO):
        settings = Settings({
            "weather-provider": int(provider),
            "owm-api-key": os.environ["WEATHER_API_KEY"],
        })
        client = WeatherClient(settings, FixedLocation("Example", *COORDS))

        weather = await client.fetch()

        assert weather is not None
        assert weather.temp is not None
        assert weather.has_forecast()
