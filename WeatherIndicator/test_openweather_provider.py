"""Tests for OpenWeather provider."""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from openweather_provider import OpenWeatherProvider, parse_dt_txt
from weather_data import WeatherSnapshot
from weather_provider import (
    FetchOptions,
    MalformedResponseError,
    NetworkError,
    TooManyRequestsError,
    WeatherProvider,
    WeatherProviderError,
)

COORDS = (33.44, -94.04)
SUNRISE = 1717236000  # 2024-06-01 10:00 UTC
SUNSET = 1717290000  # 2024-06-02 01:00 UTC


@pytest.fixture
def sample_current_response():
    """Sample OpenWeather /weather response."""
    return {
        "coord": {"lon": -94.04, "lat": 33.44},
        "weather": [
            {
                "id": 803,
                "main": "Clouds",
                "description": "broken clouds",
                "icon": "04d"
            }
        ],
        "main": {
            "temp": 19.4,
            "feels_like": 19.7,
            "pressure": 1014,
            "humidity": 89
        },
        "wind": {"speed": 3.13, "deg": 93, "gust": 6.2},
        "dt": 1717243200,
        "sys": {"country": "US", "sunrise": SUNRISE, "sunset": SUNSET},
        "timezone": -18000,
        "name": "Testville",
    }


@pytest.fixture
def sample_forecast_response():
    """Sample OpenWeather /forecast response: 16 three-hour entries."""
    start = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)
    entries = []
    for i in range(16):
        moment = start + timedelta(hours=3 * i)
        entries.append({
            "dt": int(moment.timestamp()),
            "main": {"temp": 20.0 + i, "feels_like": 20.0 + i, "pressure": 1012, "humidity": 70},
            "weather": [{"id": 500, "main": "Rain", "description": "light rain", "icon": "10d"}],
            "wind": {"speed": 4.0, "deg": 180},
            "sys": {"pod": "d"},
            "dt_txt": moment.strftime("%Y-%m-%d %H:%M:%S"),
        })
    return {"cod": "200", "cnt": len(entries), "list": entries}


@pytest.fixture
def provider():
    """Create OpenWeather provider instance."""
    return OpenWeatherProvider(timeout=5)


@pytest.fixture
def options():
    return FetchOptions(forecast_days=2, api_key="test_key")


def mock_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = str(body)
    return response


def route(current, forecast):
    """Side effect answering the two endpoints with their own response."""
    def get(url, params=None, timeout=None):
        if url == OpenWeatherProvider.CURRENT_URL:
            return current
        return forecast
    return get


@pytest.mark.asyncio
async def test_openweather_provider_success(provider, options, sample_current_response, sample_forecast_response):
    """Test successful API calls and parsing."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(body=sample_forecast_response),
        )

        weather = await provider.fetch(COORDS, options)

        assert isinstance(weather, WeatherSnapshot)
        assert weather.temp == 19.4
        assert weather.feels_like == 19.7
        assert weather.humidity == 89
        assert weather.pressure == 1014
        assert weather.wind_speed == 3.13
        assert weather.wind_deg == 93
        assert weather.wind_gust == 6.2
        assert weather.condition_code == 803
        assert weather.condition == "broken clouds"
        assert weather.icon == "weather-overcast-symbolic"
        assert mock_get.call_count == 2

        assert weather.forecast.day_count() == 2
        first = weather.forecast.first_slot()
        assert first.start == datetime(2024, 6, 1, 12, tzinfo=timezone.utc)
        assert first.end == datetime(2024, 6, 1, 15, tzinfo=timezone.utc)
        assert first.weather.temp == 20.0
        assert first.weather.icon == "weather-showers-symbolic"


@pytest.mark.asyncio
async def test_openweather_provider_request_params(provider, sample_current_response, sample_forecast_response):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(body=sample_forecast_response),
        )

        await provider.fetch(COORDS, FetchOptions(forecast_days=2, api_key="k", lang="de"))

        params = mock_get.call_args.kwargs["params"]
        assert params["lat"] == "33.44"
        assert params["lon"] == "-94.04"
        assert params["units"] == "metric"
        assert params["lang"] == "de"
        assert params["appid"] == "k"
        assert mock_get.call_args.kwargs["timeout"] == 5


@pytest.mark.asyncio
async def test_openweather_provider_omits_unset_params(provider, sample_current_response, sample_forecast_response):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(body=sample_forecast_response),
        )

        await provider.fetch(COORDS, FetchOptions(forecast_days=2))

        params = mock_get.call_args.kwargs["params"]
        assert "lang" not in params
        assert "appid" not in params


@pytest.mark.asyncio
async def test_openweather_provider_catalog_text(provider, sample_current_response, sample_forecast_response):
    """Catalog phrases replace the provider description when requested."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(body=sample_forecast_response),
        )

        weather = await provider.fetch(COORDS, FetchOptions(forecast_days=2, use_catalog_text=True))

        assert weather.condition == "Broken Clouds"
        assert weather.forecast.first_slot().weather.condition == "Light Rain"


@pytest.mark.asyncio
async def test_openweather_provider_sun_times_corrected(provider, options, sample_current_response, sample_forecast_response):
    """A daytime first slot moves sunrise to the next day."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(body=sample_forecast_response),
        )

        weather = await provider.fetch(COORDS, options)

        sunrise = datetime.fromtimestamp(SUNRISE, tz=timezone.utc)
        assert weather.sunrise == sunrise + timedelta(days=1)
        assert weather.sunset == datetime.fromtimestamp(SUNSET, tz=timezone.utc)


@pytest.mark.asyncio
async def test_openweather_provider_truncates_forecast(provider, sample_current_response, sample_forecast_response):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(body=sample_forecast_response),
        )

        weather = await provider.fetch(COORDS, FetchOptions(forecast_days=1))

        assert weather.forecast.day_count() == 1
        assert weather.forecast.last_slot().weather.temp == 27.0


@pytest.mark.asyncio
async def test_openweather_provider_too_many_requests(provider, options, sample_current_response):
    """Test 429 from either endpoint."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(429, {"cod": 429, "message": "rate limited"}),
        )

        with pytest.raises(TooManyRequestsError) as exc_info:
            await provider.fetch(COORDS, options)

        assert exc_info.value.provider == WeatherProvider.OPENWEATHERMAP
        assert "OpenWeatherMap" in str(exc_info.value)


@pytest.mark.asyncio
async def test_openweather_provider_http_error(provider, options):
    """Test API error response handling."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = mock_response(401, {"cod": 401, "message": "Invalid API key"})

        with pytest.raises(WeatherProviderError) as exc_info:
            await provider.fetch(COORDS, options)

        assert not isinstance(exc_info.value, TooManyRequestsError)
        assert "Invalid API key" in str(exc_info.value)


@pytest.mark.asyncio
async def test_openweather_provider_network_error(provider, options):
    """Test network error handling."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.ConnectionError("Connection failed")

        with pytest.raises(NetworkError):
            await provider.fetch(COORDS, options)


@pytest.mark.asyncio
async def test_openweather_provider_invalid_json(provider, options):
    with patch('openweather_provider.requests.get') as mock_get:
        response = mock_response(200)
        response.json.side_effect = ValueError("Invalid JSON")
        mock_get.return_value = response

        with pytest.raises(MalformedResponseError):
            await provider.fetch(COORDS, options)


@pytest.mark.asyncio
async def test_openweather_provider_missing_fields(provider, options, sample_forecast_response):
    """Test handling of incomplete response."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body={"weather": [{"id": 800}]}),
            mock_response(body=sample_forecast_response),
        )

        with pytest.raises(MalformedResponseError):
            await provider.fetch(COORDS, options)


@pytest.mark.asyncio
async def test_openweather_provider_empty_forecast(provider, options, sample_current_response):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = route(
            mock_response(body=sample_current_response),
            mock_response(body={"list": []}),
        )

        with pytest.raises(MalformedResponseError):
            await provider.fetch(COORDS, options)


def test_parse_dt_txt():
    assert parse_dt_txt("2024-06-01 21:00:00") == datetime(2024, 6, 1, 21, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        parse_dt_txt("June 1st")


def test_provider_metadata(provider):
    assert provider.name == "OpenWeatherMap"
    assert provider.max_forecast_days == 5
    assert provider.requires_api_key is True
    assert provider.describe(800) == "Clear Sky"
