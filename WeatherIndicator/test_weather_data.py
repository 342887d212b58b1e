"""Tests for weather_data module."""
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from forecast_timeline import ForecastSlot, ForecastTimeline
from settings import Settings
from units import PressureUnit, TemperatureUnit, UNAVAILABLE, WindSpeedUnit
from weather_data import SUNRISE, SUNSET, WeatherSnapshot

NOON = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def weather():
    """Snapshot with every field reported."""
    return WeatherSnapshot(
        temp=20.5,
        feels_like=19.8,
        humidity=65,
        pressure=1013.25,
        wind_speed=5.0,
        wind_deg=270,
        wind_gust=9.0,
        condition_code=803,
        condition="Broken Clouds",
        icon="weather-overcast-symbolic",
        sunrise=NOON + timedelta(hours=18),
        sunset=NOON + timedelta(hours=8),
    )


def test_weather_snapshot_creation(weather):
    assert weather.temp == 20.5
    assert weather.condition == "Broken Clouds"
    assert weather.gusts_available() is True
    assert weather.has_forecast() is False


def test_condition_must_be_text():
    with pytest.raises(TypeError):
        WeatherSnapshot(
            temp=1, feels_like=1, humidity=1, pressure=1, wind_speed=1, wind_deg=1,
            wind_gust=None, condition_code=800, condition=800, icon="",
        )


def test_next_sun_event_sunset_first(weather):
    assert weather.next_sun_event(NOON) == (SUNSET, weather.sunset)


def test_next_sun_event_sunrise_first():
    early = datetime(2024, 6, 1, 3, 0, tzinfo=timezone.utc)
    weather = WeatherSnapshot(
        temp=None, feels_like=None, humidity=None, pressure=None, wind_speed=None,
        wind_deg=None, wind_gust=None, condition_code=None, condition="", icon="",
        sunrise=early + timedelta(hours=3),
        sunset=early + timedelta(hours=41),
    )
    assert weather.next_sun_event(early) == (SUNRISE, weather.sunrise)


def test_next_sun_event_missing_times(weather):
    assert replace(weather, sunrise=None).next_sun_event(NOON) is None


def test_display_values(weather):
    settings = Settings({
        "unit": int(TemperatureUnit.FAHRENHEIT),
        "pressure-unit": int(PressureUnit.INHG),
        "wind-speed-unit": int(WindSpeedUnit.MPS),
    })
    assert weather.display_temperature(settings) == "68.9 °F"
    assert weather.display_feels_like(settings) == "67.6 °F"
    assert weather.display_humidity() == "65%"
    assert weather.display_pressure(settings) == "29.92 inHg"
    assert weather.display_wind(settings) == "W 5.0 m/s"
    assert weather.display_gusts(settings) == "W 9.0 m/s"


def test_display_wind_arrows_and_beaufort(weather):
    settings = Settings({"wind-direction": True, "wind-speed-unit": int(WindSpeedUnit.KPH)})
    assert weather.display_wind(settings) == "→ 18.0 km/h"
    settings.set_enum("wind-speed-unit", WindSpeedUnit.BEAUFORT)
    assert weather.display_wind(settings) == "3 (Gentle breeze)"


def test_display_missing_values():
    weather = WeatherSnapshot(
        temp=None, feels_like=None, humidity=None, pressure=None, wind_speed=None,
        wind_deg=None, wind_gust=None, condition_code=None, condition="", icon="",
    )
    settings = Settings()
    assert weather.display_temperature(settings) == UNAVAILABLE
    assert weather.display_pressure(settings) == UNAVAILABLE
    assert weather.display_wind(settings) == UNAVAILABLE
    assert weather.gusts_available() is False


def test_without_forecast(weather):
    slot = ForecastSlot(NOON, NOON + timedelta(hours=3), weather)
    with_forecast = WeatherSnapshot(**{**weather.__dict__, "forecast": ForecastTimeline([[slot]])})
    assert with_forecast.has_forecast() is True
    stripped = with_forecast.without_forecast()
    assert stripped.forecast is None
    assert stripped.temp == with_forecast.temp
