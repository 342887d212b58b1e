"""Tests for units module."""
import math
from datetime import datetime, timezone

import pytest

import units
from units import ClockFormat, PressureUnit, TemperatureUnit, WindSpeedUnit


@pytest.mark.parametrize("unit, expected", [
    (TemperatureUnit.CELSIUS, "0.0 °C"),
    (TemperatureUnit.FAHRENHEIT, "32.0 °F"),
    (TemperatureUnit.KELVIN, "273.2 K"),
    (TemperatureUnit.RANKINE, "491.7 °Ra"),
    (TemperatureUnit.REAUMUR, "0.0 °Ré"),
    (TemperatureUnit.ROEMER, "7.5 °Rø"),
    (TemperatureUnit.DELISLE, "150.0 °De"),
    (TemperatureUnit.NEWTON, "−0.3 °N"),
])
def test_format_temperature_freezing_point(unit, expected):
    """Test 0 °C in every supported unit."""
    assert units.format_temperature(0, unit, 1) == expected


def test_format_temperature_decimals():
    assert units.format_temperature(0, TemperatureUnit.KELVIN, 2) == "273.15 K"
    assert units.format_temperature(21.44, TemperatureUnit.CELSIUS, 0) == "21 °C"


def test_format_temperature_uses_unicode_minus():
    text = units.format_temperature(-5, TemperatureUnit.CELSIUS, 1)
    assert text == "−5.0 °C"
    assert "-" not in text


def test_format_temperature_negative_zero_is_plain_zero():
    """Values rounding to zero never show a sign."""
    assert units.format_temperature(-0.04, TemperatureUnit.CELSIUS, 1) == "0.0 °C"


def test_format_temperature_missing_value():
    assert units.format_temperature(None) == units.UNAVAILABLE
    assert units.format_temperature(float("nan")) == units.UNAVAILABLE
    assert units.format_temperature(float("inf")) == units.UNAVAILABLE
    assert units.format_pressure(float("-inf")) == units.UNAVAILABLE


def test_format_number_non_finite():
    assert units.format_number(float("inf"), 1) == units.UNAVAILABLE
    assert units.format_number(float("nan"), 0) == units.UNAVAILABLE


def test_format_number_rounds_half_up():
    assert units.format_number(2.25, 1) == "2.3"
    assert units.format_number(-2.25, 1) == "−2.3"


def test_format_number_locale_separators():
    assert units.format_number(1234.5, 1, "de_DE") == "1.234,5"
    assert units.format_number(1234.5, 1, "en_US") == "1,234.5"


def test_parse_locale_fallbacks():
    assert str(units.parse_locale("de_DE.UTF-8")) == "de_DE"
    assert str(units.parse_locale("C")) == "en_US"
    assert str(units.parse_locale("")) == "en_US"
    assert str(units.parse_locale("not-a-locale")) == "en_US"


def test_format_pressure_units():
    assert units.format_pressure(1013.25, PressureUnit.HPA, 1) == "1,013.3 hPa"
    assert units.format_pressure(1013.25, PressureUnit.INHG, 2) == "29.92 inHg"
    assert units.format_pressure(1013.25, PressureUnit.ATM, 3) == "1.000 atm"
    assert units.format_pressure(1000, PressureUnit.PA, 0) == "100,000 Pa"
    assert units.format_pressure(1000, PressureUnit.KPA, 1) == "100.0 kPa"
    assert units.format_pressure(None, PressureUnit.HPA, 1) == units.UNAVAILABLE


def test_every_pressure_unit_has_symbol_and_factor():
    for unit in PressureUnit:
        assert unit in units.PRESSURE_FACTORS
        assert unit in units.PRESSURE_SYMBOLS
        assert unit in units.PRESSURE_AUTO_DECIMALS


@pytest.mark.parametrize("mps, force, name", [
    (0.0, 0, "Calm"),
    (0.29, 0, "Calm"),
    (1.5, 1, "Light air"),
    (5.4, 3, "Gentle breeze"),
    (6.0, 4, "Moderate breeze"),
    (7.9, 4, "Moderate breeze"),
    (32.6, 11, "Violent storm"),
    (40.0, 12, "Hurricane"),
])
def test_to_beaufort(mps, force, name):
    assert units.to_beaufort(mps) == (force, name)


def test_format_wind_speed_units():
    assert units.format_wind_speed(10, WindSpeedUnit.KPH, 1) == "36.0 km/h"
    assert units.format_wind_speed(10, WindSpeedUnit.MPS, 1) == "10.0 m/s"
    assert units.format_wind_speed(10, WindSpeedUnit.MPH, 1) == "22.4 mph"
    assert units.format_wind_speed(10, WindSpeedUnit.KNOTS, 1) == "19.4 kn"
    assert units.format_wind_speed(10, WindSpeedUnit.FPS, 0) == "33 ft/s"


def test_format_wind_speed_beaufort():
    assert units.format_wind_speed(6.0, WindSpeedUnit.BEAUFORT) == "4 (Moderate breeze)"


@pytest.mark.parametrize("degrees, letter, arrow", [
    (0, "N", "↓"),
    (22.5, "NE", "↙"),
    (45, "NE", "↙"),
    (90, "E", "←"),
    (180, "S", "↑"),
    (270, "W", "→"),
    (337.4, "NW", "↘"),
    (359, "N", "↓"),
])
def test_format_wind_direction(degrees, letter, arrow):
    assert units.format_wind_direction(degrees) == letter
    assert units.format_wind_direction(degrees, use_arrows=True) == arrow


def test_wind_direction_is_periodic():
    for degrees in range(0, 360, 7):
        assert units.wind_direction_index(degrees) == units.wind_direction_index(degrees + 360)
        assert units.wind_direction_index(degrees) == int(math.floor(degrees / 45 + 0.5)) % 8


def test_format_wind_with_direction():
    assert units.format_wind(3.5, 45, WindSpeedUnit.KPH, 1) == "NE 12.6 km/h"
    assert units.format_wind(3.5, 45, WindSpeedUnit.KPH, 1, use_arrows=True) == "↙ 12.6 km/h"


def test_format_wind_drops_direction():
    """No direction for calm wind, Beaufort or a missing bearing."""
    assert units.format_wind(0.01, 90, WindSpeedUnit.KPH, 0) == "0 km/h"
    assert units.format_wind(6.0, 90, WindSpeedUnit.BEAUFORT) == "4 (Moderate breeze)"
    assert units.format_wind(3.5, None, WindSpeedUnit.KPH, 1) == "12.6 km/h"
    assert units.format_wind(None, 90) == units.UNAVAILABLE


def test_format_humidity():
    assert units.format_humidity(65) == "65%"
    assert units.format_humidity(65.0) == "65%"
    assert units.format_humidity(None) == units.UNAVAILABLE


def test_format_time_clock_formats():
    moment = datetime(2024, 1, 1, 15, 5, tzinfo=timezone.utc)
    assert units.format_time(moment, ClockFormat.H24, tz=timezone.utc) == "15:05"
    assert units.format_time(moment, ClockFormat.H12, tz=timezone.utc) == "3:05 PM"
    assert units.format_time(moment, ClockFormat.SYSTEM, tz=timezone.utc) == "15:05"


def test_format_time_naive_is_utc():
    assert units.format_time(datetime(2024, 1, 1, 6, 30), tz=timezone.utc) == "6:30"


def test_format_time_missing():
    assert units.format_time(None) == units.UNAVAILABLE
