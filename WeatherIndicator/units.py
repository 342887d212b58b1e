"""Unit conversion and locale-aware formatting for weather values.

All inputs are in the units the providers are queried in: Celsius,
millibar (hPa) and metres per second. Every formatter returns the
placeholder glyph instead of raising when a value was not reported.
"""
import math
from datetime import datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from enum import IntEnum
from functools import lru_cache
from typing import Optional, Tuple

from babel.core import Locale, UnknownLocaleError
from babel.dates import format_time as babel_format_time
from babel.numbers import format_decimal

UNAVAILABLE = "–"
MINUS_SIGN = "−"
DEFAULT_LOCALE = "en_US"


class TemperatureUnit(IntEnum):
    CELSIUS = 0
    FAHRENHEIT = 1
    KELVIN = 2
    RANKINE = 3
    REAUMUR = 4
    ROEMER = 5
    DELISLE = 6
    NEWTON = 7


class WindSpeedUnit(IntEnum):
    KPH = 0
    MPH = 1
    MPS = 2
    KNOTS = 3
    FPS = 4
    BEAUFORT = 5


class PressureUnit(IntEnum):
    HPA = 0
    INHG = 1
    BAR = 2
    PA = 3
    KPA = 4
    ATM = 5
    AT = 6
    TORR = 7
    PSI = 8
    MMHG = 9
    MBAR = 10


class ClockFormat(IntEnum):
    H24 = 0
    H12 = 1
    SYSTEM = 2


TEMPERATURE_SYMBOLS = {
    TemperatureUnit.CELSIUS: "°C",
    TemperatureUnit.FAHRENHEIT: "°F",
    TemperatureUnit.KELVIN: "K",
    TemperatureUnit.RANKINE: "°Ra",
    TemperatureUnit.REAUMUR: "°Ré",
    TemperatureUnit.ROEMER: "°Rø",
    TemperatureUnit.DELISLE: "°De",
    TemperatureUnit.NEWTON: "°N",
}

# Multipliers applied to a value in millibar (== hPa).
PRESSURE_FACTORS = {
    PressureUnit.HPA: 1.0,
    PressureUnit.INHG: 1 / 33.86530749,
    PressureUnit.BAR: 0.001,
    PressureUnit.PA: 100.0,
    PressureUnit.KPA: 0.1,
    PressureUnit.ATM: 1 / 1013.25,
    PressureUnit.AT: 1 / 980.665,
    PressureUnit.TORR: 760 / 1013.25,
    PressureUnit.PSI: 0.0145037738,
    PressureUnit.MMHG: 0.750061683,
    PressureUnit.MBAR: 1.0,
}

PRESSURE_SYMBOLS = {
    PressureUnit.HPA: "hPa",
    PressureUnit.INHG: "inHg",
    PressureUnit.BAR: "bar",
    PressureUnit.PA: "Pa",
    PressureUnit.KPA: "kPa",
    PressureUnit.ATM: "atm",
    PressureUnit.AT: "at",
    PressureUnit.TORR: "Torr",
    PressureUnit.PSI: "psi",
    PressureUnit.MMHG: "mmHg",
    PressureUnit.MBAR: "mbar",
}

# Decimal places used when pressure-decimal-places is "automatic".
PRESSURE_AUTO_DECIMALS = {
    PressureUnit.MBAR: 0,
    PressureUnit.PA: 0,
    PressureUnit.KPA: 1,
    PressureUnit.MMHG: 1,
    PressureUnit.HPA: 1,
    PressureUnit.TORR: 1,
    PressureUnit.INHG: 2,
    PressureUnit.PSI: 2,
    PressureUnit.ATM: 3,
    PressureUnit.AT: 3,
    PressureUnit.BAR: 3,
}

WIND_SPEED_FACTORS = {
    WindSpeedUnit.MPH: 2.23693629,
    WindSpeedUnit.KPH: 3.6,
    WindSpeedUnit.MPS: 1.0,
    WindSpeedUnit.KNOTS: 1.94384449,
    WindSpeedUnit.FPS: 3.2808399,
}

WIND_SPEED_SYMBOLS = {
    WindSpeedUnit.MPH: "mph",
    WindSpeedUnit.KPH: "km/h",
    WindSpeedUnit.MPS: "m/s",
    WindSpeedUnit.KNOTS: "kn",
    WindSpeedUnit.FPS: "ft/s",
}

# Upper bound (inclusive, m/s) for Beaufort forces 1 through 11.
BEAUFORT_LIMITS = [
    (1.5, "Light air"),
    (3.4, "Light breeze"),
    (5.4, "Gentle breeze"),
    (7.9, "Moderate breeze"),
    (10.7, "Fresh breeze"),
    (13.8, "Strong breeze"),
    (17.1, "Moderate gale"),
    (20.7, "Fresh gale"),
    (24.4, "Strong gale"),
    (28.4, "Storm"),
    (32.6, "Violent storm"),
]

WIND_ARROWS = ["↓", "↙", "←", "↖", "↑", "↗", "→", "↘"]
WIND_LETTERS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def is_missing(value) -> bool:
    """True when a provider did not report a usable numeric value."""
    if value is None:
        return True
    try:
        return not math.isfinite(value)
    except TypeError:
        return True


@lru_cache(maxsize=32)
def parse_locale(tag: Optional[str]) -> Locale:
    """
    Resolve a POSIX or BCP 47 style locale tag to a Babel locale.

    Encodings and modifiers ("de_DE.UTF-8@euro") are ignored. Unknown
    or malformed tags fall back to en_US.
    """
    if not tag:
        return Locale.parse(DEFAULT_LOCALE)
    tag = tag.split(".")[0].split("@")[0].replace("-", "_")
    if tag in ("C", "POSIX"):
        tag = DEFAULT_LOCALE
    try:
        return Locale.parse(tag)
    except (UnknownLocaleError, ValueError):
        return Locale.parse(DEFAULT_LOCALE)


def format_number(value: float, decimals: int, locale: Optional[str] = None) -> str:
    """
    Round half-up to a fixed number of fractional digits and render it
    with the locale's separators and a Unicode minus sign.
    """
    if is_missing(value):
        return UNAVAILABLE
    decimals = max(0, int(decimals))
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        rounded = rounded.copy_abs()
    pattern = "#,##0" + ("." + "0" * decimals if decimals else "")
    text = format_decimal(rounded, format=pattern, locale=parse_locale(locale))
    return text.replace("-", MINUS_SIGN)


def convert_temperature(celsius: float, unit: TemperatureUnit) -> float:
    c = float(celsius)
    if unit == TemperatureUnit.FAHRENHEIT:
        return c * 1.8 + 32
    if unit == TemperatureUnit.KELVIN:
        return c + 273.15
    if unit == TemperatureUnit.RANKINE:
        return c * 1.8 + 491.67
    if unit == TemperatureUnit.REAUMUR:
        return c * 0.8
    if unit == TemperatureUnit.ROEMER:
        return c * 21 / 40 + 7.5
    if unit == TemperatureUnit.DELISLE:
        return (100 - c) * 1.5
    if unit == TemperatureUnit.NEWTON:
        return c - 0.33
    return c


def format_temperature(
    celsius: Optional[float],
    unit: TemperatureUnit = TemperatureUnit.CELSIUS,
    decimals: int = 1,
    locale: Optional[str] = None,
) -> str:
    """
    Format a Celsius reading in the requested unit.

    Args:
        celsius: Temperature in degrees Celsius, or None if not reported
        unit: Display unit
        decimals: Fractional digits to keep
        locale: Locale tag used for numerals (e.g. "de_DE")

    Returns:
        Formatted string such as "32.0 °F", or the placeholder glyph
    """
    if is_missing(celsius):
        return UNAVAILABLE
    unit = TemperatureUnit(unit)
    value = convert_temperature(celsius, unit)
    return f"{format_number(value, decimals, locale)} {TEMPERATURE_SYMBOLS[unit]}"


def convert_pressure(mbar: float, unit: PressureUnit) -> float:
    return float(mbar) * PRESSURE_FACTORS[PressureUnit(unit)]


def format_pressure(
    mbar: Optional[float],
    unit: PressureUnit = PressureUnit.HPA,
    decimals: int = 1,
    locale: Optional[str] = None,
) -> str:
    """Format a millibar reading in the requested pressure unit."""
    if is_missing(mbar):
        return UNAVAILABLE
    unit = PressureUnit(unit)
    value = convert_pressure(mbar, unit)
    return f"{format_number(value, decimals, locale)} {PRESSURE_SYMBOLS[unit]}"


def to_beaufort(mps: float) -> Tuple[int, str]:
    """Return the Beaufort force and its name for a wind speed in m/s."""
    if mps < 0.3:
        return 0, "Calm"
    for force, (limit, name) in enumerate(BEAUFORT_LIMITS, start=1):
        if mps <= limit:
            return force, name
    return 12, "Hurricane"


def format_wind_speed(
    mps: Optional[float],
    unit: WindSpeedUnit = WindSpeedUnit.KPH,
    decimals: int = 1,
    locale: Optional[str] = None,
) -> str:
    """
    Format a wind speed given in m/s.

    Beaufort renders the force followed by its name in place of a unit,
    e.g. "4 (Moderate breeze)".
    """
    if is_missing(mps):
        return UNAVAILABLE
    unit = WindSpeedUnit(unit)
    if unit == WindSpeedUnit.BEAUFORT:
        force, name = to_beaufort(float(mps))
        return f"{format_number(force, 0, locale)} ({name})"
    value = float(mps) * WIND_SPEED_FACTORS[unit]
    return f"{format_number(value, decimals, locale)} {WIND_SPEED_SYMBOLS[unit]}"


def wind_direction_index(degrees: float) -> int:
    # half-up rounding so 22.5 degrees already points NE
    return int(math.floor(float(degrees) / 45 + 0.5)) % 8


def format_wind_direction(degrees: Optional[float], use_arrows: bool = False) -> str:
    """Map degrees to one of eight compass arrows or letter abbreviations."""
    if is_missing(degrees):
        return UNAVAILABLE
    idx = wind_direction_index(degrees)
    return WIND_ARROWS[idx] if use_arrows else WIND_LETTERS[idx]


def format_wind(
    mps: Optional[float],
    degrees: Optional[float],
    unit: WindSpeedUnit = WindSpeedUnit.KPH,
    decimals: int = 1,
    use_arrows: bool = False,
    locale: Optional[str] = None,
) -> str:
    """
    Format speed and direction together, e.g. "NE 12.6 km/h".

    Direction is left out for Beaufort, for calm wind (speed rounds to
    zero) and when the provider did not report a direction.
    """
    speed = format_wind_speed(mps, unit, decimals, locale)
    if speed == UNAVAILABLE or WindSpeedUnit(unit) == WindSpeedUnit.BEAUFORT:
        return speed
    if is_missing(degrees):
        return speed
    factor = WIND_SPEED_FACTORS[WindSpeedUnit(unit)]
    quantum = Decimal(1).scaleb(-max(0, int(decimals)))
    if Decimal(repr(float(mps) * factor)).quantize(quantum, rounding=ROUND_HALF_UP).is_zero():
        return speed
    return f"{format_wind_direction(degrees, use_arrows)} {speed}"


def format_humidity(percent: Optional[float]) -> str:
    if is_missing(percent):
        return UNAVAILABLE
    return f"{percent:g}%"


def format_time(
    moment: Optional[datetime],
    clock_format: ClockFormat = ClockFormat.H24,
    locale: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> str:
    """
    Format the hour and minute of an instant.

    Naive datetimes are taken as UTC. The instant is shown in `tz`, or in
    the local zone when `tz` is None. The system clock format has no host
    preference to read here, so it renders as 24h.
    """
    if moment is None:
        return UNAVAILABLE
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(tz)
    pattern = "h:mm a" if ClockFormat(clock_format) == ClockFormat.H12 else "H:mm"
    return babel_format_time(local, format=pattern, locale=parse_locale(locale))