"""Typed key/value settings consulted by the weather core."""
import logging
import os
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

from dotenv import load_dotenv

from units import PRESSURE_AUTO_DECIMALS, ClockFormat, PressureUnit, TemperatureUnit, WindSpeedUnit

MIN_REFRESH_INTERVAL_CURRENT = 600
MIN_REFRESH_INTERVAL_FORECAST = 3600

PRESSURE_DECIMALS_AUTO = -2
DECIMALS_FOLLOW_GENERAL = -1

DEFAULTS = {
    "unit": int(TemperatureUnit.CELSIUS),
    "pressure-unit": int(PressureUnit.HPA),
    "wind-speed-unit": int(WindSpeedUnit.KPH),
    "weather-provider": 0,
    "clock-format": int(ClockFormat.H24),
    "decimal-places": 1,
    "pressure-decimal-places": PRESSURE_DECIMALS_AUTO,
    "speed-decimal-places": DECIMALS_FOLLOW_GENERAL,
    "refresh-interval-current": 600,
    "refresh-interval-forecast": 3600,
    "days-forecast": 2,
    "actual-city": 0,
    "loc-refresh-interval": 30.0,
    "disable-forecast": False,
    "translate-condition": True,
    "owm-api-translate": False,
    "wind-direction": False,
    "frozen": False,
    "owm-api-key": "",
    "locale": "en_US",
    "provider-lang": "",
}

# Keys whose change makes the cached weather unusable.
CACHE_KEYS = {"days-forecast", "owm-api-translate", "disable-forecast", "weather-provider", "actual-city"}

Listener = Callable[[str], None]


class Settings:
    """
    In-memory settings store with typed getters and change listeners.

    Setters notify listeners with the changed key unless the store is
    frozen; writes made inside `frozen()` are never announced.
    """

    def __init__(self, values: Optional[Dict[str, object]] = None):
        self._values = dict(DEFAULTS)
        if values:
            for key, value in values.items():
                self._check_key(key)
                self._values[key] = value
        self._listeners: Dict[int, Listener] = {}
        self._next_listener_id = 1
        self._freeze_depth = 0

    def _check_key(self, key: str) -> None:
        if key not in DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")

    def _get(self, key: str):
        self._check_key(key)
        return self._values[key]

    def get_enum(self, key: str) -> int:
        return int(self._get(key))

    def get_int(self, key: str) -> int:
        return int(self._get(key))

    def get_double(self, key: str) -> float:
        return float(self._get(key))

    def get_boolean(self, key: str) -> bool:
        return bool(self._get(key))

    def get_string(self, key: str) -> str:
        value = self._get(key)
        return "" if value is None else str(value)

    def _set(self, key: str, value) -> None:
        self._check_key(key)
        if self._values[key] == value:
            return
        self._values[key] = value
        logging.debug(f"Setting changed: {key}={value!r}")
        if not self.is_frozen:
            self._notify(key)

    def set_enum(self, key: str, value: int) -> None:
        self._set(key, int(value))

    def set_int(self, key: str, value: int) -> None:
        self._set(key, int(value))

    def set_double(self, key: str, value: float) -> None:
        self._set(key, float(value))

    def set_boolean(self, key: str, value: bool) -> None:
        self._set(key, bool(value))

    def set_string(self, key: str, value: str) -> None:
        self._set(key, str(value))

    @property
    def is_frozen(self) -> bool:
        return self._freeze_depth > 0 or bool(self._values["frozen"])

    @contextmanager
    def frozen(self) -> Iterator["Settings"]:
        """Suppress change notifications for the duration of a bulk write."""
        self._freeze_depth += 1
        try:
            yield self
        finally:
            self._freeze_depth -= 1

    def connect(self, listener: Listener) -> int:
        listener_id = self._next_listener_id
        self._next_listener_id += 1
        self._listeners[listener_id] = listener
        return listener_id

    def disconnect(self, listener_id: int) -> None:
        self._listeners.pop(listener_id, None)

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners.values()):
            listener(key)

    # Derived values

    @property
    def temperature_unit(self) -> TemperatureUnit:
        return TemperatureUnit(self.get_enum("unit"))

    @property
    def pressure_unit(self) -> PressureUnit:
        return PressureUnit(self.get_enum("pressure-unit"))

    @property
    def wind_speed_unit(self) -> WindSpeedUnit:
        return WindSpeedUnit(self.get_enum("wind-speed-unit"))

    @property
    def clock_format(self) -> ClockFormat:
        return ClockFormat(self.get_enum("clock-format"))

    @property
    def decimal_places(self) -> int:
        return self.get_int("decimal-places")

    @property
    def pressure_decimal_places(self) -> int:
        places = self.get_int("pressure-decimal-places")
        if places == PRESSURE_DECIMALS_AUTO:
            return PRESSURE_AUTO_DECIMALS[self.pressure_unit]
        if places == DECIMALS_FOLLOW_GENERAL:
            return self.decimal_places
        return places

    @property
    def speed_decimal_places(self) -> int:
        places = self.get_int("speed-decimal-places")
        if places == DECIMALS_FOLLOW_GENERAL:
            return self.decimal_places
        return places

    @property
    def wind_direction_arrows(self) -> bool:
        return self.get_boolean("wind-direction")

    @property
    def refresh_interval_current(self) -> int:
        return max(self.get_int("refresh-interval-current"), MIN_REFRESH_INTERVAL_CURRENT)

    @property
    def refresh_interval_forecast(self) -> int:
        return max(self.get_int("refresh-interval-forecast"), MIN_REFRESH_INTERVAL_FORECAST)

    @property
    def days_forecast(self) -> int:
        return self.get_int("days-forecast")

    @property
    def forecast_disabled(self) -> bool:
        return self.get_boolean("disable-forecast")

    @property
    def provider_translations(self) -> bool:
        return self.get_boolean("owm-api-translate")

    @property
    def translate_condition(self) -> bool:
        return self.get_boolean("translate-condition")

    @property
    def locale(self) -> str:
        return self.get_string("locale")


PROVIDER_ENV_NAMES = {
    "auto": 0,
    "openweathermap": 1,
    "openmeteo": 2,
}


def load_settings(values: Optional[Dict[str, object]] = None) -> Settings:
    """
    Build settings from the environment (and a .env file if present).

    Explicit `values` override anything read from the environment.
    """
    load_dotenv()
    env_values: Dict[str, object] = {}

    api_key = os.getenv("WEATHER_API_KEY")
    if api_key:
        env_values["owm-api-key"] = api_key.strip()

    provider = os.getenv("WEATHER_PROVIDER")
    if provider:
        if provider.lower() not in PROVIDER_ENV_NAMES:
            raise SystemExit(f"Invalid WEATHER_PROVIDER: {provider}")
        env_values["weather-provider"] = PROVIDER_ENV_NAMES[provider.lower()]

    locale = os.getenv("WEATHER_LOCALE") or os.getenv("LANG")
    if locale:
        env_values["locale"] = locale

    lang = os.getenv("WEATHER_LANG")
    if lang:
        env_values["owm-api-translate"] = True
        env_values["provider-lang"] = lang

    env_values.update(values or {})
    logging.info(f"Settings loaded: provider={env_values.get('weather-provider', 0)} locale={env_values.get('locale', DEFAULTS['locale'])}")
    return Settings(env_values)
