"""Condition text and icon lookup for provider weather codes."""
from weather_provider import WeatherProvider

NOT_AVAILABLE = "Not available"

# https://openweathermap.org/weather-conditions
OPENWEATHERMAP_CONDITIONS = {
    200: "Thunderstorm with Light Rain",
    201: "Thunderstorm with Rain",
    202: "Thunderstorm with Heavy Rain",
    210: "Light Thunderstorm",
    211: "Thunderstorm",
    212: "Heavy Thunderstorm",
    221: "Ragged Thunderstorm",
    230: "Thunderstorm with Light Drizzle",
    231: "Thunderstorm with Drizzle",
    232: "Thunderstorm with Heavy Drizzle",
    300: "Light Drizzle",
    301: "Drizzle",
    302: "Heavy Drizzle",
    310: "Light Drizzle Rain",
    311: "Drizzle Rain",
    312: "Heavy Drizzle Rain",
    313: "Shower Rain and Drizzle",
    314: "Heavy Rain and Drizzle",
    321: "Shower Drizzle",
    500: "Light Rain",
    501: "Moderate Rain",
    502: "Heavy Rain",
    503: "Very Heavy Rain",
    504: "Extreme Rain",
    511: "Freezing Rain",
    520: "Light Shower Rain",
    521: "Shower Rain",
    522: "Heavy Shower Rain",
    531: "Ragged Shower Rain",
    600: "Light Snow",
    601: "Snow",
    602: "Heavy Snow",
    611: "Sleet",
    612: "Light Shower Sleet",
    613: "Shower Sleet",
    615: "Light Rain and Snow",
    616: "Rain and Snow",
    620: "Light Shower Snow",
    621: "Shower Snow",
    622: "Heavy Shower Snow",
    701: "Mist",
    711: "Smoke",
    721: "Haze",
    731: "Sand/Dust Whirls",
    741: "Fog",
    751: "Sand",
    761: "Dust",
    762: "Volcanic Ash",
    771: "Squalls",
    781: "Tornado",
    800: "Clear Sky",
    801: "Few Clouds",
    802: "Scattered Clouds",
    803: "Broken Clouds",
    804: "Overcast Clouds",
}

# WMO 4677 codes as published by Open-Meteo
WMO_CONDITIONS = {
    0: "Clear Sky",
    1: "Mainly Clear",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing Rime Fog",
    51: "Light Drizzle",
    53: "Moderate Drizzle",
    55: "Dense Drizzle",
    56: "Light Freezing Drizzle",
    57: "Dense Freezing Drizzle",
    61: "Slight Rain",
    63: "Moderate Rain",
    65: "Heavy Rain",
    66: "Light Freezing Rain",
    67: "Heavy Freezing Rain",
    71: "Slight Snow Fall",
    73: "Moderate Snow Fall",
    75: "Heavy Snow Fall",
    77: "Snow Grains",
    80: "Slight Rain Showers",
    81: "Moderate Rain Showers",
    82: "Violent Rain Showers",
    85: "Slight Snow Showers",
    86: "Heavy Snow Showers",
    95: "Thunderstorm",
    96: "Thunderstorm with Slight Hail",
    99: "Thunderstorm with Heavy Hail",
}

CLEAR = "clear"
FEW_CLOUDS = "few-clouds"
OVERCAST = "overcast"
SHOWERS = "showers"
SHOWERS_SCATTERED = "showers-scattered"
STORM = "storm"
SNOW = "snow"
FOG = "fog"

OPENWEATHERMAP_ICONS = {
    "01d": CLEAR,
    "02d": FEW_CLOUDS,
    "03d": FEW_CLOUDS,
    "04d": OVERCAST,
    "09d": SHOWERS_SCATTERED,
    "10d": SHOWERS,
    "11d": STORM,
    "13d": SNOW,
    "50d": FOG,
    "01n": CLEAR,
    "02n": FEW_CLOUDS,
    "03n": FEW_CLOUDS,
    "04n": OVERCAST,
    "09n": SHOWERS_SCATTERED,
    "10n": SHOWERS,
    "11n": STORM,
    "13n": SNOW,
    "50n": FOG,
}

WMO_ICONS = {
    0: CLEAR,
    1: CLEAR,
    2: FEW_CLOUDS,
    3: OVERCAST,
    45: FOG,
    48: FOG,
    51: SHOWERS_SCATTERED,
    53: SHOWERS_SCATTERED,
    55: SHOWERS_SCATTERED,
    56: SHOWERS_SCATTERED,
    57: SHOWERS_SCATTERED,
    61: SHOWERS,
    63: SHOWERS,
    65: SHOWERS,
    66: SHOWERS,
    67: SHOWERS,
    71: SNOW,
    73: SNOW,
    75: SNOW,
    77: SNOW,
    80: SHOWERS_SCATTERED,
    81: SHOWERS_SCATTERED,
    82: SHOWERS,
    85: SNOW,
    86: SNOW,
    95: STORM,
    96: STORM,
    99: STORM,
}

NIGHT_VARIANTS = {CLEAR, FEW_CLOUDS}


def condition_text(provider: WeatherProvider, code) -> str:
    """Canonical English phrase for a provider condition code."""
    try:
        code = int(code)
    except (TypeError, ValueError):
        return NOT_AVAILABLE
    if provider == WeatherProvider.OPENWEATHERMAP:
        return OPENWEATHERMAP_CONDITIONS.get(code, NOT_AVAILABLE)
    if provider == WeatherProvider.OPENMETEO:
        return WMO_CONDITIONS.get(code, NOT_AVAILABLE)
    return NOT_AVAILABLE


def icon_family(provider: WeatherProvider, key) -> str:
    if provider == WeatherProvider.OPENWEATHERMAP:
        return OPENWEATHERMAP_ICONS.get(str(key), OVERCAST)
    if provider == WeatherProvider.OPENMETEO:
        try:
            return WMO_ICONS.get(int(key), OVERCAST)
        except (TypeError, ValueError):
            return OVERCAST
    return OVERCAST


def icon_name(provider: WeatherProvider, key, is_night: bool) -> str:
    """
    Build the themed icon name for a provider icon key.

    Only clear and few-clouds have night artwork; the name always
    carries the symbolic suffix, e.g. "weather-clear-night-symbolic".
    """
    family = icon_family(provider, key)
    name = f"weather-{family}"
    if is_night and family in NIGHT_VARIANTS:
        name += "-night"
    return name + "-symbolic"
