"""Console weather indicator: current conditions plus forecast."""
import argparse
import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv

import units
from connectivity import ConnectivityChecker
from location import FixedLocation, IpLocation, LocationList, LocationProviderBase
from refresh_scheduler import RefreshScheduler
from settings import Settings, load_settings
from weather_client import WeatherClient, build_registry
from weather_data import SUNSET, WeatherSnapshot
from weather_provider import ConfigurationError, TooManyRequestsError

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_LOG_FILE = os.path.join(BASE_DIR, "weather-indicator.log")


def _choices(enum_cls) -> List[str]:
    return [member.name.lower() for member in enum_cls]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Weather indicator")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--units", choices=_choices(units.TemperatureUnit), default="celsius")
    parser.add_argument("--pressure-units", choices=_choices(units.PressureUnit), default="hpa")
    parser.add_argument("--wind-units", choices=_choices(units.WindSpeedUnit), default="kph")
    parser.add_argument("--days", type=int, default=2, help="Forecast days after today")
    parser.add_argument("--refresh", type=int, default=600, help="Seconds between refreshes")
    parser.add_argument("--timeout", type=int, default=10, help="HTTP timeout in seconds")
    parser.add_argument("--once", action="store_true", help="Fetch and print once, then exit")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: str, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def load_config(settings: Settings, timeout: int) -> LocationList:
    """Locations from the environment: WEATHER_LAT/WEATHER_LON, else IP lookup."""
    load_dotenv()
    lat = os.getenv("WEATHER_LAT")
    lon = os.getenv("WEATHER_LON")

    locations: List[LocationProviderBase] = []
    if lat and lon:
        try:
            locations.append(FixedLocation(os.getenv("WEATHER_CITY", "Configured"), float(lat), float(lon)))
        except ValueError as exc:
            raise SystemExit(f"Invalid coordinates: {exc}") from exc
    elif lat or lon:
        raise SystemExit("Set both WEATHER_LAT and WEATHER_LON, or neither")
    else:
        locations.append(IpLocation(settings.get_double("loc-refresh-interval"), timeout=timeout))

    logging.info(f"Configuration loaded: locations={[location.name for location in locations]}")
    return LocationList(settings, locations)


def build_settings(args: argparse.Namespace) -> Settings:
    return load_settings({
        "unit": int(units.TemperatureUnit[args.units.upper()]),
        "pressure-unit": int(units.PressureUnit[args.pressure_units.upper()]),
        "wind-speed-unit": int(units.WindSpeedUnit[args.wind_units.upper()]),
        "days-forecast": args.days,
        "refresh-interval-current": args.refresh,
    })


def format_panel(weather: WeatherSnapshot, settings: Settings, now: Optional[datetime] = None) -> List[str]:
    """Text lines of the indicator panel for one snapshot."""
    now = now or datetime.now(timezone.utc)
    locale = settings.locale
    clock = settings.clock_format

    lines = [f"{weather.condition}  {weather.display_temperature(settings, locale)}"]
    sun = weather.next_sun_event(now)
    if sun is not None:
        event, moment = sun
        label = "Sunset" if event == SUNSET else "Sunrise"
        lines.append(f"{label}: {units.format_time(moment, clock, locale)}")
    lines.append(f"Feels like: {weather.display_feels_like(settings, locale)}")
    lines.append(f"Humidity: {weather.display_humidity()}")
    lines.append(f"Pressure: {weather.display_pressure(settings, locale)}")
    lines.append(f"Wind: {weather.display_wind(settings, locale)}")
    if weather.gusts_available():
        lines.append(f"Gusts: {weather.display_gusts(settings, locale)}")

    if weather.has_forecast():
        today = weather.forecast.today_slots(now)
        lines.append("Today: " + "  ".join(
            f"{slot.display_time(clock, locale)} {slot.weather.display_temperature(settings, locale)}"
            for slot in today
        ))
        for row in weather.forecast.daily_rows(settings.days_forecast, now, locale=locale):
            temps = [slot.weather.temp for slot in row.slots if not units.is_missing(slot.weather.temp)]
            if not temps:
                lines.append(f"{row.label}: {units.UNAVAILABLE}")
                continue
            low = units.format_temperature(min(temps), settings.temperature_unit, settings.decimal_places, locale)
            high = units.format_temperature(max(temps), settings.temperature_unit, settings.decimal_places, locale)
            lines.append(f"{row.label}: {low} / {high}  {row.slots[len(row.slots) // 2].weather.condition}")
    return lines


def print_panel(weather: WeatherSnapshot, settings: Settings) -> None:
    print("\n".join(format_panel(weather, settings)), flush=True)


async def run_once(client: WeatherClient) -> int:
    try:
        weather = await client.fetch()
    except (TooManyRequestsError, ConfigurationError) as err:
        logging.error(f"Weather fetch failed: {err}")
        return 1
    if weather is None:
        logging.error("Weather fetch failed")
        return 1
    print_panel(weather, client.settings)
    return 0


async def run(args: argparse.Namespace) -> int:
    settings = build_settings(args)
    locations = load_config(settings, args.timeout)
    client = WeatherClient(settings, locations, registry=build_registry(args.timeout))

    if args.once:
        return await run_once(client)

    scheduler = RefreshScheduler(
        client,
        settings,
        connectivity=ConnectivityChecker(args.timeout),
        on_update=lambda weather: print_panel(weather, settings),
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    scheduler.start()
    try:
        await stop.wait()
    finally:
        logging.info("Stopping weather indicator")
        await scheduler.shutdown()
    return 0


def main() -> None:
    args = parse_args()
    setup_logging(args.log_file, args.verbose)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
