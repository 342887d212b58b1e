"""Refresh scheduling with caching, rate-limit backoff and reachability checks."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Set

from connectivity import ConnectivityChecker
from settings import CACHE_KEYS, Settings
from weather_client import WeatherClient
from weather_data import WeatherSnapshot
from weather_provider import ConfigurationError, TooManyRequestsError, provider_name

Notifier = Callable[[str, str], None]

NOTIFY_TITLE = "Weather Indicator"


class SchedulerPhase(Enum):
    IDLE = "idle"
    AWAITING_NETWORK = "awaiting_network"
    FETCHING = "fetching"
    COOLDOWN = "cooldown"
    BACKOFF = "backoff"


@dataclass
class CacheEntry:
    """Latest good weather and when it was fetched."""
    weather: WeatherSnapshot
    fetched_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()


@dataclass
class SchedulerState:
    """Mutable state owned by one scheduler instance."""
    phase: SchedulerPhase = SchedulerPhase.IDLE
    cache: Optional[CacheEntry] = None
    last_manual_refresh: Optional[datetime] = None
    connected: bool = False
    was_connected: bool = False
    connectivity_retries: int = 0
    connectivity_token: int = 0
    next_interval: Optional[float] = None
    attempts_remaining: int = 0
    configuration_error_shown: bool = False
    cache_generation: int = 0


def log_notifier(title: str, message: str) -> None:
    logging.warning(f"{title}: {message}")


class RefreshScheduler:
    """
    Decides when weather is fetched and owns the cached result.

    Periodic refreshes follow the configured interval. Failures are
    retried after FAILURE_RETRY_SECONDS; rate limits either rotate to
    another provider after a short delay or back off and notify the user.
    Only one fetch runs at a time; concurrent requests share it.
    """

    MANUAL_COOLDOWN_SECONDS = 120
    FAILURE_RETRY_SECONDS = 600
    FIRST_CONNECTIVITY_CHECK_SECONDS = 1.25
    CONNECTIVITY_RETRY_SECONDS = (10, 30, 60)

    REFRESH_TIMER = "refresh"
    CONNECTIVITY_TIMER = "connectivity"

    def __init__(
        self,
        client: WeatherClient,
        settings: Settings,
        connectivity: Optional[ConnectivityChecker] = None,
        notify: Notifier = log_notifier,
        clock: Optional[Callable[[], datetime]] = None,
        on_update: Optional[Callable[[WeatherSnapshot], None]] = None,
    ):
        self.client = client
        self.settings = settings
        self.connectivity = connectivity
        self.notify = notify
        self.on_update = on_update
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = SchedulerState()

        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._timer_delays: Dict[str, float] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._fetch_task: Optional[asyncio.Task] = None
        self._settings_listener: Optional[int] = None
        self._closed = False

    # Lifecycle

    def start(self) -> None:
        """Begin with a reachability check, or fetch straight away without one."""
        self._settings_listener = self.settings.connect(self._on_setting_changed)
        if not self._configuration_ok():
            return
        if self.connectivity is None:
            self._spawn(self.refresh())
        else:
            self.on_network_changed()

    def close(self) -> None:
        """Cancel every pending timer and in-flight task."""
        self._closed = True
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._timer_delays.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._settings_listener is not None:
            self.settings.disconnect(self._settings_listener)
            self._settings_listener = None
        self.state.phase = SchedulerPhase.IDLE

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        self.close()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def closed(self) -> bool:
        return self._closed

    # Cache

    @property
    def cached_weather(self) -> Optional[WeatherSnapshot]:
        return self.state.cache.weather if self.state.cache else None

    def invalidate_cache(self) -> None:
        """Drop cached weather and any fetch result still on its way."""
        if self.state.cache is not None:
            logging.info("Weather cache cleared")
        self.state.cache = None
        self.state.cache_generation += 1

    def cache_is_stale(self) -> bool:
        cache = self.state.cache
        if cache is None:
            return True
        return cache.age_seconds(self._clock()) > self.settings.refresh_interval_current

    # Timers

    def _spawn(self, coro: Awaitable) -> Optional[asyncio.Task]:
        if self._closed:
            coro.close()
            return None
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _schedule(self, name: str, delay: float, factory: Callable[[], Awaitable]) -> None:
        self._cancel_timer(name)
        if self._closed:
            return

        def fire():
            self._timers.pop(name, None)
            self._timer_delays.pop(name, None)
            self._spawn(factory())

        self._timers[name] = asyncio.get_running_loop().call_later(delay, fire)
        self._timer_delays[name] = delay

    def _cancel_timer(self, name: str) -> None:
        handle = self._timers.pop(name, None)
        self._timer_delays.pop(name, None)
        if handle is not None:
            handle.cancel()

    def scheduled_delay(self, name: str = REFRESH_TIMER) -> Optional[float]:
        """Delay in seconds the named timer was armed with, if pending."""
        return self._timer_delays.get(name)

    def _schedule_refresh(self, interval: float, phase: SchedulerPhase) -> None:
        self.state.phase = phase
        self.state.next_interval = interval
        logging.info(f"Next weather refresh in {interval}s")
        self._schedule(self.REFRESH_TIMER, interval, self.refresh)

    # Fetching

    async def refresh(self) -> Optional[WeatherSnapshot]:
        """
        Fetch now, or join the fetch already in flight.

        Returns:
            The new snapshot, or None if this refresh did not produce one
        """
        if self._closed:
            return None
        if self._fetch_task is None or self._fetch_task.done():
            self._fetch_task = self._spawn(self._fetch())
        return await asyncio.shield(self._fetch_task)

    async def manual_refresh(self) -> bool:
        """
        User-requested refresh. Requests less than two minutes after the
        previous accepted one are rejected with a notification.
        """
        now = self._clock()
        last = self.state.last_manual_refresh
        if last is not None and (now - last).total_seconds() < self.MANUAL_COOLDOWN_SECONDS:
            logging.info("Manual refresh rejected, previous one was less than 2 minutes ago")
            self.notify(NOTIFY_TITLE, "Manual refreshes less than 2 minutes apart are ignored!")
            return False
        self.state.last_manual_refresh = now
        await self.refresh()
        return True

    async def _fetch(self) -> Optional[WeatherSnapshot]:
        self._cancel_timer(self.REFRESH_TIMER)
        self.state.phase = SchedulerPhase.FETCHING
        while True:
            generation = self.state.cache_generation
            try:
                weather = await self.client.fetch()
            except TooManyRequestsError as e:
                self._on_rate_limited(e)
                return None
            except ConfigurationError as e:
                self._on_configuration_error(e)
                return None
            except Exception as e:
                logging.error(f"Unexpected error while fetching weather: {e}", exc_info=True)
                weather = None

            if self._closed:
                return None
            if generation == self.state.cache_generation:
                break
            # the cache was invalidated while this fetch ran with the old settings
            logging.info("Weather settings changed during fetch, fetching again")

        if weather is None:
            logging.warning(f"Weather fetch failed, retrying in {self.FAILURE_RETRY_SECONDS}s")
            self._schedule_refresh(self.FAILURE_RETRY_SECONDS, SchedulerPhase.COOLDOWN)
            return None

        self.state.cache = CacheEntry(weather, self._clock())
        self.state.attempts_remaining = 0
        self._schedule_refresh(self.settings.refresh_interval_current, SchedulerPhase.COOLDOWN)
        if self.on_update is not None:
            self.on_update(weather)
        return weather

    def _on_rate_limited(self, error: TooManyRequestsError) -> None:
        if self._closed:
            return
        policy = self.client.registry.get(error.provider).rate_limit_policy
        if self.client.provider_not_working(error.provider):
            self.state.attempts_remaining = self.client.providers_remaining()
            logging.info(
                f"{provider_name(error.provider)} rate limited, trying "
                f"{provider_name(self.client.active_provider_id())} in {policy.rotate_delay_seconds}s"
            )
            self._schedule_refresh(policy.rotate_delay_seconds, SchedulerPhase.BACKOFF)
            return

        self.state.attempts_remaining = 0
        self.notify(
            f"{NOTIFY_TITLE}: Too Many Requests",
            f"Provider {provider_name(error.provider)} has too many users. "
            f"Try switching weather providers in settings.",
        )
        self.client.rotation.reset()
        self._schedule_refresh(policy.backoff_seconds, SchedulerPhase.BACKOFF)

    def _on_configuration_error(self, error: ConfigurationError) -> None:
        logging.error(f"Weather provider misconfigured: {error}")
        self.state.phase = SchedulerPhase.IDLE
        if not self.state.configuration_error_shown:
            self.state.configuration_error_shown = True
            self.notify(NOTIFY_TITLE, str(error))

    def _configuration_ok(self) -> bool:
        try:
            self.client.check_configuration()
        except ConfigurationError as e:
            self._on_configuration_error(e)
            return False
        return True

    # Network

    def on_network_changed(self) -> None:
        """Start a fresh reachability check with a full retry ladder."""
        if self._closed:
            return
        self.state.was_connected = self.state.connected
        self.state.connected = False
        self.state.connectivity_retries = len(self.CONNECTIVITY_RETRY_SECONDS)
        if self.state.phase != SchedulerPhase.FETCHING:
            self.state.phase = SchedulerPhase.AWAITING_NETWORK
        self._schedule_connectivity_check(self.FIRST_CONNECTIVITY_CHECK_SECONDS)

    def _schedule_connectivity_check(self, delay: float) -> None:
        self.state.connectivity_token += 1
        token = self.state.connectivity_token
        self._schedule(self.CONNECTIVITY_TIMER, delay, lambda: self._check_connectivity(token))

    async def _check_connectivity(self, token: int) -> None:
        if self.connectivity is None:
            reachable = True
        else:
            reachable = await self.connectivity.can_reach(self._reachability_url())

        # a newer network change superseded this check
        if self._closed or token != self.state.connectivity_token:
            return

        if not reachable:
            self._retry_connectivity()
            return

        self.state.connected = True
        if not self.state.was_connected:
            await self._on_reconnected()
        elif self.state.phase == SchedulerPhase.AWAITING_NETWORK:
            self.state.phase = SchedulerPhase.COOLDOWN if self.scheduled_delay() else SchedulerPhase.IDLE

    def _reachability_url(self) -> str:
        """URL of the active provider, or of the first registered one if none is valid."""
        try:
            return self.client.active_provider().url
        except ConfigurationError as e:
            fallback = self.client.registry.get(self.client.registry.ids()[0]).url
            logging.warning(f"{e}, checking reachability of {fallback} instead")
            return fallback

    def _retry_connectivity(self) -> None:
        retries = self.state.connectivity_retries
        if retries <= 0:
            logging.warning("Network still unreachable, waiting for the next network change")
            return
        ladder = self.CONNECTIVITY_RETRY_SECONDS
        delay = ladder[len(ladder) - retries]
        self.state.connectivity_retries = retries - 1
        logging.info(f"Network unreachable, checking again in {delay}s")
        self._schedule_connectivity_check(delay)

    async def _on_reconnected(self) -> None:
        if not self.cache_is_stale():
            logging.info("Network connected, cached weather is still fresh")
            self.state.phase = SchedulerPhase.COOLDOWN if self.scheduled_delay() else SchedulerPhase.IDLE
            return
        logging.info("Network connected, refreshing stale weather")
        self.invalidate_cache()
        await self.refresh()

    # Settings

    def _on_setting_changed(self, key: str) -> None:
        if self._closed or self.settings.is_frozen:
            return
        if key == "owm-api-key":
            self.state.configuration_error_shown = False
        if key in CACHE_KEYS or key == "owm-api-key":
            logging.info(f"Setting '{key}' changed, refreshing weather")
            self.invalidate_cache()
            if self._configuration_ok():
                self._spawn(self.refresh())
        elif key == "refresh-interval-current" and self.state.phase == SchedulerPhase.COOLDOWN and self.state.cache:
            self._schedule_refresh(self.settings.refresh_interval_current, SchedulerPhase.COOLDOWN)
