"""Forecast model: days of fixed-width slots and time-offset lookup."""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import List, Optional, Sequence, Tuple

from babel.dates import format_date

import units
from weather_data import WeatherSnapshot

SLOT_HOURS = 3
SLOTS_PER_DAY = 8
TODAY_SLOT_COUNT = 4
POD_DAY = "d"


@dataclass(frozen=True)
class ForecastSlot:
    """Weather for one forecast bucket [start, end)."""
    start: datetime
    end: datetime
    weather: WeatherSnapshot

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"Forecast slot ends before it starts: {self.start} - {self.end}")

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    def display_time(self, clock_format=units.ClockFormat.H24, locale=None, tz=None) -> str:
        return units.format_time(self.start, clock_format, locale, tz)


@dataclass(frozen=True)
class ForecastDay:
    label: str
    slots: Tuple[ForecastSlot, ...]


class ForecastTimeline:
    """
    Ordered days of contiguous, uniformly sized forecast slots.

    Built once from a provider response and never mutated.
    """

    def __init__(self, days: Sequence[Sequence[ForecastSlot]]):
        if not days or any(not day for day in days):
            raise ValueError("Forecast timeline needs at least one slot per day")
        self._days: Tuple[Tuple[ForecastSlot, ...], ...] = tuple(tuple(day) for day in days)
        self._validate()

    @classmethod
    def from_slots(cls, slots: Sequence[ForecastSlot], per_day: int = SLOTS_PER_DAY) -> "ForecastTimeline":
        """Group a flat slot sequence into days of `per_day` slots."""
        return cls([slots[i:i + per_day] for i in range(0, len(slots), per_day)])

    def _validate(self) -> None:
        duration = self._days[0][0].end - self._days[0][0].start
        width = len(self._days[0])
        for index, day in enumerate(self._days):
            if index < len(self._days) - 1 and len(day) != width:
                raise ValueError("Forecast days must have the same number of slots")
            previous = None
            for slot in day:
                if slot.end - slot.start != duration:
                    raise ValueError("Forecast slots must have a uniform duration")
                if previous is not None and slot.start != previous.end:
                    raise ValueError("Forecast slots within a day must be contiguous")
                previous = slot

    @property
    def days(self) -> Tuple[Tuple[ForecastSlot, ...], ...]:
        return self._days

    def day_count(self) -> int:
        return len(self._days)

    def slot_count(self, day_index: int) -> int:
        return len(self._days[day_index])

    def slot(self, day_index: int, slot_index: int) -> ForecastSlot:
        return self._days[day_index][slot_index]

    def first_slot(self) -> ForecastSlot:
        return self._days[0][0]

    def last_slot(self) -> ForecastSlot:
        return self._days[-1][-1]

    def at_offset_hours(self, hours_from_now: float, now: Optional[datetime] = None) -> ForecastSlot:
        """
        Slot covering the instant `hours_from_now` hours after `now`.

        Past the end of the data this saturates to the final slot rather
        than failing or extrapolating.
        """
        now = now or datetime.now(timezone.utc)
        target = now + timedelta(hours=hours_from_now)
        for day in self._days:
            if target > day[-1].end:
                continue
            distance_hours = (target - day[0].start).total_seconds() / 3600
            index = math.ceil(distance_hours / day[-1].duration_hours)
            return day[min(max(index, 0), len(day) - 1)]
        return self.last_slot()

    def today_slots(self, now: Optional[datetime] = None) -> List[ForecastSlot]:
        """The next four slots, three hours apart."""
        now = now or datetime.now(timezone.utc)
        return [self.at_offset_hours(i * SLOT_HOURS, now) for i in range(TODAY_SLOT_COUNT)]

    def daily_rows(
        self,
        days: int,
        now: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
        locale: Optional[str] = None,
    ) -> List[ForecastDay]:
        """
        Forecast rows for the days after today, eight slots each.

        Each row starts at the local midnight following `now`, shifted by
        whole days, so the rows line up with calendar days in `tz`.
        """
        now = now or datetime.now(timezone.utc)
        local_now = now.astimezone(tz)
        hours_to_midnight = 24 - local_now.hour
        begin_of_day = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        day_count = min(days + 1, self.day_count())

        rows = []
        for i in range(day_count - 1):
            slots = tuple(
                self.at_offset_hours(i * 24 + hours_to_midnight + j * SLOT_HOURS, now)
                for j in range(SLOTS_PER_DAY)
            )
            first_start = slots[0].start.astimezone(tz)
            days_left = math.floor((first_start - begin_of_day).total_seconds() / 86400)
            if days_left == 1:
                label = "Tomorrow"
            else:
                label = format_date(first_start.date(), format="EEEE", locale=units.parse_locale(locale))
            rows.append(ForecastDay(label, slots))
        return rows


def correct_sun_times(
    sunrise: datetime, sunset: datetime, first_part_of_day: Optional[str]
) -> Tuple[datetime, datetime]:
    """
    Move sunrise or sunset to tomorrow based on the first forecast slot.

    Providers report both for the current calendar date even when the
    next sunrise is tomorrow morning. If the first slot is daytime the
    next sunrise is tomorrow; if it is night, the next sunset is.
    """
    one_day = timedelta(days=1)
    if first_part_of_day == POD_DAY:
        return sunrise + one_day, sunset
    return sunrise, sunset + one_day


def utc_from_timestamp(seconds: Optional[float]) -> Optional[datetime]:
    if units.is_missing(seconds):
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
