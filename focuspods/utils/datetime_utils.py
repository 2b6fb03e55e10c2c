# utils/datetime_utils.py

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, date
from typing import Optional

import pytz

DEFAULT_TIMEZONE = "Europe/Moscow"


def get_timezone(name: str = DEFAULT_TIMEZONE):
    return pytz.timezone(name)


class Clock(ABC):
    """Источник текущего времени для движка"""

    @abstractmethod
    def now(self) -> datetime:
        """Текущий момент (timezone-aware)"""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Системные часы в часовом поясе сервиса"""

    def __init__(self, timezone_name: str = DEFAULT_TIMEZONE):
        self.tz = get_timezone(timezone_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)


@dataclass(frozen=True)
class RemainingTime:
    """Оставшееся время для отображения прогресса"""
    minutes: int
    seconds: int

    @property
    def total_seconds(self) -> int:
        return self.minutes * 60 + self.seconds

    @property
    def formatted(self) -> str:
        return format_remaining(self.minutes, self.seconds)


def remaining_until(deadline: datetime, now: datetime) -> RemainingTime:
    """max(0, deadline - now), разложенное на минуты и секунды"""
    remaining_ms = max(0, int((deadline - now).total_seconds() * 1000))
    minutes, rest_ms = divmod(remaining_ms, 60 * 1000)
    return RemainingTime(minutes=minutes, seconds=rest_ms // 1000)


def format_remaining(minutes: int, seconds: int) -> str:
    return f"{minutes:02d}:{seconds:02d}"


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Целые минуты между моментами (с округлением вниз)"""
    elapsed = (end - start).total_seconds()
    return max(0, int(elapsed // 60))


def hours_left_in_day(now: datetime) -> int:
    return 24 - now.hour


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value[:10])


def to_iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None
