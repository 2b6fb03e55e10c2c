"""
Общие фикстуры: фиктивные часы, ручные таймеры, записывающий notifier
"""

from datetime import datetime, timedelta
from typing import List, Tuple

import pytest
import pytz

from focuspods.config import EngineConfig, StorageBackend, StorageConfig
from focuspods.core.models import NotificationType, User
from focuspods.database import InMemoryStore
from focuspods.services import build_engine
from focuspods.services.notifier import Notifier
from focuspods.services.timers import TimerCallback, TimerHandle, TimerScheduler
from focuspods.utils.datetime_utils import Clock

MOSCOW = pytz.timezone("Europe/Moscow")


class FakeClock(Clock):
    """Часы, которые двигаются только вручную"""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment

    def advance(self, **delta) -> None:
        self.current += timedelta(**delta)


class ManualTimers(TimerScheduler):
    """Таймеры на виртуальном времени FakeClock"""

    def __init__(self, clock: FakeClock):
        super().__init__()
        self.clock = clock
        self._queue: List[Tuple[datetime, TimerHandle, TimerCallback]] = []

    def _schedule(self, handle: TimerHandle, callback: TimerCallback) -> None:
        due = self.clock.now() + timedelta(seconds=handle.delay_seconds)
        self._queue.append((due, handle, callback))

    async def advance(self, **delta) -> None:
        """Сдвинуть часы и выполнить все наступившие таймеры по порядку"""
        self.clock.advance(**delta)
        await self.fire_due()

    async def fire_due(self) -> None:
        while True:
            due_entries = [
                entry for entry in self._queue
                if entry[1].pending and entry[0] <= self.clock.now()
            ]
            if not due_entries:
                break

            entry = min(due_entries, key=lambda e: e[0])
            self._queue.remove(entry)
            _, handle, callback = entry
            self._release(handle)
            await callback()

        self._queue = [entry for entry in self._queue if entry[1].pending]


class RecordingNotifier(Notifier):
    """Notifier, запоминающий все отправленные сообщения"""

    def __init__(self):
        self.sent: List[Tuple[str, str, NotificationType]] = []

    async def send(self, user_id: str, message: str,
                   notification_type: NotificationType = NotificationType.REMINDER) -> None:
        self.sent.append((user_id, message, notification_type))

    def of_type(self, notification_type: NotificationType) -> List[Tuple[str, str, NotificationType]]:
        return [item for item in self.sent if item[2] == notification_type]

    def to(self, user_id: str) -> List[Tuple[str, str, NotificationType]]:
        return [item for item in self.sent if item[0] == user_id]


@pytest.fixture
def clock():
    return FakeClock(MOSCOW.localize(datetime(2026, 10, 19, 10, 0, 0)))


@pytest.fixture
def timers(clock):
    return ManualTimers(clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def config():
    return EngineConfig(storage=StorageConfig(backend=StorageBackend.MEMORY))


@pytest.fixture
def engine(config, store, notifier, clock, timers):
    return build_engine(config, store=store, notifier=notifier, clock=clock, timers=timers)


@pytest.fixture
def make_user(store, clock):
    counter = {'value': 0}

    def factory(name: str = "Alice", **fields) -> User:
        counter['value'] += 1
        user = store.create_user(User.create(f"tg-{counter['value']}", name, now=clock.now()))
        if fields:
            user = store.update_user(user.user_id, **fields)
        return user

    return factory
