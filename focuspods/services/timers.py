"""
Сервис отложенных таймеров

Таймеры сессий и Pod'ов живут только в памяти процесса. Повторный arm()
с тем же ключом заменяет предыдущий таймер.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


def session_timer_key(session_id: str) -> str:
    return f"session:{session_id}"


def pod_timer_key(pod_id: str) -> str:
    return f"pod:{pod_id}"


class TimerHandle:
    """Дескриптор одного взведённого таймера"""

    def __init__(self, key: str, delay_seconds: float):
        self.key = key
        self.delay_seconds = delay_seconds
        self.cancelled = False
        self.fired = False
        self._canceller: Optional[Callable[[], None]] = None

    def bind(self, canceller: Callable[[], None]) -> None:
        self._canceller = canceller

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> bool:
        if not self.pending:
            return False
        self.cancelled = True
        if self._canceller:
            self._canceller()
        return True

    def __repr__(self) -> str:
        state = "fired" if self.fired else "cancelled" if self.cancelled else "pending"
        return f"<TimerHandle {self.key} {state}>"


class TimerScheduler(ABC):
    """Планировщик отложенных колбэков с отменой по ключу"""

    def __init__(self):
        self._handles: Dict[str, TimerHandle] = {}

    @abstractmethod
    def _schedule(self, handle: TimerHandle, callback: TimerCallback) -> None:
        """Запланировать срабатывание handle"""

    def arm(self, key: str, delay_seconds: float, callback: TimerCallback) -> TimerHandle:
        """Взвести таймер: callback будет вызван через delay_seconds"""
        self.disarm(key)

        handle = TimerHandle(key, max(0.0, delay_seconds))
        self._handles[key] = handle
        self._schedule(handle, callback)

        logger.debug(f"⏰ Таймер {key} взведён на {handle.delay_seconds:.0f} сек")
        return handle

    def disarm(self, key: str) -> bool:
        """Снять таймер; False, если таймера с таким ключом нет"""
        handle = self._handles.pop(key, None)
        if handle is None:
            return False

        cancelled = handle.cancel()
        if cancelled:
            logger.debug(f"⏹️ Таймер {key} снят")
        return cancelled

    def is_armed(self, key: str) -> bool:
        handle = self._handles.get(key)
        return handle is not None and handle.pending

    def pending_keys(self) -> List[str]:
        return [key for key, handle in self._handles.items() if handle.pending]

    def _release(self, handle: TimerHandle) -> None:
        """Убрать сработавший таймер из реестра до вызова колбэка"""
        handle.fired = True
        if self._handles.get(handle.key) is handle:
            del self._handles[handle.key]

    async def shutdown(self) -> None:
        """Снять все таймеры при остановке"""
        for key in list(self._handles.keys()):
            self.disarm(key)

        logger.info("🧹 Все таймеры очищены")


class AsyncioTimerService(TimerScheduler):
    """Таймеры на задачах asyncio в текущем event loop"""

    def __init__(self):
        super().__init__()
        self._tasks: Dict[TimerHandle, asyncio.Task] = {}

    def _schedule(self, handle: TimerHandle, callback: TimerCallback) -> None:
        task = asyncio.create_task(self._timer_worker(handle, callback))
        self._tasks[handle] = task
        handle.bind(task.cancel)

    async def _timer_worker(self, handle: TimerHandle, callback: TimerCallback) -> None:
        """Рабочий процесс таймера"""
        try:
            await asyncio.sleep(handle.delay_seconds)

            self._release(handle)
            await callback()

        except asyncio.CancelledError:
            logger.debug(f"⏹️ Таймер {handle.key} отменён")
        except Exception as e:
            logger.error(f"❌ Ошибка в таймере {handle.key}: {e}", exc_info=True)
        finally:
            self._tasks.pop(handle, None)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        await super().shutdown()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
