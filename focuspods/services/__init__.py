# services/__init__.py

"""
Модуль сервисов FocusPods

Все сервисы создаются один раз в build_engine() и передаются друг другу
явно, глобальных экземпляров нет.
"""

import logging
from typing import Any, Dict, Optional

from focuspods.config import EngineConfig, StorageBackend, StorageConfig
from focuspods.core.achievements import AchievementRegistry
from focuspods.database import InMemoryStore, JsonFileStore, Store
from focuspods.services.notifications import NotificationScheduler
from focuspods.services.notifier import LoggingNotifier, Notifier, StoringNotifier
from focuspods.services.pods import PodCoordinator
from focuspods.services.rewards import RewardEngine
from focuspods.services.sessions import SessionManager
from focuspods.services.stats import StatsService
from focuspods.services.timers import AsyncioTimerService, TimerScheduler
from focuspods.utils.datetime_utils import Clock, SystemClock

logger = logging.getLogger(__name__)

class FocusEngine:
    """
    Движок фокус-сессий и Pod'ов

    Обеспечивает:
    - Восстановление таймеров после перезапуска
    - Запуск и остановку периодических задач
    - Корректное закрытие хранилища и транспорта
    """

    def __init__(self, config: EngineConfig, store: Store, notifier: StoringNotifier,
                 clock: Clock, timers: TimerScheduler, stats: StatsService,
                 rewards: RewardEngine, sessions: SessionManager, pods: PodCoordinator,
                 notifications: NotificationScheduler):
        self.config = config
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.timers = timers
        self.stats = stats
        self.rewards = rewards
        self.sessions = sessions
        self.pods = pods
        self.notifications = notifications
        self.started = False

    async def start(self) -> None:
        logger.info("🔧 Запуск FocusPods...")

        await self.notifier.start()

        restored = self.sessions.restore_pending_timers() + self.pods.restore_pending_timers()
        self.notifications.start()

        self.started = True
        logger.info(f"✅ FocusPods запущен (восстановлено таймеров: {restored})")

    async def shutdown(self) -> None:
        logger.info("🛑 Остановка FocusPods...")

        self.notifications.shutdown()
        await self.timers.shutdown()
        await self.notifier.close()
        self.store.close()

        self.started = False
        logger.info("✅ FocusPods остановлен")

    def get_info(self) -> Dict[str, Any]:
        """Информация о состоянии движка"""
        return {
            "started": self.started,
            "pending_timers": len(self.timers.pending_keys()),
            "jobs": self.notifications.get_job_ids(),
            "open_sessions": len(self.store.get_open_sessions()),
        }

    async def __aenter__(self) -> "FocusEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

def create_store(config: StorageConfig) -> Store:
    if config.backend == StorageBackend.MEMORY:
        logger.info("📂 Хранилище: память")
        return InMemoryStore()

    logger.info(f"📂 Хранилище: {config.data_file}")
    return JsonFileStore(config.data_file, config.backup_dir)

def create_transport(config: EngineConfig, store: Store) -> Notifier:
    if not config.telegram.enabled:
        logger.warning("⚠️ BOT_TOKEN не задан - уведомления только в лог")
        return LoggingNotifier()

    from focuspods.bot.notifier import TelegramNotifier
    return TelegramNotifier.from_token(config.telegram.bot_token, store, config.telegram.parse_mode)

def build_engine(config: Optional[EngineConfig] = None, store: Optional[Store] = None,
                 notifier: Optional[Notifier] = None, clock: Optional[Clock] = None,
                 timers: Optional[TimerScheduler] = None,
                 registry: Optional[AchievementRegistry] = None) -> FocusEngine:
    """Собрать движок; переданные компоненты заменяют стандартные"""
    config = config or EngineConfig()
    clock = clock or SystemClock(config.scheduler.timezone)
    store = store or create_store(config.storage)
    timers = timers or AsyncioTimerService()

    transport = notifier or create_transport(config, store)
    storing_notifier = StoringNotifier(store, transport, clock)

    stats = StatsService(store)
    rewards = RewardEngine(store, storing_notifier, stats, clock, config.rewards, registry)
    sessions = SessionManager(store, rewards, stats, storing_notifier, timers, clock,
                              config.sessions, config.rewards)
    pods = PodCoordinator(store, sessions, rewards, storing_notifier, timers, clock,
                          config.pods, config.telegram.bot_username)
    notifications = NotificationScheduler(store, storing_notifier, stats, clock, config.scheduler)

    logger.info("✅ Все сервисы инициализированы")

    return FocusEngine(config, store, storing_notifier, clock, timers, stats,
                       rewards, sessions, pods, notifications)

__all__ = [
    'FocusEngine',
    'build_engine',
    'create_store',
    'create_transport',
]
