# services/stats.py

import logging

from focuspods.core.models import UserStats
from focuspods.database.store import Store

logger = logging.getLogger(__name__)


class StatsService:
    """Скользящие дневные и недельные счётчики пользователей"""

    def __init__(self, store: Store):
        self.store = store

    def get(self, user_id: str) -> UserStats:
        """Статистика пользователя (нулевая, если записей ещё не было)"""
        return self.store.get_user_stats(user_id) or UserStats(user_id=user_id)

    def record_pomodoro(self, user_id: str, minutes: int, coins: int) -> UserStats:
        stats = self.get(user_id)
        return self.store.update_user_stats(
            user_id,
            today_pomodoros=stats.today_pomodoros + 1,
            today_focus_minutes=stats.today_focus_minutes + minutes,
            today_focus_coins=stats.today_focus_coins + coins,
            week_pomodoros=stats.week_pomodoros + 1,
            week_focus_minutes=stats.week_focus_minutes + minutes,
            week_focus_coins=stats.week_focus_coins + coins,
        )

    def record_task(self, user_id: str, coins: int) -> UserStats:
        stats = self.get(user_id)
        return self.store.update_user_stats(
            user_id,
            today_tasks_completed=stats.today_tasks_completed + 1,
            today_focus_coins=stats.today_focus_coins + coins,
            week_tasks_completed=stats.week_tasks_completed + 1,
            week_focus_coins=stats.week_focus_coins + coins,
        )

    def reset_daily(self) -> int:
        """Обнулить дневные счётчики всех пользователей"""
        return self._reset(UserStats.DAILY_FIELDS, "дневная")

    def reset_weekly(self) -> int:
        """Обнулить недельные счётчики всех пользователей"""
        return self._reset(UserStats.WEEKLY_FIELDS, "недельная")

    def _reset(self, fields, label: str) -> int:
        count = 0
        for stats in self.store.get_all_user_stats():
            self.store.update_user_stats(stats.user_id, **{name: 0 for name in fields})
            count += 1

        logger.info(f"🔄 Сброшена {label} статистика для {count} пользователей")
        return count
