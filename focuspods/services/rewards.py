#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Reward Engine
FocusCoins, серии дней и разблокировка достижений

Чистые вычисления поверх записи пользователя: без таймеров, единственный
побочный эффект кроме хранилища - уведомление о новом достижении.
"""

import math
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from focuspods.config import RewardConfig
from focuspods.core.achievements import AchievementRegistry, ProgressSnapshot
from focuspods.core.exceptions import UserNotFound
from focuspods.core.models import NotificationType, User
from focuspods.database.store import Store
from focuspods.services import messages
from focuspods.services.notifier import Notifier
from focuspods.services.stats import StatsService
from focuspods.utils.datetime_utils import Clock

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class StreakUpdate:
    """Результат обновления серии"""
    current: int
    best: int
    changed: bool

class RewardEngine:
    """Сервис геймификации: FocusCoins, достижения, серии"""

    def __init__(self, store: Store, notifier: Notifier, stats: StatsService, clock: Clock,
                 config: Optional[RewardConfig] = None,
                 registry: Optional[AchievementRegistry] = None):
        self.store = store
        self.notifier = notifier
        self.stats = stats
        self.clock = clock
        self.config = config or RewardConfig()
        self.registry = registry or AchievementRegistry()

    def _require_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if not user:
            raise UserNotFound(user_id)
        return user

    # ===== COINS =====

    def award_coins(self, user_id: str, amount: int, reason: Optional[str] = None) -> int:
        """Начислить FocusCoins; возвращает новый баланс"""
        user = self._require_user(user_id)
        new_balance = user.focus_coins + amount
        self.store.update_user(user_id, focus_coins=new_balance)

        logger.info(f"🪙 +{amount} FocusCoins пользователю {user_id}"
                    + (f" ({reason})" if reason else "") + f", баланс: {new_balance}")
        return new_balance

    def calculate_pomodoro_reward(self, base_reward: int, streak: int, in_pod: bool) -> int:
        """
        Награда за Pomodoro с учётом множителей

        Бонус за серию: +10% за каждые 3 дня, не более 50%.
        Бонус за Pod: +50%. Оба бонуса складываются до округления.
        """
        cfg = self.config
        streak_bonus = min((max(streak, 0) // cfg.streak_step_days) * cfg.streak_step_bonus,
                           cfg.max_streak_bonus)
        reward = base_reward + base_reward * streak_bonus

        if in_pod:
            reward += base_reward * cfg.pod_bonus

        # половины округляются вверх
        return int(math.floor(reward + 0.5))

    # ===== STREAKS =====

    async def update_streak(self, user_id: str) -> StreakUpdate:
        """Обновить серию дней по календарной дате последней активности"""
        user = self._require_user(user_id)
        today = self.clock.today()
        last_active = user.last_active_date

        if last_active == today:
            return StreakUpdate(user.current_streak, user.best_streak, changed=False)

        if last_active is not None and (today - last_active).days == 1:
            current_streak = user.current_streak + 1
        else:
            current_streak = 1

        best_streak = max(user.best_streak, current_streak)

        self.store.update_user(
            user_id,
            current_streak=current_streak,
            best_streak=best_streak,
            last_active_date=today,
        )
        logger.info(f"🔥 Серия пользователя {user_id}: {current_streak} (лучшая: {best_streak})")

        await self._check_streak_achievements(user_id, current_streak)

        return StreakUpdate(current_streak, best_streak, changed=True)

    async def _check_streak_achievements(self, user_id: str, streak: int) -> List[str]:
        unlocked = []
        for definition in self.registry.streak_achievements_for(streak):
            if await self.unlock_achievement(user_id, definition.achievement_id):
                unlocked.append(definition.achievement_id)
        return unlocked

    # ===== ACHIEVEMENTS =====

    async def unlock_achievement(self, user_id: str, achievement_id: str) -> bool:
        """
        Разблокировать достижение

        Единственная точка выдачи достижений: повторный вызов для уже
        открытого достижения возвращает False и ничего не начисляет.
        """
        user = self._require_user(user_id)

        if user.has_achievement(achievement_id):
            return False

        definition = self.registry.get_achievement(achievement_id)
        if not definition:
            logger.warning(f"⚠️ Неизвестное достижение: {achievement_id}")
            return False

        self.store.update_user(user_id, achievements=user.achievements + [achievement_id])
        self.award_coins(user_id, definition.reward, f"Achievement: {definition.name}")

        logger.info(f"🏆 Пользователь {user_id} разблокировал {achievement_id}")

        await self.notifier.send(
            user_id,
            messages.achievement_unlocked(definition.icon, definition.name, definition.reward),
            NotificationType.ACHIEVEMENT_UNLOCKED,
        )
        return True

    def build_snapshot(self, user: User) -> ProgressSnapshot:
        created_pods = [
            pod for pod in self.store.get_user_pods(user.user_id)
            if pod.creator_id == user.user_id
        ]
        return ProgressSnapshot(
            pomodoros=user.total_pomodoros,
            tasks=user.completed_tasks,
            streak=user.current_streak,
            pods_created=len(created_pods),
            focus_hours=user.focus_hours,
        )

    async def check_achievements(self, user_id: str) -> List[str]:
        """Проверить весь каталог; возвращает id новых достижений"""
        user = self._require_user(user_id)
        snapshot = self.build_snapshot(user)
        unlocked: List[str] = []

        for definition in self.registry.get_all_achievements():
            if user.has_achievement(definition.achievement_id):
                continue

            if definition.requirement.is_met(snapshot):
                if await self.unlock_achievement(user_id, definition.achievement_id):
                    unlocked.append(definition.achievement_id)

        return unlocked

    # ===== TASKS =====

    async def record_task_completion(self, user_id: str) -> Tuple[int, List[str]]:
        """Учесть выполненную задачу: счётчик, монеты, статистика, достижения"""
        user = self._require_user(user_id)
        reward = self.config.task_reward

        self.store.update_user(user_id, completed_tasks=user.completed_tasks + 1)
        self.award_coins(user_id, reward, "Task completed")
        self.stats.record_task(user_id, reward)

        achievements = await self.check_achievements(user_id)
        return reward, achievements

    # ===== READ MODELS =====

    def get_user_game_stats(self, user_id: str) -> Dict[str, Any]:
        """Сводная игровая статистика пользователя"""
        user = self._require_user(user_id)
        stats = self.store.get_user_stats(user_id)
        pods = self.store.get_user_pods(user_id)

        unlocked = [a for a in self.registry.get_all_achievements() if user.has_achievement(a.achievement_id)]
        total = len(self.registry)

        return {
            'focus_coins': user.focus_coins,
            'current_streak': user.current_streak,
            'best_streak': user.best_streak,
            'total_pomodoros': user.total_pomodoros,
            'total_focus_minutes': user.total_focus_minutes,
            'total_focus_hours': user.focus_hours,
            'completed_tasks': user.completed_tasks,
            'week_stats': {
                'pomodoros': stats.week_pomodoros,
                'focus_minutes': stats.week_focus_minutes,
                'tasks_completed': stats.week_tasks_completed,
                'focus_coins_earned': stats.week_focus_coins,
            } if stats else None,
            'today_stats': {
                'pomodoros': stats.today_pomodoros,
                'focus_minutes': stats.today_focus_minutes,
            } if stats else None,
            'achievements': {
                'unlocked': len(unlocked),
                'total': total,
                'progress': round(len(unlocked) / total * 100) if total else 0,
                'list': [a.achievement_id for a in unlocked],
            },
            'pods': {
                'total': len(pods),
                'created': len([p for p in pods if p.creator_id == user_id]),
            },
        }

    def get_achievements_with_progress(self, user_id: str) -> List[Dict[str, Any]]:
        """Каталог достижений с процентом выполнения для пользователя"""
        user = self._require_user(user_id)
        snapshot = self.build_snapshot(user)

        result = []
        for definition in self.registry.get_all_achievements():
            unlocked = user.has_achievement(definition.achievement_id)
            item = definition.to_dict()
            item['unlocked'] = unlocked
            item['progress'] = 100 if unlocked else definition.requirement.progress_percentage(snapshot)
            result.append(item)

        return result
