#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Session Manager
Жизненный цикл одиночной фокус-сессии: RUNNING -> COMPLETED | CANCELLED

Таймер сессии не завершает её автоматически: по истечении времени
пользователь получает только приглашение выбрать действие.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from focuspods.config import RewardConfig, SessionConfig
from focuspods.core.exceptions import (
    SessionAlreadyActive, SessionAlreadyCompleted, SessionNotActive, SessionNotFound, UserNotFound,
)
from focuspods.core.models import FocusSession, NotificationType, TaskAction, validate_duration
from focuspods.database.store import Store
from focuspods.services import messages
from focuspods.services.notifier import Notifier
from focuspods.services.rewards import RewardEngine
from focuspods.services.stats import StatsService
from focuspods.services.timers import TimerScheduler, session_timer_key
from focuspods.utils.datetime_utils import Clock, RemainingTime, elapsed_minutes, remaining_until

logger = logging.getLogger(__name__)

@dataclass
class CompletionResult:
    """Итог завершения сессии"""
    session: FocusSession
    reward: int
    actual_minutes: int
    rewarded: bool
    achievements: List[str] = field(default_factory=list)

class SessionManager:
    """Сервис фокус-сессий"""

    def __init__(self, store: Store, rewards: RewardEngine, stats: StatsService,
                 notifier: Notifier, timers: TimerScheduler, clock: Clock,
                 config: Optional[SessionConfig] = None,
                 reward_config: Optional[RewardConfig] = None):
        self.store = store
        self.rewards = rewards
        self.stats = stats
        self.notifier = notifier
        self.timers = timers
        self.clock = clock
        self.config = config or SessionConfig()
        self.reward_config = reward_config or rewards.config

    def _require_session(self, session_id: str) -> FocusSession:
        session = self.store.get_session(session_id)
        if not session:
            raise SessionNotFound(session_id)
        return session

    # ===== LIFECYCLE =====

    async def start(self, user_id: str, duration_minutes: Optional[int] = None,
                    pod_id: Optional[str] = None) -> FocusSession:
        """
        Запустить фокус-сессию

        Args:
            user_id: ID пользователя
            duration_minutes: длительность (по умолчанию из конфигурации)
            pod_id: ID Pod'а, если сессия запущена в составе Pod'а

        Raises:
            SessionAlreadyActive: у пользователя уже есть открытая сессия
        """
        if duration_minutes is None:
            duration_minutes = self.config.default_duration_minutes
        validate_duration(duration_minutes, self.config.max_duration_minutes)

        if not self.store.get_user(user_id):
            raise UserNotFound(user_id)

        open_sessions = self.store.get_open_sessions(user_id)
        if open_sessions:
            raise SessionAlreadyActive(user_id, open_sessions[0].session_id)

        session = FocusSession.create(user_id, duration_minutes, self.clock.now(), pod_id=pod_id)
        self.store.create_session(session)

        self._arm_timeout(session)

        logger.info(f"▶️ Сессия {session.session_id} запущена: {user_id}, {duration_minutes} мин"
                    + (f", Pod {pod_id}" if pod_id else ""))

        # попытка фокуса считается активностью дня
        await self.rewards.update_streak(user_id)

        return session

    async def complete(self, session_id: str, task_action: Optional[TaskAction] = None,
                       early: bool = False) -> CompletionResult:
        """
        Завершить сессию и начислить награду

        Досрочное завершение (early=True) награждается, только если
        пройдено не меньше 90% запланированного времени.

        Raises:
            SessionNotFound: сессии нет
            SessionAlreadyCompleted: сессия уже завершена, повторной награды нет
            SessionNotActive: сессия была отменена
        """
        session = self._require_session(session_id)

        if session.completed:
            logger.debug(f"🔁 Повторное завершение сессии {session_id}")
            raise SessionAlreadyCompleted(session)
        if not session.is_open:
            raise SessionNotActive(session_id)

        if task_action is not None and not isinstance(task_action, TaskAction):
            task_action = TaskAction(task_action)

        now = self.clock.now()
        actual_minutes = elapsed_minutes(session.start_time, now)
        completion_rate = actual_minutes / session.duration_minutes
        rewarded = completion_rate >= self.reward_config.early_completion_threshold or not early

        # сессия помечается завершённой до любых await
        session = self.store.update_session(
            session_id, completed=True, end_time=now, task_action=task_action,
        )
        self.timers.disarm(session_timer_key(session_id))

        user = self.store.get_user(session.user_id)
        if not user:
            raise UserNotFound(session.user_id)

        if not rewarded:
            self.store.update_user(
                user.user_id,
                total_focus_minutes=user.total_focus_minutes + actual_minutes,
            )
            logger.info(f"⏹️ Сессия {session_id} завершена досрочно "
                        f"({actual_minutes}/{session.duration_minutes} мин), без награды")
            return CompletionResult(session, 0, actual_minutes, rewarded=False)

        reward = self.rewards.calculate_pomodoro_reward(
            self.reward_config.base_pomodoro_reward,
            user.current_streak,
            not session.is_solo,
        )

        self.store.update_user(
            user.user_id,
            total_pomodoros=user.total_pomodoros + 1,
            total_focus_minutes=user.total_focus_minutes + actual_minutes,
        )
        self.rewards.award_coins(user.user_id, reward, "Pomodoro")
        self.stats.record_pomodoro(user.user_id, actual_minutes, reward)
        session = self.store.update_session(session_id, reward=reward)

        logger.info(f"✅ Сессия {session_id} завершена: {actual_minutes} мин, +{reward} FocusCoins")

        achievements = await self.rewards.check_achievements(user.user_id)

        return CompletionResult(session, reward, actual_minutes, rewarded=True, achievements=achievements)

    def cancel(self, session_id: str) -> bool:
        """Отменить сессию без награды; False, если отменять нечего"""
        session = self.store.get_session(session_id)
        if not session:
            return False

        if not session.is_open:
            logger.debug(f"Сессия {session_id} уже в статусе {session.status.value}")
            return False

        self.store.update_session(session_id, end_time=self.clock.now())
        self.timers.disarm(session_timer_key(session_id))

        logger.info(f"🚫 Сессия {session_id} отменена")
        return True

    # ===== QUERIES =====

    def get_active(self, user_id: str) -> Optional[FocusSession]:
        open_sessions = self.store.get_open_sessions(user_id)
        return open_sessions[0] if open_sessions else None

    def remaining(self, session_id: str) -> Optional[RemainingTime]:
        """Оставшееся время; None для завершённой или отменённой сессии"""
        session = self._require_session(session_id)
        if not session.is_open:
            return None
        return remaining_until(session.planned_end, self.clock.now())

    def history(self, user_id: str, limit: int = 10) -> List[FocusSession]:
        return self.store.get_user_sessions(user_id)[:limit]

    # ===== TIMERS =====

    def _arm_timeout(self, session: FocusSession) -> None:
        delay = (session.planned_end - self.clock.now()).total_seconds()
        session_id = session.session_id
        self.timers.arm(session_timer_key(session_id), delay, lambda: self._on_timeout(session_id))

    async def _on_timeout(self, session_id: str) -> None:
        """Время сессии вышло: предложить пользователю выбрать действие"""
        session = self.store.get_session(session_id)
        if not session or not session.is_open:
            logger.debug(f"⏰ Таймер сессии {session_id} сработал после завершения, пропуск")
            return

        logger.info(f"⏰ Время сессии {session_id} вышло")
        await self.notifier.send(
            session.user_id,
            messages.session_time_up(session.duration_minutes),
            NotificationType.SESSION_TIMEOUT,
        )

    def restore_pending_timers(self) -> int:
        """Перевзвести таймеры открытых сессий после перезапуска"""
        count = 0
        for session in self.store.get_open_sessions():
            self._arm_timeout(session)
            count += 1

        if count:
            logger.info(f"⏰ Восстановлено таймеров сессий: {count}")
        return count
