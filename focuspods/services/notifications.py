"""
Сервис периодических уведомлений

Пять независимых cron-задач: утреннее напоминание, предупреждение о серии,
недельная статистика и два сброса счётчиков в полночь.
"""

import logging
from datetime import datetime
from typing import List, Optional

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from focuspods.config import SchedulerConfig
from focuspods.core.exceptions import ValidationError
from focuspods.core.models import NotificationType, User, new_id
from focuspods.database.store import Store
from focuspods.services import messages
from focuspods.services.notifier import Notifier
from focuspods.services.stats import StatsService
from focuspods.utils.datetime_utils import Clock, get_timezone, hours_left_in_day

logger = logging.getLogger(__name__)

JOB_DAILY_REMINDER = 'daily_reminder'
JOB_STREAK_WARNING = 'streak_warning'
JOB_WEEKLY_STATS = 'weekly_stats'
JOB_RESET_DAILY = 'reset_daily'
JOB_RESET_WEEKLY = 'reset_weekly'

RECURRING_JOBS = (JOB_DAILY_REMINDER, JOB_STREAK_WARNING, JOB_WEEKLY_STATS, JOB_RESET_DAILY, JOB_RESET_WEEKLY)

class NotificationScheduler:
    """Планировщик периодических задач на APScheduler"""

    def __init__(self, store: Store, notifier: Notifier, stats: StatsService, clock: Clock,
                 config: Optional[SchedulerConfig] = None,
                 scheduler: Optional[AsyncIOScheduler] = None):
        self.store = store
        self.notifier = notifier
        self.stats = stats
        self.clock = clock
        self.config = config or SchedulerConfig()
        self.timezone = get_timezone(self.config.timezone)

        self.scheduler = scheduler or AsyncIOScheduler(timezone=self.timezone)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.setup_jobs()

    def setup_jobs(self) -> None:
        """Регистрация стандартных задач"""
        cfg = self.config

        # Напоминание утром
        self._add_cron_job(JOB_DAILY_REMINDER, self.send_daily_reminders,
                           hour=cfg.daily_reminder_hour)

        # Серия в опасности вечером
        self._add_cron_job(JOB_STREAK_WARNING, self.send_streak_warnings,
                           hour=cfg.streak_warning_hour)

        self._add_cron_job(JOB_WEEKLY_STATS, self.send_weekly_stats,
                           day_of_week=cfg.weekly_stats_day, hour=cfg.weekly_stats_hour)

        self._add_cron_job(JOB_RESET_DAILY, self.reset_daily_stats,
                           hour=cfg.daily_reset_hour)

        self._add_cron_job(JOB_RESET_WEEKLY, self.reset_weekly_stats,
                           day_of_week=cfg.weekly_reset_day, hour=cfg.weekly_reset_hour)

    def _add_cron_job(self, job_id: str, func, **trigger_args) -> None:
        self.scheduler.add_job(
            func,
            CronTrigger(minute=0, timezone=self.timezone, **trigger_args),
            id=job_id,
            name=job_id,
            replace_existing=True,
            misfire_grace_time=self.config.misfire_grace_seconds,
            coalesce=True,
        )

    def _on_job_error(self, event) -> None:
        logger.error(f"❌ Ошибка задачи {event.job_id}: {event.exception}")

    # ===== LIFECYCLE =====

    def start(self) -> None:
        """Запуск планировщика (нужен работающий event loop)"""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("📅 Планировщик уведомлений запущен")

    def start_all(self) -> None:
        for job_id in RECURRING_JOBS:
            self.scheduler.resume_job(job_id)
        logger.info("▶️ Периодические задачи возобновлены")

    def stop_all(self) -> None:
        for job_id in RECURRING_JOBS:
            self.scheduler.pause_job(job_id)
        logger.info("⏸️ Периодические задачи приостановлены")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("📅 Планировщик уведомлений остановлен")

    def get_job_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    # ===== JOBS =====

    async def _send_to_users(self, users: List[User], build_message, notification_type: NotificationType) -> int:
        sent = 0
        for user in users:
            try:
                await self.notifier.send(user.user_id, build_message(user), notification_type)
                sent += 1
            except Exception as e:
                logger.error(f"❌ Ошибка уведомления {notification_type.value} для {user.user_id}: {e}")
        return sent

    async def send_daily_reminders(self) -> int:
        """Напомнить тем, у кого сегодня ещё нет ни одного Pomodoro"""
        users = [
            user for user in self.store.get_all_users()
            if self.stats.get(user.user_id).today_pomodoros == 0
        ]
        sent = await self._send_to_users(
            users,
            lambda user: messages.daily_reminder(self.stats.get(user.user_id).today_pomodoros),
            NotificationType.DAILY_REMINDER,
        )

        logger.info(f"🌅 Утренние напоминания отправлены: {sent}")
        return sent

    async def send_streak_warnings(self) -> int:
        """Предупредить о серии, которая сгорит сегодня"""
        now = self.clock.now()
        today = now.date()
        hours_left = hours_left_in_day(now)

        users = [
            user for user in self.store.get_all_users()
            if user.current_streak > 0
            and user.last_active_date != today
            and self.stats.get(user.user_id).today_pomodoros == 0
        ]
        sent = await self._send_to_users(
            users,
            lambda user: messages.streak_warning(user.current_streak, hours_left),
            NotificationType.STREAK_WARNING,
        )

        logger.info(f"🔥 Предупреждения о серии отправлены: {sent}")
        return sent

    async def send_weekly_stats(self) -> int:
        """Недельная сводка; счётчики сбрасывает отдельная задача"""
        users = [
            user for user in self.store.get_all_users()
            if self.stats.get(user.user_id).week_pomodoros > 0
        ]

        def build(user: User) -> str:
            stats = self.stats.get(user.user_id)
            return messages.weekly_stats(
                stats.week_pomodoros,
                stats.week_focus_minutes,
                stats.week_tasks_completed,
                stats.week_focus_coins,
            )

        sent = await self._send_to_users(users, build, NotificationType.WEEKLY_STATS)

        logger.info(f"📊 Недельная статистика отправлена: {sent}")
        return sent

    async def reset_daily_stats(self) -> int:
        return self.stats.reset_daily()

    async def reset_weekly_stats(self) -> int:
        return self.stats.reset_weekly()

    # ===== ONE-SHOT REMINDERS =====

    def schedule_reminder(self, user_id: str, message: str, when: datetime) -> str:
        """
        Разовое напоминание пользователю

        Returns:
            ID задачи планировщика
        """
        if when <= self.clock.now():
            raise ValidationError("Время напоминания должно быть в будущем")

        job = self.scheduler.add_job(
            self._send_reminder,
            DateTrigger(run_date=when, timezone=self.timezone),
            args=[user_id, message],
            id=f"reminder:{new_id()}",
            misfire_grace_time=self.config.misfire_grace_seconds,
        )

        logger.info(f"⏰ Напоминание для {user_id} запланировано на {when.isoformat()}")
        return job.id

    def cancel_reminder(self, job_id: str) -> bool:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        return True

    async def _send_reminder(self, user_id: str, message: str) -> None:
        await self.notifier.send(user_id, messages.reminder(message), NotificationType.REMINDER)
