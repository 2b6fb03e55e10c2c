#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Pod Coordinator
Совместные синхронные фокус-сессии: WAITING -> ACTIVE -> COMPLETED,
WAITING | ACTIVE -> CANCELLED

Время Pod'а целиком делегируется сессиям участников, сам Pod держит
только таймер своего номинального завершения.
"""

import logging
import secrets
from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict, List, Optional

from focuspods.config import PodConfig
from focuspods.core.exceptions import (
    CreatorCannotLeave, InvalidStateError, InviteCodeExhausted, NotPodCreator, ParticipantNotFound,
    PodAlreadyFinished, PodAlreadyStarted, PodNotActive, PodNotFound, SessionAlreadyActive,
    UserNotFound,
)
from focuspods.core.models import (
    NotificationType, Pod, PodParticipant, PodStatus, TaskAction, new_id, validate_duration,
    validate_text,
)
from focuspods.database.store import Store
from focuspods.services import messages
from focuspods.services.notifier import Notifier
from focuspods.services.rewards import RewardEngine
from focuspods.services.sessions import SessionManager
from focuspods.services.timers import TimerScheduler, pod_timer_key
from focuspods.utils.datetime_utils import Clock, RemainingTime, remaining_until

logger = logging.getLogger(__name__)

class PodCoordinator:
    """Сервис Pod'ов"""

    def __init__(self, store: Store, sessions: SessionManager, rewards: RewardEngine,
                 notifier: Notifier, timers: TimerScheduler, clock: Clock,
                 config: Optional[PodConfig] = None, bot_username: str = "focuspods_bot"):
        self.store = store
        self.sessions = sessions
        self.rewards = rewards
        self.notifier = notifier
        self.timers = timers
        self.clock = clock
        self.config = config or PodConfig()
        self.bot_username = bot_username

    def _require_pod(self, pod_id: str) -> Pod:
        pod = self.store.get_pod(pod_id)
        if not pod:
            raise PodNotFound(pod_id)
        return pod

    def _require_creator(self, pod: Pod, requested_by: Optional[str], action: str) -> None:
        if requested_by is not None and requested_by != pod.creator_id:
            raise NotPodCreator(pod.pod_id, requested_by, action)

    def _generate_invite_code(self) -> str:
        """Короткий уникальный код приглашения"""
        for attempt in range(1, self.config.invite_code_attempts + 1):
            code = secrets.token_hex(self.config.invite_code_bytes).upper()
            if not self.store.get_pod_by_invite_code(code):
                return code
            logger.debug(f"Коллизия кода приглашения {code}, попытка {attempt}")

        raise InviteCodeExhausted(self.config.invite_code_attempts)

    def _share_link(self, invite_code: str) -> str:
        return self.config.share_link_template.format(
            bot_username=self.bot_username, invite_code=invite_code,
        )

    async def _notify(self, user_ids: List[str], message: str,
                      notification_type: NotificationType) -> None:
        for user_id in user_ids:
            await self.notifier.send(user_id, message, notification_type)

    # ===== LIFECYCLE =====

    async def create(self, creator_id: str, creator_name: str,
                     duration_minutes: Optional[int] = None,
                     title: Optional[str] = None) -> Pod:
        """
        Создать Pod в статусе WAITING

        Создатель всегда первый участник. Код приглашения уникален,
        при коллизии генерируется заново.
        """
        if duration_minutes is None:
            duration_minutes = self.config.default_duration_minutes
        validate_duration(duration_minutes, self.sessions.config.max_duration_minutes)

        if not self.store.get_user(creator_id):
            raise UserNotFound(creator_id)

        title = validate_text(title, field_name="title") if title else messages.default_pod_title(creator_name)
        now = self.clock.now()
        invite_code = self._generate_invite_code()

        pod = Pod(
            pod_id=new_id(),
            invite_code=invite_code,
            creator_id=creator_id,
            title=title,
            duration_minutes=duration_minutes,
            participants=[PodParticipant(creator_id, creator_name, now, is_creator=True)],
            share_link=self._share_link(invite_code),
            created_at=now,
        )
        self.store.create_pod(pod)

        logger.info(f"🫂 Pod {pod.pod_id} создан пользователем {creator_id}, код {invite_code}")

        await self.rewards.check_achievements(creator_id)
        return pod

    def find_by_invite_code(self, invite_code: str) -> Optional[Pod]:
        return self.store.get_pod_by_invite_code(invite_code.strip())

    async def join(self, pod_id: str, user_id: str, user_name: str) -> Pod:
        """
        Присоединиться к Pod'у

        Повторное присоединение возвращает Pod без изменений.

        Raises:
            PodNotFound: Pod'а нет
            PodAlreadyStarted: Pod уже не в статусе WAITING
        """
        pod = self._require_pod(pod_id)

        if pod.status != PodStatus.WAITING:
            raise PodAlreadyStarted(pod_id, pod.status)

        if pod.has_participant(user_id):
            logger.debug(f"Пользователь {user_id} уже в Pod'е {pod_id}")
            return pod

        if not self.store.get_user(user_id):
            raise UserNotFound(user_id)

        participant = PodParticipant(user_id, user_name, self.clock.now())
        pod = self.store.update_pod(pod_id, participants=pod.participants + [participant])

        logger.info(f"➕ {user_id} присоединился к Pod'у {pod_id} ({len(pod.participants)} участников)")

        await self.notifier.send(
            pod.creator_id,
            messages.pod_joined(user_name, len(pod.participants)),
            NotificationType.POD_INVITE,
        )
        return pod

    async def join_by_invite_code(self, invite_code: str, user_id: str, user_name: str) -> Pod:
        pod = self.find_by_invite_code(invite_code)
        if not pod:
            raise PodNotFound(invite_code, f"Pod not found by invite code: {invite_code}")
        return await self.join(pod.pod_id, user_id, user_name)

    async def start(self, pod_id: str, requested_by: Optional[str] = None) -> Pod:
        """
        Запустить Pod: каждому участнику запускается своя сессия

        Raises:
            NotPodCreator: запуск не создателем
            PodAlreadyStarted: Pod не в статусе WAITING
            SessionAlreadyActive: у участника уже идёт сессия (Pod остаётся WAITING)
        """
        pod = self._require_pod(pod_id)
        self._require_creator(pod, requested_by, "start")

        if pod.status != PodStatus.WAITING:
            raise PodAlreadyStarted(pod_id, pod.status)

        for participant in pod.participants:
            active = self.sessions.get_active(participant.user_id)
            if active:
                raise SessionAlreadyActive(participant.user_id, active.session_id)

        now = self.clock.now()
        pod = self.store.update_pod(
            pod_id,
            status=PodStatus.ACTIVE,
            start_time=now,
            end_time=now + timedelta(minutes=pod.duration_minutes),
        )
        self.timers.arm(pod_timer_key(pod_id), pod.duration_minutes * 60, lambda: self._on_timer(pod_id))

        logger.info(f"🚀 Pod {pod_id} запущен: {len(pod.participants)} участников, {pod.duration_minutes} мин")

        for participant in pod.participants:
            try:
                await self.sessions.start(participant.user_id, pod.duration_minutes, pod_id=pod_id)
            except SessionAlreadyActive as e:
                logger.warning(f"⚠️ Pod {pod_id}: сессия участника не запущена: {e}")

        await self._notify(
            pod.participant_ids,
            messages.pod_started(pod.title, pod.duration_minutes),
            NotificationType.POD_STARTED,
        )
        return pod

    async def complete(self, pod_id: str) -> Pod:
        """Завершить активный Pod; сессии участников не трогаются"""
        pod = self._require_pod(pod_id)

        if pod.status != PodStatus.ACTIVE:
            raise PodNotActive(pod_id, pod.status)

        pod = self.store.update_pod(pod_id, status=PodStatus.COMPLETED, end_time=self.clock.now())
        self.timers.disarm(pod_timer_key(pod_id))

        logger.info(f"🏁 Pod {pod_id} завершён")

        await self._notify(
            pod.participant_ids,
            messages.pod_completed(pod.title, pod.duration_minutes),
            NotificationType.POD_COMPLETED,
        )
        return pod

    def record_participant_action(self, pod_id: str, user_id: str, action: TaskAction) -> Pod:
        """Записать действие участника после сессии (без влияния на награды)"""
        pod = self._require_pod(pod_id)
        if not pod.has_participant(user_id):
            raise ParticipantNotFound(pod_id, user_id)

        action = TaskAction(action)
        participants = [
            replace(
                p,
                task_action=action,
                task_completed=True if action == TaskAction.COMPLETED else p.task_completed,
            )
            if p.user_id == user_id else p
            for p in pod.participants
        ]
        return self.store.update_pod(pod_id, participants=participants)

    async def cancel(self, pod_id: str, requested_by: Optional[str] = None) -> Pod:
        """
        Отменить Pod

        Raises:
            NotPodCreator: отмена не создателем
            PodAlreadyFinished: Pod уже завершён или отменён
        """
        pod = self._require_pod(pod_id)
        self._require_creator(pod, requested_by, "cancel")

        if not pod.is_open:
            raise PodAlreadyFinished(pod_id, pod.status)

        pod = self.store.update_pod(pod_id, status=PodStatus.CANCELLED, end_time=self.clock.now())
        self.timers.disarm(pod_timer_key(pod_id))

        logger.info(f"🚫 Pod {pod_id} отменён")

        await self._notify(
            [p.user_id for p in pod.participants if not p.is_creator],
            messages.pod_cancelled(pod.title),
            NotificationType.POD_CANCELLED,
        )
        return pod

    def leave(self, pod_id: str, user_id: str) -> Pod:
        pod = self._require_pod(pod_id)

        if user_id == pod.creator_id:
            raise CreatorCannotLeave(pod_id)
        if not pod.has_participant(user_id):
            raise ParticipantNotFound(pod_id, user_id)

        participants = [p for p in pod.participants if p.user_id != user_id]
        pod = self.store.update_pod(pod_id, participants=participants)

        logger.info(f"➖ {user_id} покинул Pod {pod_id}")
        return pod

    # ===== QUERIES =====

    def get_pod(self, pod_id: str) -> Optional[Pod]:
        return self.store.get_pod(pod_id)

    def get_user_active_pod(self, user_id: str) -> Optional[Pod]:
        """Открытый (WAITING или ACTIVE) Pod пользователя"""
        for pod in self.store.get_user_pods(user_id):
            if pod.is_open:
                return pod
        return None

    def get_user_waiting_pod(self, user_id: str) -> Optional[Pod]:
        for pod in self.store.get_user_pods(user_id):
            if pod.status == PodStatus.WAITING:
                return pod
        return None

    def remaining(self, pod_id: str) -> Optional[RemainingTime]:
        """Оставшееся время активного Pod'а"""
        pod = self._require_pod(pod_id)
        if pod.status != PodStatus.ACTIVE or pod.end_time is None:
            return None
        return remaining_until(pod.end_time, self.clock.now())

    def get_user_pod_stats(self, user_id: str) -> Dict[str, Any]:
        pods = self.store.get_user_pods(user_id)
        return {
            'created': len([p for p in pods if p.creator_id == user_id]),
            'participated': len(pods),
            'completed': len([p for p in pods if p.status == PodStatus.COMPLETED]),
            'active': len([p for p in pods if p.status == PodStatus.ACTIVE]),
        }

    # ===== TIMERS =====

    async def _on_timer(self, pod_id: str) -> None:
        try:
            await self.complete(pod_id)
        except (InvalidStateError, PodNotFound) as e:
            logger.debug(f"⏰ Таймер Pod'а {pod_id} сработал вхолостую: {e}")

    def restore_pending_timers(self) -> int:
        """Перевзвести таймеры активных Pod'ов после перезапуска"""
        now = self.clock.now()
        count = 0
        for pod in self.store.get_pods_by_status(PodStatus.ACTIVE):
            if pod.end_time is None:
                continue
            pod_id = pod.pod_id
            delay = (pod.end_time - now).total_seconds()
            self.timers.arm(pod_timer_key(pod_id), delay, lambda pod_id=pod_id: self._on_timer(pod_id))
            count += 1

        if count:
            logger.info(f"⏰ Восстановлено таймеров Pod'ов: {count}")
        return count
