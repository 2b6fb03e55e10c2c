#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Store Interface
Абстрактное хранилище сущностей движка

Движок не знает о схеме и SQL: все чтения и записи идут через этот интерфейс.
Методы update_* применяют частичные изменения и возвращают обновлённую
сущность или None, если её нет.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
import logging

from focuspods.core.models import (
    User, FocusSession, Pod, PodStatus, UserStats, Notification
)

logger = logging.getLogger(__name__)

# ===== EXCEPTIONS =====

class StoreError(Exception):
    """Базовое исключение для ошибок хранилища"""
    pass

class StoreConflictError(StoreError):
    """Нарушение уникальности (id, invite code, external id)"""
    pass

# ===== STORE =====

class Store(ABC):
    """CRUD для пользователей, сессий, Pod'ов, статистики и уведомлений"""

    # ----- users -----

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def create_user(self, user: User) -> User:
        pass

    @abstractmethod
    def update_user(self, user_id: str, **changes) -> Optional[User]:
        pass

    @abstractmethod
    def get_all_users(self) -> List[User]:
        pass

    def get_or_create_user(self, external_id: str, name: str,
                           now: Optional[datetime] = None) -> User:
        """Получить пользователя по внешнему id или зарегистрировать нового"""
        user = self.get_user_by_external_id(str(external_id))
        if user:
            return user

        user = self.create_user(User.create(external_id, name, now=now))
        logger.info(f"👤 Зарегистрирован пользователь {user.user_id} (external: {external_id})")
        return user

    # ----- sessions -----

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[FocusSession]:
        pass

    @abstractmethod
    def create_session(self, session: FocusSession) -> FocusSession:
        pass

    @abstractmethod
    def update_session(self, session_id: str, **changes) -> Optional[FocusSession]:
        pass

    @abstractmethod
    def get_user_sessions(self, user_id: str) -> List[FocusSession]:
        """Сессии пользователя, новые первыми"""
        pass

    @abstractmethod
    def get_open_sessions(self, user_id: Optional[str] = None) -> List[FocusSession]:
        """Сессии без времени окончания (для одного пользователя или всех)"""
        pass

    # ----- pods -----

    @abstractmethod
    def get_pod(self, pod_id: str) -> Optional[Pod]:
        pass

    @abstractmethod
    def get_pod_by_invite_code(self, invite_code: str) -> Optional[Pod]:
        """Поиск по коду приглашения без учёта регистра"""
        pass

    @abstractmethod
    def create_pod(self, pod: Pod) -> Pod:
        pass

    @abstractmethod
    def update_pod(self, pod_id: str, **changes) -> Optional[Pod]:
        pass

    @abstractmethod
    def get_user_pods(self, user_id: str) -> List[Pod]:
        """Pod'ы, где пользователь - участник"""
        pass

    @abstractmethod
    def get_pods_by_status(self, *statuses: PodStatus) -> List[Pod]:
        pass

    # ----- stats -----

    @abstractmethod
    def get_user_stats(self, user_id: str) -> Optional[UserStats]:
        pass

    @abstractmethod
    def update_user_stats(self, user_id: str, **changes) -> UserStats:
        """Частичное обновление со вставкой, если записи ещё нет"""
        pass

    @abstractmethod
    def get_all_user_stats(self) -> List[UserStats]:
        pass

    # ----- notifications -----

    @abstractmethod
    def create_notification(self, notification: Notification) -> Notification:
        pass

    @abstractmethod
    def get_user_notifications(self, user_id: str) -> List[Notification]:
        """Уведомления пользователя, новые первыми"""
        pass

    @abstractmethod
    def mark_notification_read(self, notification_id: str) -> bool:
        pass

    def close(self) -> None:
        """Освобождение ресурсов хранилища"""
        pass
