#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Error Taxonomy
Типизированные ошибки движка фокус-сессий и Pod'ов

Все ошибки локальные и восстановимые: вызывающий слой (бот, API)
превращает их в понятный пользователю ответ.
"""

from typing import Optional


class FocusPodsError(Exception):
    """Базовая ошибка движка"""
    kind = "error"


# ===== VALIDATION =====

class ValidationError(FocusPodsError):
    """Ошибка валидации данных"""
    kind = "validation"


# ===== NOT FOUND =====

class NotFoundError(FocusPodsError):
    """Сущность не найдена"""
    kind = "not_found"
    entity = "entity"

    def __init__(self, entity_id: str, message: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity} not found: {entity_id}")


class UserNotFound(NotFoundError):
    entity = "User"


class SessionNotFound(NotFoundError):
    entity = "Session"


class PodNotFound(NotFoundError):
    entity = "Pod"


class ParticipantNotFound(NotFoundError):
    entity = "Participant"

    def __init__(self, pod_id: str, user_id: str):
        self.pod_id = pod_id
        super().__init__(user_id, f"User {user_id} is not a participant of pod {pod_id}")


# ===== ALREADY ACTIVE =====

class AlreadyActiveError(FocusPodsError):
    """Уже существует конфликтующая активная сущность"""
    kind = "already_active"


class SessionAlreadyActive(AlreadyActiveError):
    def __init__(self, user_id: str, session_id: str):
        self.user_id = user_id
        self.session_id = session_id
        super().__init__(f"User {user_id} already has an active session {session_id}")


# ===== INVALID STATE =====

class InvalidStateError(FocusPodsError):
    """Операция недопустима в текущем статусе"""
    kind = "invalid_state"


class PodAlreadyStarted(InvalidStateError):
    def __init__(self, pod_id: str, status):
        self.pod_id = pod_id
        self.status = status
        super().__init__(f"Pod {pod_id} already started or finished (status: {status.value})")


class PodNotActive(InvalidStateError):
    def __init__(self, pod_id: str, status):
        self.pod_id = pod_id
        self.status = status
        super().__init__(f"Pod {pod_id} is not active (status: {status.value})")


class PodAlreadyFinished(InvalidStateError):
    def __init__(self, pod_id: str, status):
        self.pod_id = pod_id
        self.status = status
        super().__init__(f"Pod {pod_id} is already {status.value}")


class SessionNotActive(InvalidStateError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} was cancelled")


class InviteCodeExhausted(InvalidStateError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not generate a unique invite code in {attempts} attempts")


# ===== ALREADY COMPLETED =====

class AlreadyCompletedError(FocusPodsError):
    """Повторное завершение: без повторной награды"""
    kind = "already_completed"


class SessionAlreadyCompleted(AlreadyCompletedError):
    reward = 0

    def __init__(self, session):
        self.session = session
        super().__init__(f"Session {session.session_id} already completed")


# ===== FORBIDDEN =====

class ForbiddenError(FocusPodsError):
    """Действие запрещено для этого пользователя"""
    kind = "forbidden"


class NotPodCreator(ForbiddenError):
    def __init__(self, pod_id: str, user_id: str, action: str):
        self.pod_id = pod_id
        self.user_id = user_id
        self.action = action
        super().__init__(f"Only the creator can {action} pod {pod_id}")


class CreatorCannotLeave(ForbiddenError):
    def __init__(self, pod_id: str):
        self.pod_id = pod_id
        super().__init__("Creator cannot leave the pod. Cancel it instead.")


__all__ = [
    'FocusPodsError',
    'ValidationError',
    'NotFoundError',
    'UserNotFound',
    'SessionNotFound',
    'PodNotFound',
    'ParticipantNotFound',
    'AlreadyActiveError',
    'SessionAlreadyActive',
    'InvalidStateError',
    'PodAlreadyStarted',
    'PodNotActive',
    'PodAlreadyFinished',
    'SessionNotActive',
    'InviteCodeExhausted',
    'AlreadyCompletedError',
    'SessionAlreadyCompleted',
    'ForbiddenError',
    'NotPodCreator',
    'CreatorCannotLeave',
]
