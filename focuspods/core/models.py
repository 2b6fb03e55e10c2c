#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Core Data Models
Модели данных: пользователи, фокус-сессии, Pod'ы, статистика

Сущности хранятся в Store; движок не держит их копий дольше одной операции.
"""

import uuid
from datetime import datetime, date, timedelta
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum
import logging

from focuspods.core.exceptions import ValidationError
from focuspods.utils.datetime_utils import parse_datetime, parse_date, to_iso

logger = logging.getLogger(__name__)

# ===== ENUMS =====

class SessionStatus(Enum):
    """Статусы фокус-сессии"""
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class PodStatus(Enum):
    """Статусы Pod'а"""
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class TaskAction(Enum):
    """Действие пользователя после фокус-сессии"""
    COMPLETED = "completed"
    SPLIT = "split"
    POSTPONED = "postponed"
    SKIPPED = "skipped"

class NotificationType(Enum):
    """Типы уведомлений"""
    DAILY_REMINDER = "daily_reminder"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    STREAK_WARNING = "streak_warning"
    WEEKLY_STATS = "weekly_stats"
    POD_INVITE = "pod_invite"
    POD_STARTED = "pod_started"
    POD_COMPLETED = "pod_completed"
    POD_CANCELLED = "pod_cancelled"
    SESSION_TIMEOUT = "session_timeout"
    REMINDER = "reminder"

# ===== VALIDATION HELPERS =====

def validate_text(text: str, min_length: int = 1, max_length: int = 200, field_name: str = "text") -> str:
    """Валидация текстовых полей"""
    if not isinstance(text, str):
        raise ValidationError(f"{field_name} должен быть строкой")

    text = text.strip()
    if len(text) < min_length:
        raise ValidationError(f"{field_name} должен содержать минимум {min_length} символов")

    if len(text) > max_length:
        raise ValidationError(f"{field_name} должен содержать максимум {max_length} символов")

    return text

def validate_duration(minutes: int, max_minutes: Optional[int] = None) -> int:
    """Длительность в минутах: целое положительное число"""
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
        raise ValidationError("duration_minutes должен быть положительным целым числом")
    if max_minutes is not None and minutes > max_minutes:
        raise ValidationError(f"duration_minutes не может превышать {max_minutes}")
    return minutes

def new_id() -> str:
    return str(uuid.uuid4())

def _enum_or_none(enum_class, value):
    if value is None or isinstance(value, enum_class):
        return value
    return enum_class(value)

# ===== CORE MODELS =====

@dataclass
class User:
    """Пользователь и его игровые счётчики"""
    user_id: str
    external_id: str
    name: str
    focus_coins: int = 0
    total_pomodoros: int = 0
    total_focus_minutes: int = 0
    completed_tasks: int = 0
    current_streak: int = 0
    best_streak: int = 0
    last_active_date: Optional[date] = None
    achievements: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @property
    def focus_hours(self) -> int:
        return self.total_focus_minutes // 60

    def has_achievement(self, achievement_id: str) -> bool:
        return achievement_id in self.achievements

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'external_id': self.external_id,
            'name': self.name,
            'focus_coins': self.focus_coins,
            'total_pomodoros': self.total_pomodoros,
            'total_focus_minutes': self.total_focus_minutes,
            'completed_tasks': self.completed_tasks,
            'current_streak': self.current_streak,
            'best_streak': self.best_streak,
            'last_active_date': to_iso(self.last_active_date),
            'achievements': list(self.achievements),
            'created_at': to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        data = dict(data)
        data['last_active_date'] = parse_date(data.get('last_active_date'))
        data['created_at'] = parse_datetime(data.get('created_at'))
        data['achievements'] = list(data.get('achievements') or [])
        return cls(**data)

    @classmethod
    def create(cls, external_id: str, name: str, now: Optional[datetime] = None) -> "User":
        """Создание нового пользователя"""
        return cls(
            user_id=new_id(),
            external_id=str(external_id),
            name=validate_text(name, max_length=100, field_name="name"),
            created_at=now or datetime.now(),
        )

@dataclass
class FocusSession:
    """Одиночная фокус-сессия (Pomodoro)"""
    session_id: str
    user_id: str
    duration_minutes: int
    start_time: datetime
    end_time: Optional[datetime] = None
    completed: bool = False
    pod_id: Optional[str] = None
    task_action: Optional[TaskAction] = None
    reward: int = 0

    def __post_init__(self):
        validate_duration(self.duration_minutes)
        self.task_action = _enum_or_none(TaskAction, self.task_action)

    @property
    def status(self) -> SessionStatus:
        if self.completed:
            return SessionStatus.COMPLETED
        if self.end_time is not None:
            return SessionStatus.CANCELLED
        return SessionStatus.RUNNING

    @property
    def is_open(self) -> bool:
        """Сессия ещё идёт (нет ни завершения, ни отмены)"""
        return self.status == SessionStatus.RUNNING

    @property
    def planned_end(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def is_solo(self) -> bool:
        return self.pod_id is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'user_id': self.user_id,
            'duration_minutes': self.duration_minutes,
            'start_time': to_iso(self.start_time),
            'end_time': to_iso(self.end_time),
            'completed': self.completed,
            'pod_id': self.pod_id,
            'task_action': self.task_action.value if self.task_action else None,
            'reward': self.reward,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FocusSession":
        data = dict(data)
        data['start_time'] = parse_datetime(data['start_time'])
        data['end_time'] = parse_datetime(data.get('end_time'))
        return cls(**data)

    @classmethod
    def create(cls, user_id: str, duration_minutes: int, start_time: datetime,
               pod_id: Optional[str] = None) -> "FocusSession":
        return cls(
            session_id=new_id(),
            user_id=user_id,
            duration_minutes=duration_minutes,
            start_time=start_time,
            pod_id=pod_id,
        )

@dataclass
class PodParticipant:
    """Участник Pod'а"""
    user_id: str
    user_name: str
    joined_at: datetime
    is_creator: bool = False
    task_action: Optional[TaskAction] = None
    task_completed: Optional[bool] = None

    def __post_init__(self):
        self.task_action = _enum_or_none(TaskAction, self.task_action)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'user_name': self.user_name,
            'joined_at': to_iso(self.joined_at),
            'is_creator': self.is_creator,
            'task_action': self.task_action.value if self.task_action else None,
            'task_completed': self.task_completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PodParticipant":
        data = dict(data)
        data['joined_at'] = parse_datetime(data['joined_at'])
        return cls(**data)

@dataclass
class Pod:
    """Совместная синхронная фокус-сессия"""
    pod_id: str
    invite_code: str
    creator_id: str
    title: str
    duration_minutes: int
    participants: List[PodParticipant] = field(default_factory=list)
    status: PodStatus = PodStatus.WAITING
    share_link: str = ""
    created_at: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def __post_init__(self):
        validate_duration(self.duration_minutes)
        self.status = _enum_or_none(PodStatus, self.status)
        self.invite_code = self.invite_code.upper()

    @property
    def is_open(self) -> bool:
        """WAITING или ACTIVE"""
        return self.status in (PodStatus.WAITING, PodStatus.ACTIVE)

    @property
    def participant_ids(self) -> List[str]:
        return [p.user_id for p in self.participants]

    def get_participant(self, user_id: str) -> Optional[PodParticipant]:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def has_participant(self, user_id: str) -> bool:
        return self.get_participant(user_id) is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pod_id': self.pod_id,
            'invite_code': self.invite_code,
            'creator_id': self.creator_id,
            'title': self.title,
            'duration_minutes': self.duration_minutes,
            'participants': [p.to_dict() for p in self.participants],
            'status': self.status.value,
            'share_link': self.share_link,
            'created_at': to_iso(self.created_at),
            'start_time': to_iso(self.start_time),
            'end_time': to_iso(self.end_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pod":
        data = dict(data)
        data['participants'] = [PodParticipant.from_dict(p) for p in data.get('participants', [])]
        for key in ('created_at', 'start_time', 'end_time'):
            data[key] = parse_datetime(data.get(key))
        return cls(**data)

@dataclass
class UserStats:
    """Скользящие счётчики за сегодня и за неделю"""
    user_id: str
    today_pomodoros: int = 0
    today_focus_minutes: int = 0
    today_tasks_completed: int = 0
    today_focus_coins: int = 0
    week_pomodoros: int = 0
    week_focus_minutes: int = 0
    week_tasks_completed: int = 0
    week_focus_coins: int = 0

    DAILY_FIELDS = ('today_pomodoros', 'today_focus_minutes', 'today_tasks_completed', 'today_focus_coins')
    WEEKLY_FIELDS = ('week_pomodoros', 'week_focus_minutes', 'week_tasks_completed', 'week_focus_coins')

    def to_dict(self) -> Dict[str, Any]:
        data = {'user_id': self.user_id}
        for key in self.DAILY_FIELDS + self.WEEKLY_FIELDS:
            data[key] = getattr(self, key)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserStats":
        return cls(**data)

@dataclass
class Notification:
    """Запись об отправленном уведомлении"""
    notification_id: str
    user_id: str
    notification_type: NotificationType
    message: str
    sent_at: datetime
    read: bool = False

    def __post_init__(self):
        self.notification_type = _enum_or_none(NotificationType, self.notification_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'notification_id': self.notification_id,
            'user_id': self.user_id,
            'notification_type': self.notification_type.value,
            'message': self.message,
            'sent_at': to_iso(self.sent_at),
            'read': self.read,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        data = dict(data)
        data['sent_at'] = parse_datetime(data['sent_at'])
        return cls(**data)


__all__ = [
    'SessionStatus',
    'PodStatus',
    'TaskAction',
    'NotificationType',
    'User',
    'FocusSession',
    'PodParticipant',
    'Pod',
    'UserStats',
    'Notification',
    'validate_text',
    'validate_duration',
    'new_id',
]
