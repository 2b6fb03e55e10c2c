# core/__init__.py

from .models import (
    SessionStatus, PodStatus, TaskAction, NotificationType,
    User, FocusSession, PodParticipant, Pod, UserStats, Notification,
)
from .achievements import ACHIEVEMENTS, AchievementDefinition, AchievementRegistry, RequirementType

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
    'ACHIEVEMENTS',
    'AchievementDefinition',
    'AchievementRegistry',
    'RequirementType',
]
