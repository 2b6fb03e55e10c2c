#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Achievement Catalog
Статический каталог достижений и проверка требований

Каждое требование - один из пяти фиксированных видов со своим порогом.
Проверка - чистые функции над снимком счётчиков пользователя.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple, Iterable
import logging

logger = logging.getLogger(__name__)

# ===== ENUMS =====

class RequirementType(Enum):
    """Виды требований достижений"""
    POMODOROS = "pomodoros"
    TASKS = "tasks"
    STREAK = "streak"
    PODS_CREATED = "pods"
    FOCUS_HOURS = "focus_hours"

# ===== PROGRESS SNAPSHOT =====

@dataclass(frozen=True)
class ProgressSnapshot:
    """Счётчики пользователя на момент проверки"""
    pomodoros: int = 0
    tasks: int = 0
    streak: int = 0
    pods_created: int = 0
    focus_hours: int = 0

# ===== REQUIREMENTS =====

@dataclass(frozen=True)
class Requirement(ABC):
    """Базовое требование достижения"""
    threshold: int

    type: ClassVar[Optional[RequirementType]] = None

    @abstractmethod
    def current(self, progress: ProgressSnapshot) -> int:
        """Текущее значение счётчика"""

    def is_met(self, progress: ProgressSnapshot) -> bool:
        return self.current(progress) >= self.threshold

    def get_progress(self, progress: ProgressSnapshot) -> Tuple[int, int]:
        """Прогресс (текущий, максимальный)"""
        return min(self.threshold, self.current(progress)), self.threshold

    def progress_percentage(self, progress: ProgressSnapshot) -> int:
        if self.threshold <= 0:
            return 100
        return round(min(self.current(progress) / self.threshold * 100, 100))

@dataclass(frozen=True)
class PomodorosRequirement(Requirement):
    type = RequirementType.POMODOROS

    def current(self, progress: ProgressSnapshot) -> int:
        return progress.pomodoros

@dataclass(frozen=True)
class TasksRequirement(Requirement):
    type = RequirementType.TASKS

    def current(self, progress: ProgressSnapshot) -> int:
        return progress.tasks

@dataclass(frozen=True)
class StreakRequirement(Requirement):
    type = RequirementType.STREAK

    def current(self, progress: ProgressSnapshot) -> int:
        return progress.streak

    def matches_exactly(self, streak: int) -> bool:
        """Проверка серии только на точное совпадение с порогом"""
        return streak == self.threshold

@dataclass(frozen=True)
class PodsCreatedRequirement(Requirement):
    type = RequirementType.PODS_CREATED

    def current(self, progress: ProgressSnapshot) -> int:
        return progress.pods_created

@dataclass(frozen=True)
class FocusHoursRequirement(Requirement):
    type = RequirementType.FOCUS_HOURS

    def current(self, progress: ProgressSnapshot) -> int:
        return progress.focus_hours

# ===== DEFINITIONS =====

@dataclass(frozen=True)
class AchievementDefinition:
    """Определение достижения"""
    achievement_id: str
    name: str
    description: str
    icon: str
    requirement: Requirement
    reward: int

    def to_dict(self) -> Dict:
        return {
            'achievement_id': self.achievement_id,
            'name': self.name,
            'description': self.description,
            'icon': self.icon,
            'requirement': {
                'type': self.requirement.type.value,
                'threshold': self.requirement.threshold,
            },
            'reward': self.reward,
        }

ACHIEVEMENTS: Tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        achievement_id="first_focus",
        name="First Focus",
        description="Завершил первую Pomodoro-сессию",
        icon="🎯",
        requirement=PomodorosRequirement(1),
        reward=5,
    ),
    AchievementDefinition(
        achievement_id="focus_streak_3",
        name="Focus Streak 3",
        description="3 дня подряд с фокус-сессиями",
        icon="🔥",
        requirement=StreakRequirement(3),
        reward=10,
    ),
    AchievementDefinition(
        achievement_id="focus_streak_7",
        name="Focus Streak 7",
        description="7 дней подряд с фокус-сессиями",
        icon="🔥🔥",
        requirement=StreakRequirement(7),
        reward=25,
    ),
    AchievementDefinition(
        achievement_id="task_master",
        name="Task Master",
        description="Выполнил 10 задач",
        icon="✅",
        requirement=TasksRequirement(10),
        reward=15,
    ),
    AchievementDefinition(
        achievement_id="pod_pioneer",
        name="Pod Pioneer",
        description="Создал первый Pod",
        icon="🚀",
        requirement=PodsCreatedRequirement(1),
        reward=10,
    ),
    AchievementDefinition(
        achievement_id="early_bird",
        name="Early Bird",
        description="5 часов фокуса",
        icon="🌅",
        requirement=FocusHoursRequirement(5),
        reward=20,
    ),
    AchievementDefinition(
        achievement_id="focus_master",
        name="Focus Master",
        description="25 Pomodoro-сессий",
        icon="🏆",
        requirement=PomodorosRequirement(25),
        reward=50,
    ),
    AchievementDefinition(
        achievement_id="marathon_runner",
        name="Marathon Runner",
        description="50 часов фокуса",
        icon="🎖️",
        requirement=FocusHoursRequirement(50),
        reward=100,
    ),
)

# ===== ACHIEVEMENT REGISTRY =====

class AchievementRegistry:
    """Реестр всех достижений"""

    def __init__(self, definitions: Iterable[AchievementDefinition] = ACHIEVEMENTS):
        self.achievements: Dict[str, AchievementDefinition] = {}
        for definition in definitions:
            self.register_achievement(definition)

    def register_achievement(self, definition: AchievementDefinition) -> None:
        """Зарегистрировать достижение"""
        if definition.achievement_id in self.achievements:
            raise ValueError(f"Duplicate achievement id: {definition.achievement_id}")
        self.achievements[definition.achievement_id] = definition
        logger.debug(f"Registered achievement: {definition.achievement_id}")

    def get_achievement(self, achievement_id: str) -> Optional[AchievementDefinition]:
        return self.achievements.get(achievement_id)

    def get_all_achievements(self) -> List[AchievementDefinition]:
        return list(self.achievements.values())

    def get_by_type(self, requirement_type: RequirementType) -> List[AchievementDefinition]:
        return [a for a in self.achievements.values() if a.requirement.type == requirement_type]

    def streak_achievements_for(self, streak: int) -> List[AchievementDefinition]:
        """Достижения за серию, порог которых ровно равен значению серии"""
        return [
            a for a in self.get_by_type(RequirementType.STREAK)
            if a.requirement.matches_exactly(streak)
        ]

    def __len__(self) -> int:
        return len(self.achievements)

    def __contains__(self, achievement_id: str) -> bool:
        return achievement_id in self.achievements
