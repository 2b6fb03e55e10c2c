#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - Configuration
Централизованная конфигурация движка с валидацией

Все параметры читаются из переменных окружения. Глобального экземпляра нет:
load_config() собирает EngineConfig, который передаётся в build_engine().
"""

import os
import sys
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum

import pytz

class Environment(Enum):
    """Среды выполнения"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

class LogLevel(Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class StorageBackend(Enum):
    """Реализации хранилища"""
    MEMORY = "memory"
    JSON = "json"

WEEKDAYS = ('mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun')

@dataclass
class TelegramConfig:
    """Конфигурация доставки через Telegram"""
    bot_token: Optional[str] = None
    bot_username: str = "focuspods_bot"
    parse_mode: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token)

@dataclass
class StorageConfig:
    """Конфигурация хранилища"""
    backend: StorageBackend = StorageBackend.JSON
    data_dir: Path = Path("data")
    backup_dir: Path = Path("backups")
    data_file_name: str = "focuspods.json"

    @property
    def data_file(self) -> Path:
        return self.data_dir / self.data_file_name

@dataclass
class RewardConfig:
    """Параметры наград и бонусов"""
    base_pomodoro_reward: int = 1
    task_reward: int = 2
    early_completion_threshold: float = 0.9
    streak_step_days: int = 3
    streak_step_bonus: float = 0.1
    max_streak_bonus: float = 0.5
    pod_bonus: float = 0.5

@dataclass
class SessionConfig:
    """Параметры фокус-сессий"""
    default_duration_minutes: int = 25
    max_duration_minutes: int = 180

@dataclass
class PodConfig:
    """Параметры Pod'ов"""
    default_duration_minutes: int = 25
    invite_code_bytes: int = 4  # 8 hex-символов
    invite_code_attempts: int = 10
    share_link_template: str = "https://t.me/{bot_username}?start=pod_{invite_code}"

@dataclass
class SchedulerConfig:
    """Расписание периодических задач"""
    timezone: str = "Europe/Moscow"
    daily_reminder_hour: int = 9
    streak_warning_hour: int = 20
    weekly_stats_day: str = "mon"
    weekly_stats_hour: int = 9
    daily_reset_hour: int = 0
    weekly_reset_day: str = "mon"
    weekly_reset_hour: int = 0
    misfire_grace_seconds: int = 300

@dataclass
class EngineConfig:
    """Главный класс конфигурации"""
    environment: Environment = Environment.DEVELOPMENT
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    rewards: RewardConfig = field(default_factory=RewardConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    pods: PodConfig = field(default_factory=PodConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    # Логирование
    log_level: LogLevel = LogLevel.INFO
    log_to_file: bool = False
    log_dir: Path = Path("logs")
    log_format: str = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

    def validate(self) -> None:
        """Валидация конфигурации: все ошибки собираются в одно исключение"""
        errors = []

        if self.sessions.default_duration_minutes <= 0:
            errors.append("DEFAULT_SESSION_MINUTES должен быть положительным")
        if self.sessions.max_duration_minutes < self.sessions.default_duration_minutes:
            errors.append("MAX_SESSION_MINUTES меньше длительности по умолчанию")
        if self.pods.default_duration_minutes <= 0:
            errors.append("DEFAULT_POD_MINUTES должен быть положительным")
        if self.pods.invite_code_attempts <= 0:
            errors.append("INVITE_CODE_ATTEMPTS должен быть положительным")

        if self.rewards.base_pomodoro_reward < 0 or self.rewards.task_reward < 0:
            errors.append("Награды не могут быть отрицательными")
        if not 0 < self.rewards.early_completion_threshold <= 1:
            errors.append("early_completion_threshold должен быть в диапазоне (0, 1]")

        for name in ('daily_reminder_hour', 'streak_warning_hour', 'weekly_stats_hour',
                     'daily_reset_hour', 'weekly_reset_hour'):
            hour = getattr(self.scheduler, name)
            if not 0 <= hour <= 23:
                errors.append(f"{name.upper()} вне диапазона 0-23: {hour}")
        for name in ('weekly_stats_day', 'weekly_reset_day'):
            if getattr(self.scheduler, name) not in WEEKDAYS:
                errors.append(f"{name.upper()} должен быть одним из: {', '.join(WEEKDAYS)}")

        if self.scheduler.timezone not in pytz.all_timezones_set:
            errors.append(f"Неизвестный часовой пояс: {self.scheduler.timezone}")

        if errors:
            raise ValueError("Ошибки конфигурации:\n" + "\n".join(f"• {error}" for error in errors))

    def ensure_directories(self) -> None:
        """Создание необходимых директорий"""
        directories = []
        if self.storage.backend == StorageBackend.JSON:
            directories += [self.storage.data_dir, self.storage.backup_dir]
        if self.log_to_file:
            directories.append(self.log_dir)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def get_logging_config(self) -> Dict[str, Any]:
        """Получение конфигурации логирования"""
        handlers = ['console']
        if self.log_to_file:
            handlers.append('file')

        config = {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': self.log_format,
                    'datefmt': '%Y-%m-%d %H:%M:%S'
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'level': self.log_level.value,
                    'formatter': 'default',
                    'stream': sys.stdout
                },
            },
            'loggers': {
                '': {
                    'level': self.log_level.value,
                    'handlers': handlers,
                    'propagate': False
                },
            }
        }

        if self.log_to_file:
            config['handlers']['file'] = {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'filename': str(self.log_dir / f"focuspods_{self.environment.value}.log"),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }

        for noisy in ('httpx', 'telegram', 'apscheduler'):
            config['loggers'][noisy] = {
                'level': 'WARNING',
                'handlers': handlers,
                'propagate': False
            }

        return config

    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация конфигурации в словарь (без секретов)"""
        return {
            'environment': self.environment.value,
            'telegram': {
                'enabled': self.telegram.enabled,
                'bot_username': self.telegram.bot_username,
            },
            'storage': {
                'backend': self.storage.backend.value,
                'data_file': str(self.storage.data_file),
            },
            'scheduler': {
                'timezone': self.scheduler.timezone,
                'daily_reminder_hour': self.scheduler.daily_reminder_hour,
                'streak_warning_hour': self.scheduler.streak_warning_hour,
                'weekly_stats_day': self.scheduler.weekly_stats_day,
            },
            'log_level': self.log_level.value,
        }


def _env_bool(key: str, default: bool) -> bool:
    return os.getenv(key, str(default)).lower() == 'true'

def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Переменная окружения {key} должна быть целым числом: {value!r}")

def _env_enum(key: str, enum_class, default):
    value = os.getenv(key)
    if not value:
        return default
    try:
        return enum_class(value)
    except ValueError:
        valid_values = [e.value for e in enum_class]
        raise ValueError(f"{key} должен быть одним из: {valid_values}")


def load_config(validate: bool = True) -> EngineConfig:
    """Загрузка конфигурации из переменных окружения"""
    config = EngineConfig(
        environment=_env_enum('ENVIRONMENT', Environment, Environment.DEVELOPMENT),
        telegram=TelegramConfig(
            bot_token=os.getenv('BOT_TOKEN') or None,
            bot_username=os.getenv('BOT_USERNAME', 'focuspods_bot'),
            parse_mode=os.getenv('TELEGRAM_PARSE_MODE') or None,
        ),
        storage=StorageConfig(
            backend=_env_enum('STORAGE_BACKEND', StorageBackend, StorageBackend.JSON),
            data_dir=Path(os.getenv('DATA_DIR', 'data')),
            backup_dir=Path(os.getenv('BACKUP_DIR', 'backups')),
        ),
        rewards=RewardConfig(
            base_pomodoro_reward=_env_int('BASE_POMODORO_REWARD', 1),
            task_reward=_env_int('TASK_REWARD', 2),
        ),
        sessions=SessionConfig(
            default_duration_minutes=_env_int('DEFAULT_SESSION_MINUTES', 25),
            max_duration_minutes=_env_int('MAX_SESSION_MINUTES', 180),
        ),
        pods=PodConfig(
            default_duration_minutes=_env_int('DEFAULT_POD_MINUTES', 25),
            invite_code_attempts=_env_int('INVITE_CODE_ATTEMPTS', 10),
        ),
        scheduler=SchedulerConfig(
            timezone=os.getenv('TIMEZONE', 'Europe/Moscow'),
            daily_reminder_hour=_env_int('DAILY_REMINDER_HOUR', 9),
            streak_warning_hour=_env_int('STREAK_WARNING_HOUR', 20),
            weekly_stats_day=os.getenv('WEEKLY_STATS_DAY', 'mon').lower(),
            weekly_stats_hour=_env_int('WEEKLY_STATS_HOUR', 9),
        ),
        log_level=_env_enum('LOG_LEVEL', LogLevel, LogLevel.INFO),
        log_to_file=_env_bool('LOG_TO_FILE', False),
        log_dir=Path(os.getenv('LOG_DIR', 'logs')),
        log_format=os.getenv('LOG_FORMAT', '%(asctime)s [%(levelname)s] %(name)s: %(message)s'),
    )

    if validate:
        config.validate()

    return config


__all__ = [
    'Environment',
    'LogLevel',
    'StorageBackend',
    'TelegramConfig',
    'StorageConfig',
    'RewardConfig',
    'SessionConfig',
    'PodConfig',
    'SchedulerConfig',
    'EngineConfig',
    'load_config',
]
