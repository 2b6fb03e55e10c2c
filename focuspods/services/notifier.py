"""
Исходящие уведомления

Движок отправляет сообщения через Notifier и не ждёт подтверждения доставки:
ошибки транспорта логируются реализацией и не прерывают операцию движка.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from focuspods.core.models import Notification, NotificationType, new_id
from focuspods.database.store import Store
from focuspods.utils.datetime_utils import Clock, SystemClock

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Канал доставки сообщений пользователю"""

    @abstractmethod
    async def send(self, user_id: str, message: str,
                   notification_type: NotificationType = NotificationType.REMINDER) -> None:
        pass

    async def start(self) -> None:
        """Подготовка транспорта"""

    async def close(self) -> None:
        """Освобождение транспорта"""


class LoggingNotifier(Notifier):
    """Сообщения только пишутся в лог (режим без токена бота)"""

    async def send(self, user_id: str, message: str,
                   notification_type: NotificationType = NotificationType.REMINDER) -> None:
        logger.info(f"📨 [{notification_type.value}] -> {user_id}: {message}")


class StoringNotifier(Notifier):
    """Сохраняет каждое уведомление в хранилище и передаёт его транспорту"""

    def __init__(self, store: Store, transport: Optional[Notifier] = None,
                 clock: Optional[Clock] = None):
        self.store = store
        self.transport = transport or LoggingNotifier()
        self.clock = clock or SystemClock()

    async def send(self, user_id: str, message: str,
                   notification_type: NotificationType = NotificationType.REMINDER) -> None:
        self.store.create_notification(Notification(
            notification_id=new_id(),
            user_id=user_id,
            notification_type=notification_type,
            message=message,
            sent_at=self.clock.now(),
        ))
        await self.transport.send(user_id, message, notification_type)

    async def start(self) -> None:
        await self.transport.start()

    async def close(self) -> None:
        await self.transport.close()

    def unread(self, user_id: str) -> List[Notification]:
        """Непрочитанные уведомления пользователя"""
        return [n for n in self.store.get_user_notifications(user_id) if not n.read]

    def mark_read(self, notification_id: str) -> bool:
        return self.store.mark_notification_read(notification_id)

    def mark_all_read(self, user_id: str) -> int:
        """Отметить все уведомления прочитанными; возвращает их количество"""
        count = 0
        for notification in self.unread(user_id):
            if self.store.mark_notification_read(notification.notification_id):
                count += 1
        return count
