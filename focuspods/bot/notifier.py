"""
Доставка уведомлений через Telegram
"""

import logging
from typing import Optional

from telegram import Bot
from telegram.error import TelegramError

from focuspods.core.models import NotificationType
from focuspods.database.store import Store
from focuspods.services.notifier import Notifier

logger = logging.getLogger(__name__)


class TelegramNotifier(Notifier):
    """Notifier поверх python-telegram-bot: chat_id берётся из external_id пользователя"""

    def __init__(self, bot: Bot, store: Store, parse_mode: Optional[str] = None):
        self.bot = bot
        self.store = store
        self.parse_mode = parse_mode

    @classmethod
    def from_token(cls, token: str, store: Store, parse_mode: Optional[str] = None) -> "TelegramNotifier":
        return cls(Bot(token=token), store, parse_mode)

    async def start(self) -> None:
        await self.bot.initialize()
        logger.info("🤖 Telegram бот инициализирован")

    async def close(self) -> None:
        await self.bot.shutdown()

    async def send(self, user_id: str, message: str,
                   notification_type: NotificationType = NotificationType.REMINDER) -> None:
        user = self.store.get_user(user_id)
        if not user:
            logger.warning(f"⚠️ Уведомление {notification_type.value}: пользователь {user_id} не найден")
            return

        try:
            await self.bot.send_message(
                chat_id=user.external_id,
                text=message,
                parse_mode=self.parse_mode,
            )
        except TelegramError as e:
            logger.error(f"❌ Ошибка отправки уведомления пользователю {user_id}: {e}")
