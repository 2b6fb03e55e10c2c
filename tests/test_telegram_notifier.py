from unittest.mock import AsyncMock, MagicMock

from telegram.error import NetworkError

from focuspods.bot.notifier import TelegramNotifier
from focuspods.core.models import NotificationType


def _bot():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    return bot


class TestTelegramNotifier:

    async def test_sends_to_external_id(self, store, make_user):
        user = make_user()
        bot = _bot()
        notifier = TelegramNotifier(bot, store, parse_mode="HTML")

        await notifier.send(user.user_id, "Привет", NotificationType.DAILY_REMINDER)

        bot.send_message.assert_awaited_once_with(chat_id=user.external_id, text="Привет", parse_mode="HTML")

    async def test_unknown_user_is_skipped(self, store):
        bot = _bot()

        await TelegramNotifier(bot, store).send("missing", "Привет")

        bot.send_message.assert_not_awaited()

    async def test_delivery_failure_is_logged(self, store, make_user, caplog):
        user = make_user()
        bot = _bot()
        bot.send_message.side_effect = NetworkError("timeout")

        await TelegramNotifier(bot, store).send(user.user_id, "Привет")

        assert "timeout" in caplog.text
