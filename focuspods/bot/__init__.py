from focuspods.bot.notifier import TelegramNotifier

__all__ = ['TelegramNotifier']
