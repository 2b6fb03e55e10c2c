#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusPods - точка входа
Запускает движок: таймеры, периодические задачи, доставку уведомлений
"""

import asyncio
import logging
import signal
import sys

from focuspods.config import load_config
from focuspods.services import build_engine
from focuspods.utils.logger import setup_logging

logger = logging.getLogger(__name__)

# ===== ГЛАВНАЯ ФУНКЦИЯ =====

async def main():
    """Главная функция запуска движка"""
    config = load_config()
    config.ensure_directories()
    setup_logging(config)

    stop_event = asyncio.Event()

    def signal_handler(signum):
        """Обработчик сигналов для graceful shutdown"""
        logger.info(f"📢 Получен сигнал {signum}, завершение работы...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    engine = build_engine(config)
    await engine.start()

    try:
        await stop_event.wait()
    finally:
        await engine.shutdown()

def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("👋 Остановлено пользователем")
    except Exception as e:
        logger.error(f"💥 Фатальная ошибка: {e}")
        sys.exit(1)

# ===== ТОЧКА ВХОДА =====

if __name__ == "__main__":
    run()
