import logging
import logging.config
from pathlib import Path


def setup_logging(config) -> logging.Logger:
    """Настройка логирования по конфигурации движка"""
    if config.log_to_file:
        Path(config.log_dir).mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(config.get_logging_config())
    return logging.getLogger("focuspods")
