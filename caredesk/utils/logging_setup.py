# =============================================================================
# Файл: caredesk/utils/logging_setup.py
# Описание:
#   • Настройка логирования через loguru
#   • Поддержка JSON-формата для structured logging
#   • Перехват стандартного logging (redis и др.)
# =============================================================================

import logging
import sys
from typing import Iterable, Literal

from loguru import logger


# =============================================================================
# LOGURU INTERCEPTOR
# =============================================================================

class InterceptHandler(logging.Handler):
    """
    Перехватчик стандартных логов Python и перенаправление в loguru.
    Нужен для библиотек, которые используют стандартный logging.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Находим правильный caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


# =============================================================================
# SETUP FUNCTION
# =============================================================================

def setup_logging(
    level: str = "INFO",
    format: Literal["text", "json"] = "text",
    noisy_loggers: Iterable[str] = ("redis", "asyncio"),
) -> None:
    """
    Настраивает систему логирования для всего приложения.

    Args:
        level: Уровень логирования ("DEBUG", "INFO", "WARNING", "ERROR")
        format: Формат вывода ("text" или "json")
        noisy_loggers: Логгеры сторонних библиотек, приглушаемые до WARNING
    """
    logger.remove()

    if format == "json":
        # serialize=True отдает готовый JSON со всеми полями записи
        logger.add(
            sys.stdout,
            level=level.upper(),
            serialize=True,
            backtrace=False,
            diagnose=False,
        )
    else:
        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )
        logger.add(
            sys.stdout,
            format=log_format,
            level=level.upper(),
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger.info(f"✅ Logging configured: level={level.upper()}, format={format}")
