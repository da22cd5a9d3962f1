# caredesk/core/app.py
"""
Сборка движка классификации из настроек.

Архитектура:
┌─────────────────────────────────────┐
│   create_classification_service     │
├─────────────────────────────────────┤
│  - Logging (loguru)                 │
│  - Redis client                     │
│  - RedisClassificationStorage       │
│  - MessageClassificationService     │
└─────────────────────────────────────┘
"""
import logging
from typing import Optional

from loguru import logger
from redis.asyncio import Redis

from caredesk.config.settings import Settings, settings as default_settings
from caredesk.services.classification.service import MessageClassificationService
from caredesk.services.classification.storage import RedisClassificationStorage
from caredesk.utils.logging_setup import setup_logging


def create_redis(settings: Settings) -> Redis:
    """Клиент Redis по REDIS_URL (строковые ответы)."""
    return Redis.from_url(settings.redis_url, decode_responses=True)


def create_classification_service(
    settings: Optional[Settings] = None,
    redis: Optional[Redis] = None,
) -> MessageClassificationService:
    """
    Создает готовый к работе сервис классификации.

    Args:
        settings: Настройки (по умолчанию глобальные)
        redis: Готовый клиент Redis (по умолчанию создается по REDIS_URL)

    Returns:
        MessageClassificationService с хранилищем на Redis
    """
    settings = settings or default_settings

    setup_logging(settings.log_level, settings.logging.format)
    for logger_name in settings.logging.debug_loggers:
        logging.getLogger(logger_name).setLevel(logging.DEBUG)

    redis = redis or create_redis(settings)
    storage = RedisClassificationStorage(redis)
    service = MessageClassificationService(storage, config=settings.classification)

    logger.info(f"🚀 {settings.logging.service_name}: движок классификации готов")
    return service
