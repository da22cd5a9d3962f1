# caredesk/services/classification/storage.py
"""
Хранилище правил и решений модераторов.

ClassificationStorage - абстрактный интерфейс, который движок получает
явной зависимостью. RedisClassificationStorage - реализация на Redis.
"""
import functools
import json
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from loguru import logger
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from caredesk.services.classification.exceptions import ClassificationStorageError
from caredesk.services.classification.learning import brands_compatible
from caredesk.services.classification.models import (
    MAX_LEARNING_TEXT_LENGTH,
    LearningRecord,
    Rule,
    clean_brand,
    normalize_brand,
)
from caredesk.utils.keys import KeyFactory


class ClassificationStorage(ABC):
    """
    Абстрактный интерфейс хранилища движка классификации.

    Реализации обязаны сообщать о недоступности бэкенда через
    ClassificationStorageError: на этом исключении движок переходит в
    деградированный режим оценки.
    """

    # --- Правила ---

    @abstractmethod
    async def list_rules(self) -> List[Rule]:
        """Все правила, новые первыми."""

    @abstractmethod
    async def list_enabled_rules(self) -> List[Rule]:
        """Только включенные правила."""

    @abstractmethod
    async def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Правило по ID или None."""

    @abstractmethod
    async def add_rule(self, rule: Rule) -> bool:
        """
        Сохраняет новое правило.

        Returns:
            False, если правило с тем же unique_key уже существует
        """

    @abstractmethod
    async def update_rule(self, rule: Rule) -> bool:
        """
        Перезаписывает существующее правило.

        Returns:
            False, если новый unique_key занят другим правилом
        """

    @abstractmethod
    async def delete_rule(self, rule_id: str) -> bool:
        """Удаляет правило. Returns: True если правило существовало."""

    # --- Решения модераторов ---

    @abstractmethod
    async def find_similar_decisions(
        self,
        brands: Optional[Iterable[Optional[str]]] = None,
        limit: int = 5000,
    ) -> List[LearningRecord]:
        """
        Корпус-кандидат для поиска похожих решений (новые первыми).

        Окончательную текстовую схожесть считает вызывающий код; хранилище
        лишь ограничивает корпус по брендам и размеру.

        Args:
            brands: Бренды сообщений (None - без фильтра)
            limit: Максимум решений
        """

    @abstractmethod
    async def list_decisions(
        self,
        brand: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[LearningRecord]:
        """Решения (новые первыми), опционально только указанного бренда."""

    @abstractmethod
    async def append_decision(self, record: LearningRecord) -> None:
        """Добавляет решение в журнал."""

    @abstractmethod
    async def delete_decisions(self, text: str, brand: Optional[str], is_spam: bool) -> int:
        """Удаляет решения с точно таким (обрезанным) текстом, брендом и меткой."""

    @abstractmethod
    async def clear_decisions(self) -> int:
        """Удаляет все решения. Returns: количество удаленных."""

    @abstractmethod
    async def count_decisions(self) -> int:
        """Количество сохраненных решений."""


def decision_matches(
    record: LearningRecord,
    text: str,
    brand: Optional[str],
    is_spam: bool,
) -> bool:
    """Точное совпадение решения для удаления (текст обрезается как при записи)."""
    brand = clean_brand(brand)
    return (
        record.text == text[:MAX_LEARNING_TEXT_LENGTH]
        and record.brand == brand
        and record.is_spam == is_spam
    )


def _storage_errors(func):
    """Оборачивает ошибки Redis в ClassificationStorageError."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except RedisError as e:
            logger.error(f"❌ Ошибка Redis в {func.__name__}: {e}")
            raise ClassificationStorageError(f"{func.__name__}: {e}") from e

    return wrapper


class RedisClassificationStorage(ClassificationStorage):
    """
    Хранилище на Redis.

    Структуры:
    - HASH правил: rule_id -> JSON
    - HASH уникальности: pattern_norm|mode|brand -> rule_id (HSETNX)
    - LIST решений: JSON, новые в начале (LPUSH)
    """

    def __init__(self, redis: Redis):
        """
        Args:
            redis: Клиент Redis
        """
        self.redis = redis
        self.keys = KeyFactory

        logger.debug("🔧 RedisClassificationStorage инициализировано")

    # --- Правила ---

    def _parse_rule(self, raw) -> Optional[Rule]:
        try:
            return Rule.model_validate_json(raw)
        except (ValidationError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️ Пропущено некорректное правило: {e}")
            return None

    def _parse_record(self, raw) -> Optional[LearningRecord]:
        try:
            return LearningRecord.model_validate_json(raw)
        except (ValidationError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️ Пропущено некорректное решение: {e}")
            return None

    @_storage_errors
    async def list_rules(self) -> List[Rule]:
        raw_rules = await self.redis.hvals(self.keys.spam_rules())
        rules = [rule for rule in map(self._parse_rule, raw_rules) if rule]
        rules.sort(key=lambda r: r.created_at, reverse=True)
        return rules

    async def list_enabled_rules(self) -> List[Rule]:
        return [rule for rule in await self.list_rules() if rule.enabled]

    @_storage_errors
    async def get_rule(self, rule_id: str) -> Optional[Rule]:
        raw = await self.redis.hget(self.keys.spam_rules(), rule_id)
        return self._parse_rule(raw) if raw else None

    @_storage_errors
    async def add_rule(self, rule: Rule) -> bool:
        reserved = await self.redis.hsetnx(self.keys.spam_rules_index(), rule.unique_key, rule.id)
        if not reserved:
            return False
        await self.redis.hset(self.keys.spam_rules(), rule.id, rule.model_dump_json())
        return True

    @_storage_errors
    async def update_rule(self, rule: Rule) -> bool:
        previous = await self.get_rule(rule.id)
        index_key = self.keys.spam_rules_index()

        if previous is None or previous.unique_key != rule.unique_key:
            reserved = await self.redis.hsetnx(index_key, rule.unique_key, rule.id)
            if not reserved:
                owner = await self.redis.hget(index_key, rule.unique_key)
                if isinstance(owner, bytes):
                    owner = owner.decode("utf-8")
                if owner != rule.id:
                    return False
            if previous is not None:
                await self.redis.hdel(index_key, previous.unique_key)

        await self.redis.hset(self.keys.spam_rules(), rule.id, rule.model_dump_json())
        return True

    @_storage_errors
    async def delete_rule(self, rule_id: str) -> bool:
        rule = await self.get_rule(rule_id)
        if rule is None:
            return False

        pipe = self.redis.pipeline()
        pipe.hdel(self.keys.spam_rules(), rule_id)
        pipe.hdel(self.keys.spam_rules_index(), rule.unique_key)
        await pipe.execute()
        return True

    # --- Решения модераторов ---

    async def _read_decisions(self, limit: Optional[int]) -> List[LearningRecord]:
        end = -1 if limit is None else max(limit, 1) - 1
        raw_records = await self.redis.lrange(self.keys.learning_records(), 0, end)
        return [record for record in map(self._parse_record, raw_records) if record]

    @_storage_errors
    async def find_similar_decisions(
        self,
        brands: Optional[Iterable[Optional[str]]] = None,
        limit: int = 5000,
    ) -> List[LearningRecord]:
        records = await self._read_decisions(limit)
        if brands is None:
            return records

        brand_list = list(brands)
        return [
            record for record in records
            if any(brands_compatible(record.brand, brand) for brand in brand_list)
        ]

    @_storage_errors
    async def list_decisions(
        self,
        brand: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[LearningRecord]:
        records = await self._read_decisions(None if brand else limit)
        if brand:
            wanted = normalize_brand(brand)
            records = [r for r in records if normalize_brand(r.brand) == wanted]
            if limit is not None:
                records = records[:limit]
        return records

    @_storage_errors
    async def append_decision(self, record: LearningRecord) -> None:
        await self.redis.lpush(self.keys.learning_records(), record.model_dump_json())

    @_storage_errors
    async def delete_decisions(self, text: str, brand: Optional[str], is_spam: bool) -> int:
        key = self.keys.learning_records()
        raw_records = await self.redis.lrange(key, 0, -1)

        targets = []
        for raw in raw_records:
            record = self._parse_record(raw)
            if record and decision_matches(record, text, brand, is_spam):
                targets.append(raw)

        deleted = 0
        for raw in targets:
            deleted += await self.redis.lrem(key, 1, raw)
        return deleted

    @_storage_errors
    async def clear_decisions(self) -> int:
        key = self.keys.learning_records()
        pipe = self.redis.pipeline()
        pipe.llen(key)
        pipe.delete(key)
        count, _ = await pipe.execute()
        return int(count)

    @_storage_errors
    async def count_decisions(self) -> int:
        return int(await self.redis.llen(self.keys.learning_records()))
