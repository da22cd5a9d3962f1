# caredesk/services/classification/service.py
"""
Главный сервис классификации входящих сообщений (спам / легитимные).
"""
from collections.abc import Mapping
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from caredesk.config.models import ClassificationConfig
from caredesk.config.settings import settings
from caredesk.services.classification.analyzer import ContentAnalyzer
from caredesk.services.classification.cache import RuleCache
from caredesk.services.classification.exceptions import ClassificationStorageError
from caredesk.services.classification.insights import build_insights
from caredesk.services.classification.learning import (
    HistoricalIndex,
    describe_historical_match,
)
from caredesk.services.classification.management import SpamRuleManager
from caredesk.services.classification.models import (
    BulkLearningReport,
    ClassificationItem,
    ClassificationResult,
    ClassificationStatistics,
    ContentAnalysis,
    HistoricalMatch,
    LearningInsights,
    LearningRecord,
    RemovalReport,
    Rule,
    RulePreview,
    clean_brand,
)
from caredesk.services.classification.rules import match_rules
from caredesk.services.classification.scorer import ClassificationScorer
from caredesk.services.classification.storage import ClassificationStorage
from caredesk.utils.text import clip_text, normalize_text

EMPTY_TEXT_REASON = "Empty message text"
RULES_UNAVAILABLE_REASON = "Rule store unavailable; phrase rules skipped"
LEARNING_UNAVAILABLE_REASON = "Learning store unavailable; historical signal skipped"


def _coerce_item(item) -> ClassificationItem:
    if isinstance(item, ClassificationItem):
        return ClassificationItem(text=item.text or "", brand=clean_brand(item.brand))
    if isinstance(item, Mapping):
        return ClassificationItem(text=item.get("text") or "", brand=clean_brand(item.get("brand")))
    if isinstance(item, (tuple, list)) and len(item) == 2:
        text, brand = item
        return ClassificationItem(text=text or "", brand=clean_brand(brand))
    if isinstance(item, str):
        return ClassificationItem(text=item)
    raise TypeError(f"Unsupported classification item: {item!r}")


def _coerce_decision(item) -> Tuple[str, bool, Optional[str], Optional[str]]:
    if isinstance(item, Mapping) and "is_spam" in item:
        return item.get("text") or "", bool(item["is_spam"]), item.get("brand"), item.get("source")
    if isinstance(item, (tuple, list)) and len(item) in (2, 3):
        text, is_spam, *rest = item
        return text or "", bool(is_spam), rest[0] if rest else None, None
    raise TypeError(f"Unsupported decision item: {item!r}")


class MessageClassificationService:
    """
    Движок классификации сообщений очереди модерации.

    Сигналы:
    - фразовые правила модераторов (точное совпадение после нормализации)
    - историческая уверенность по похожим решениям модераторов

    Архитектура:
    ┌──────────────────────────────────────────┐
    │  MessageClassificationService (Фасад)    │
    └──────────────────────────────────────────┘
         ↓             ↓              ↓
    ┌───────────┐ ┌──────────────┐ ┌─────────────┐
    │ RuleCache │ │ Storage      │ │ Scorer      │
    │ (Local)   │ │ (Redis/ABC)  │ │ (Weights)   │
    └───────────┘ └──────────────┘ └─────────────┘
                       ↓
            ┌───────────────────────┐
            │ HistoricalIndex       │
            │ (Fuzzy Match)         │
            └───────────────────────┘

    Классификация никогда не бросает исключений из-за хранилища: при его
    недоступности оценка деградирует до оставшихся сигналов, а в причины
    добавляется пометка. Так очередь ручной проверки всегда получает оценку.
    """

    def __init__(
        self,
        storage: ClassificationStorage,
        config: Optional[ClassificationConfig] = None,
    ):
        """
        Args:
            storage: Хранилище правил и решений
            config: Веса и пороги (по умолчанию settings.classification)
        """
        self.storage = storage
        self.config = config or settings.classification

        self.scorer = ClassificationScorer(self.config)
        self.analyzer = ContentAnalyzer()
        self.cache: Optional[RuleCache] = (
            RuleCache(ttl_seconds=self.config.rule_cache_ttl_seconds)
            if self.config.rule_cache_enabled
            else None
        )
        self.rules = SpamRuleManager(storage, cache=self.cache)

        logger.success("✅ Сервис MessageClassificationService инициализирован")

    # ------------------------------------------------------------------
    # Загрузка сигналов
    # ------------------------------------------------------------------

    async def _get_enabled_rules(self) -> List[Rule]:
        if self.cache is not None:
            cached = self.cache.get()
            if cached is not None:
                return cached

        rules = await self.storage.list_enabled_rules()
        if self.cache is not None:
            self.cache.set(rules)
        return rules

    async def _load_rules(self, degraded: List[str]) -> List[Rule]:
        try:
            return await self._get_enabled_rules()
        except ClassificationStorageError as e:
            logger.error(f"❌ Правила недоступны, оценка без правил: {e}")
        except Exception as e:
            logger.exception(f"❌ Неожиданная ошибка загрузки правил: {e}")
        degraded.append(RULES_UNAVAILABLE_REASON)
        return []

    async def _load_index(
        self,
        items: Sequence[ClassificationItem],
        degraded: List[str],
    ) -> Optional[HistoricalIndex]:
        """Загружает корпус решений один раз на весь пакет."""
        brands = {item.brand for item in items} if self.config.learning_brand_scoped else None
        try:
            records = await self.storage.find_similar_decisions(
                brands=brands,
                limit=self.config.learning_corpus_limit,
            )
        except ClassificationStorageError as e:
            logger.error(f"❌ Решения недоступны, оценка только по правилам: {e}")
            degraded.append(LEARNING_UNAVAILABLE_REASON)
            return None
        except Exception as e:
            logger.exception(f"❌ Неожиданная ошибка загрузки решений: {e}")
            degraded.append(LEARNING_UNAVAILABLE_REASON)
            return None

        return HistoricalIndex(
            records,
            min_similarity=self.config.learning_min_similarity,
            scorer=self.config.learning_scorer_type,
            brand_scoped=self.config.learning_brand_scoped,
        )

    def _score_item(
        self,
        item: ClassificationItem,
        rules: List[Rule],
        index: Optional[HistoricalIndex],
        degraded: Sequence[str],
    ) -> ClassificationResult:
        if not normalize_text(item.text):
            return self.scorer.build_result([], 0.0, [EMPTY_TEXT_REASON])

        patterns = match_rules(item.text, item.brand, rules)
        reasons = [f'Matched rule: "{pattern}"' for pattern in patterns]

        historical = index.match(item.text, item.brand) if index is not None else HistoricalMatch()
        historical_reason = describe_historical_match(historical)
        if historical_reason:
            reasons.append(historical_reason)

        reasons.extend(degraded)
        return self.scorer.build_result(patterns, historical.confidence, reasons)

    # ------------------------------------------------------------------
    # Классификация
    # ------------------------------------------------------------------

    async def classify(self, text: Optional[str], brand: Optional[str] = None) -> ClassificationResult:
        """
        Оценивает одно сообщение.

        Пустой текст - не ошибка, а отсутствие сигнала: минимальная оценка.

        Args:
            text: Текст сообщения
            brand: Бренд сообщения

        Returns:
            Результат классификации
        """
        item = ClassificationItem(text=text or "", brand=clean_brand(brand))
        results = await self.classify_batch([item])
        return results[item.key]

    async def classify_batch(self, items: Sequence) -> Dict[str, ClassificationResult]:
        """
        Оценивает пакет сообщений за одно чтение правил и одно чтение корпуса решений.

        Args:
            items: Список ClassificationItem, словарей {"text", "brand"} или пар (text, brand)

        Returns:
            Словарь batch_key -> результат (ключ: первые 50 символов текста + "|" + бренд)

        Raises:
            TypeError: Если items не список/кортеж (ошибка вызывающего кода)
        """
        if not isinstance(items, (list, tuple)):
            raise TypeError(f"items must be a list, got {type(items).__name__}")

        prepared = [_coerce_item(item) for item in items]
        scorable = [item for item in prepared if normalize_text(item.text)]

        degraded: List[str] = []
        rules: List[Rule] = []
        index: Optional[HistoricalIndex] = None

        if scorable:
            rules = await self._load_rules(degraded)
            index = await self._load_index(scorable, degraded)

        results = {
            item.key: self._score_item(item, rules, index, degraded)
            for item in prepared
        }

        if len(prepared) > 1:
            logger.debug(
                f"📊 Классифицировано {len(prepared)} сообщений "
                f"(правил: {len(rules)}, решений: {len(index) if index else 0})"
            )
        return results

    async def historical_confidence(self, text: str, brand: Optional[str] = None) -> HistoricalMatch:
        """Историческая уверенность для одного сообщения (без учета правил)."""
        item = ClassificationItem(text=text or "", brand=clean_brand(brand))
        if not normalize_text(item.text):
            return HistoricalMatch()

        index = await self._load_index([item], [])
        return index.match(item.text, item.brand) if index is not None else HistoricalMatch()

    def analyze_content(self, text: str) -> ContentAnalysis:
        return self.analyzer.analyze(text)

    async def preview_rules(self, messages: Iterable[Mapping]) -> List[RulePreview]:
        """
        Показывает, какие включенные правила захватили бы сообщения.

        Args:
            messages: Словари с ключами "id", "text", "brand"

        Returns:
            Только сообщения с хотя бы одним совпадением
        """
        rules = await self._get_enabled_rules()
        previews = []
        for message in messages:
            text = message.get("text") or ""
            brand = clean_brand(message.get("brand"))
            hits = match_rules(text, brand, rules)
            if hits:
                previews.append(
                    RulePreview(
                        message_id=message.get("id"),
                        brand=brand,
                        text=text,
                        matched_patterns=hits,
                    )
                )
        return previews

    # ------------------------------------------------------------------
    # Обучение
    # ------------------------------------------------------------------

    async def record_decision(
        self,
        text: str,
        is_spam: bool,
        brand: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Optional[LearningRecord]:
        """
        Запоминает решение модератора.

        Повторные одинаковые решения не ошибка: они усиливают уверенность.
        Обучение не критично, поэтому сбой хранилища только логируется.

        Args:
            text: Текст сообщения (обрезается до 1000 символов)
            is_spam: Решение модератора
            brand: Бренд сообщения
            source: Источник решения ("manual", "restore-whitelist", ...)

        Returns:
            Сохраненное решение или None при сбое хранилища

        Raises:
            ValueError: Пустой текст
        """
        if not text or not text.strip():
            raise ValueError("Text is required")

        analysis = self.analyzer.analyze(text)
        record = LearningRecord(
            text=text,
            brand=brand,
            is_spam=bool(is_spam),
            source=source,
            score=analysis.score,
            reasons=analysis.reasons,
            signals=analysis.signals,
        )

        try:
            await self.storage.append_decision(record)
        except ClassificationStorageError as e:
            logger.error(f"❌ Не удалось сохранить решение: {e}")
            return None

        logger.info(
            f"🧠 Запомнено решение ({'spam' if record.is_spam else 'legitimate'}, "
            f"source: {record.source or 'unknown'}): '{clip_text(record.text, 50)}'"
        )
        return record

    async def record_decisions(
        self,
        items: Sequence,
        source: Optional[str] = None,
    ) -> BulkLearningReport:
        """
        Массовое обучение: запоминает каждое решение отдельно.

        Сбой сохранения одного решения не прерывает обработку остальных,
        а учитывается в errors. Пустые тексты пропускаются.

        Args:
            items: Словари {"text", "is_spam", "brand", "source"} или кортежи
                (text, is_spam[, brand])
            source: Источник по умолчанию для элементов без своего source

        Returns:
            Отчет с числом выученных решений и ошибок

        Raises:
            TypeError: Если items не список/кортеж или элемент неизвестного вида
        """
        if not isinstance(items, (list, tuple)):
            raise TypeError(f"items must be a list, got {type(items).__name__}")

        decisions = [_coerce_decision(item) for item in items]
        spam_learned = 0
        legitimate_learned = 0
        skipped_blank = 0
        errors = 0

        for text, is_spam, brand, item_source in decisions:
            if not text or not text.strip():
                skipped_blank += 1
                continue

            record = await self.record_decision(text, is_spam, brand, item_source or source)
            if record is None:
                errors += 1
            elif record.is_spam:
                spam_learned += 1
            else:
                legitimate_learned += 1

        report = BulkLearningReport(
            total_read=len(items),
            spam_learned=spam_learned,
            legitimate_learned=legitimate_learned,
            skipped_blank=skipped_blank,
            errors=errors,
        )
        logger.success(f"✅ Массовое обучение завершено: {report.to_dict()}")
        return report

    async def remove_decision(
        self,
        text: str,
        is_spam: bool,
        brand: Optional[str] = None,
    ) -> RemovalReport:
        """
        Удаляет ошибочные решения с точно таким текстом, брендом и меткой.

        Raises:
            ValueError: Пустой текст
            ClassificationStorageError: Хранилище недоступно
        """
        if not text:
            raise ValueError("Text is required")

        deleted = await self.storage.delete_decisions(text, brand, bool(is_spam))
        logger.info(f"🗑️ Удалено {deleted} решений для '{clip_text(text, 50)}'")
        return RemovalReport(deleted_count=deleted)

    async def clear_learning(self) -> int:
        """Удаляет все решения модераторов. Returns: количество удаленных."""
        deleted = await self.storage.clear_decisions()
        logger.warning(f"🗑️ Очищено {deleted} решений модераторов")
        return deleted

    # ------------------------------------------------------------------
    # Статистика
    # ------------------------------------------------------------------

    async def get_insights(self, brand: Optional[str] = None) -> LearningInsights:
        records = await self.storage.list_decisions(brand=brand)
        return build_insights(records)

    async def get_statistics(self) -> ClassificationStatistics:
        """
        Статистика правил, решений и кэша.

        При недоступном хранилище возвращает нулевые счетчики.
        """
        cache_stats = self.cache.get_stats() if self.cache else {"valid": False, "size": 0}
        try:
            rules = await self.storage.list_rules()
            decisions_count = await self.storage.count_decisions()
        except ClassificationStorageError as e:
            logger.error(f"❌ Ошибка получения статистики: {e}")
            rules, decisions_count = [], 0

        stats = ClassificationStatistics(
            rules_count=len(rules),
            enabled_rules_count=sum(1 for rule in rules if rule.enabled),
            decisions_count=decisions_count,
            cache_valid=cache_stats["valid"],
            cache_size=cache_stats["size"],
        )
        logger.debug(f"📊 Статистика: {stats.to_dict()}")
        return stats

    def invalidate_cache(self) -> None:
        """Принудительно инвалидирует кэш правил."""
        if self.cache is not None:
            self.cache.invalidate()
            logger.info("🔄 Кэш правил инвалидирован по запросу")
