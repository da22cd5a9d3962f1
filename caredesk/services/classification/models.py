# caredesk/services/classification/models.py
"""
Модели данных движка классификации сообщений.

Персистентные сущности (Rule, LearningRecord) описаны через pydantic и
хранятся в Redis как JSON. Результаты вычислений - неизменяемые dataclass.
"""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from caredesk.utils.text import normalize_text

MAX_LEARNING_TEXT_LENGTH = 1000
BATCH_KEY_TEXT_LENGTH = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def clean_brand(brand: Optional[str]) -> Optional[str]:
    """Обрезает пробелы у бренда; пустой бренд означает "без бренда" (None)."""
    if brand and brand.strip():
        return brand.strip()
    return None


def normalize_brand(brand: Optional[str]) -> str:
    """Нормализует бренд для сравнения (None и пустая строка -> "")."""
    return normalize_text(brand or "")


def batch_key(text: Optional[str], brand: Optional[str]) -> str:
    """
    Ключ результата пакетной классификации.

    Стабилен для одной и той же пары (text, brand), поэтому вызывающий код
    может найти результат, повторив то же вычисление.
    """
    return f"{(text or '')[:BATCH_KEY_TEXT_LENGTH]}|{brand or ''}"


class SpamMode(str, Enum):
    """Режим сопоставления правила."""
    CONTAINS = "CONTAINS"
    LONE = "LONE"


class Recommendation(str, Enum):
    """Уровень рекомендации, выводимый из оценки."""
    LIKELY_LEGITIMATE = "likely_legitimate"
    SUSPICIOUS = "suspicious"
    LIKELY_SPAM = "likely_spam"


class Rule(BaseModel):
    """Фразовое правило, созданное модератором."""

    id: str = Field(default_factory=_new_id)
    pattern: str
    pattern_norm: str = ""
    mode: SpamMode = SpamMode.CONTAINS
    brand: Optional[str] = None
    enabled: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def create(
        cls,
        pattern: str,
        mode: SpamMode = SpamMode.CONTAINS,
        brand: Optional[str] = None,
        enabled: bool = True,
    ) -> "Rule":
        """Создает правило с вычисленной нормализованной формой шаблона."""
        pattern = pattern.strip()
        brand = clean_brand(brand)
        return cls(
            pattern=pattern,
            pattern_norm=normalize_text(pattern),
            mode=mode,
            brand=brand,
            enabled=enabled,
        )

    @property
    def effective_pattern(self) -> str:
        """Нормализованный шаблон (с восстановлением для старых записей)."""
        return self.pattern_norm or normalize_text(self.pattern)

    @property
    def unique_key(self) -> str:
        """Ключ уникальности: (pattern_norm, mode, brand)."""
        return f"{self.effective_pattern}|{self.mode.value}|{normalize_brand(self.brand)}"


class LearningRecord(BaseModel):
    """Одно решение модератора (спам / не спам) по тексту сообщения."""

    id: str = Field(default_factory=_new_id)
    text: str
    brand: Optional[str] = None
    is_spam: bool
    source: Optional[str] = None
    score: float = 0.0
    reasons: List[str] = Field(default_factory=list)
    signals: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("text", mode="before")
    @classmethod
    def truncate_text(cls, v):
        if isinstance(v, str):
            return v[:MAX_LEARNING_TEXT_LENGTH]
        return v

    @field_validator("brand", "source", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


@dataclass(frozen=True)
class ClassificationItem:
    """Элемент пакетной классификации."""
    text: str
    brand: Optional[str] = None

    @property
    def key(self) -> str:
        return batch_key(self.text, self.brand)


@dataclass(frozen=True)
class ClassificationResult:
    """
    Результат классификации одного сообщения (не сохраняется).

    Attributes:
        score: Оценка спама (0-100)
        reasons: Человекочитаемые причины в порядке вычисления
        patterns: Совпавшие шаблоны правил
        historical_confidence: Историческая уверенность (0.0-1.0)
        recommendation: Уровень рекомендации
    """
    score: float
    reasons: List[str]
    patterns: List[str]
    historical_confidence: float
    recommendation: Recommendation

    @property
    def is_spam(self) -> bool:
        return self.recommendation is Recommendation.LIKELY_SPAM

    def to_dict(self) -> dict:
        """Преобразует результат в словарь для API."""
        return {
            "score": self.score,
            "reasons": list(self.reasons),
            "patterns": list(self.patterns),
            "historical_confidence": self.historical_confidence,
            "recommendation": self.recommendation.value,
        }


@dataclass(frozen=True)
class HistoricalMatch:
    """Сводка похожих исторических решений для одного сообщения."""
    confidence: float = 0.0
    matched: int = 0
    spam_matched: int = 0
    best_similarity: float = 0.0


@dataclass(frozen=True)
class ContentAnalysis:
    """
    Результат анализа содержимого текста без внешних сервисов.

    Attributes:
        score: Эвристическая оценка (0-100)
        reasons: Причины
        signals: Идентификаторы сработавших сигналов (например, "character:all_caps")
    """
    score: float
    reasons: List[str] = field(default_factory=list)
    signals: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RulePreview:
    """Какие правила захватили бы сообщение."""
    message_id: Optional[str]
    brand: Optional[str]
    text: str
    matched_patterns: List[str]


@dataclass(frozen=True)
class RemovalReport:
    deleted_count: int


@dataclass(frozen=True)
class ImportReport:
    total_read: int
    inserted: int
    skipped_existing: int
    skipped_blank: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BulkLearningReport:
    """Итог массового обучения (например, из архива спама)."""
    total_read: int
    spam_learned: int
    legitimate_learned: int
    skipped_blank: int
    errors: int

    @property
    def learned(self) -> int:
        return self.spam_learned + self.legitimate_learned

    def to_dict(self) -> dict:
        data = asdict(self)
        data["learned"] = self.learned
        return data


@dataclass(frozen=True)
class EnableAllReport:
    scanned: int
    enabled_changed: int
    normalized_fixed: int
    enabled_now: int
    conflicts: int = 0


@dataclass(frozen=True)
class RepairReport:
    scanned: int
    updated: int


@dataclass(frozen=True)
class ClassificationStatistics:
    """
    Статистика движка классификации.

    Attributes:
        rules_count: Всего правил
        enabled_rules_count: Включенных правил
        decisions_count: Сохраненных решений модераторов
        cache_valid: Валидность кэша правил
        cache_size: Размер кэша правил
    """
    rules_count: int
    enabled_rules_count: int
    decisions_count: int
    cache_valid: bool
    cache_size: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DailyLearningStats:
    date: str
    total: int
    spam: int
    avg_score: float
    spam_rate: float


@dataclass(frozen=True)
class LearningInsights:
    """Аналитика по накопленным решениям модераторов."""
    total_decisions: int
    spam_decisions: int
    legitimate_decisions: int
    spam_rate: float
    top_signals: List[Tuple[str, int]]
    top_reasons: List[Tuple[str, int]]
    score_distribution: Dict[str, int]
    recent_activity: List[LearningRecord]
    daily: List[DailyLearningStats]
