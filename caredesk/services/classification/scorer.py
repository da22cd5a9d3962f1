# caredesk/services/classification/scorer.py
"""
Итоговая оценка сообщения: правила + историческая уверенность.
"""
from typing import List, Optional, Sequence

from loguru import logger

from caredesk.config.models import ClassificationConfig
from caredesk.services.classification.models import (
    ClassificationResult,
    Recommendation,
)

MIN_SCORE = 0.0
MAX_SCORE = 100.0


class ClassificationScorer:
    """
    Объединяет сигналы в оценку 0-100 и уровень рекомендации.

    Формула (взвешенная сумма с ограничением):
        score = rule_match_weight * [есть правило]
              + extra_rule_weight * (правил - 1)
              + historical_weight * historical_confidence

    Оценка не убывает ни по числу совпавших правил, ни по исторической
    уверенности при любых неотрицательных весах.
    """

    def __init__(self, config: Optional[ClassificationConfig] = None):
        """
        Args:
            config: Веса и пороги (по умолчанию - значения ClassificationConfig)
        """
        self.config = config or ClassificationConfig()

        logger.debug(
            f"🔧 ClassificationScorer инициализирован "
            f"(rule: {self.config.rule_match_weight}, "
            f"history: {self.config.historical_weight}, "
            f"tiers: {self.config.suspicious_threshold}/{self.config.spam_threshold})"
        )

    def rule_component(self, matched_rules: int) -> float:
        if matched_rules <= 0:
            return 0.0
        return (
            self.config.rule_match_weight
            + self.config.extra_rule_weight * (matched_rules - 1)
        )

    def historical_component(self, historical_confidence: float) -> float:
        confidence = min(max(historical_confidence, 0.0), 1.0)
        return self.config.historical_weight * confidence

    def compute(self, matched_rules: int, historical_confidence: float) -> float:
        """
        Рассчитывает итоговую оценку.

        Args:
            matched_rules: Количество совпавших правил
            historical_confidence: Историческая уверенность (0.0-1.0)

        Returns:
            Оценка 0-100, округленная до 2 знаков
        """
        raw = self.rule_component(matched_rules) + self.historical_component(
            historical_confidence
        )
        return round(min(max(raw, MIN_SCORE), MAX_SCORE), 2)

    def tier_for(self, score: float) -> Recommendation:
        """
        Уровень рекомендации по оценке.

        Нижняя граница каждого уровня включена в этот уровень:
        40 -> suspicious, 70 -> likely_spam.
        """
        if score >= self.config.spam_threshold:
            return Recommendation.LIKELY_SPAM
        if score >= self.config.suspicious_threshold:
            return Recommendation.SUSPICIOUS
        return Recommendation.LIKELY_LEGITIMATE

    def build_result(
        self,
        patterns: Sequence[str],
        historical_confidence: float,
        reasons: List[str],
    ) -> ClassificationResult:
        """Собирает ClassificationResult из вычисленных сигналов."""
        score = self.compute(len(patterns), historical_confidence)
        return ClassificationResult(
            score=score,
            reasons=list(reasons),
            patterns=list(patterns),
            historical_confidence=round(historical_confidence, 4),
            recommendation=self.tier_for(score),
        )
