# caredesk/services/classification/learning.py
"""
Историческая уверенность на основе решений модераторов.
"""
from typing import Iterable, List, Optional, Tuple, Union

from loguru import logger

from caredesk.services.classification.fuzzy import (
    RatioScorer,
    decision_similarity,
    get_ratio_scorer,
)
from caredesk.services.classification.models import (
    HistoricalMatch,
    LearningRecord,
    clean_brand,
    normalize_brand,
)
from caredesk.utils.text import normalize_text


def brands_compatible(record_brand: Optional[str], brand: Optional[str]) -> bool:
    """Решение без бренда и сообщение без бренда сопоставимы с любым брендом."""
    if clean_brand(record_brand) is None or clean_brand(brand) is None:
        return True
    return normalize_brand(record_brand) == normalize_brand(brand)


class HistoricalIndex:
    """
    Индекс решений модераторов для расчета исторической уверенности.

    Строится один раз из уже загруженного корпуса решений: тексты
    нормализуются один раз, а затем по индексу оценивается любое число
    сообщений без повторных обращений к хранилищу.

    Уверенность = доля решений "спам" среди похожих решений.
    Отсутствие похожих решений дает 0 (нет сигнала), а не "точно не спам".
    """

    def __init__(
        self,
        records: Iterable[LearningRecord],
        min_similarity: float = 0.8,
        scorer: Union[RatioScorer, str] = "token_set_ratio",
        brand_scoped: bool = True,
    ):
        """
        Args:
            records: Корпус решений
            min_similarity: Порог схожести текста (0-1)
            scorer: Функция rapidfuzz или ее имя
            brand_scoped: Учитывать только решения совместимого бренда
        """
        self.min_similarity = min_similarity
        self.scorer = get_ratio_scorer(scorer) if isinstance(scorer, str) else scorer
        self.brand_scoped = brand_scoped

        self._entries: List[Tuple[str, LearningRecord]] = []
        for record in records:
            normalized = normalize_text(record.text)
            if normalized:
                self._entries.append((normalized, record))

        logger.debug(
            f"🔧 HistoricalIndex построен: {len(self._entries)} решений "
            f"(min_similarity: {min_similarity})"
        )

    def __len__(self) -> int:
        return len(self._entries)

    def match(self, text: str, brand: Optional[str] = None) -> HistoricalMatch:
        """
        Находит похожие решения и считает историческую уверенность.

        Args:
            text: Исходный (не нормализованный) текст сообщения
            brand: Бренд сообщения

        Returns:
            Сводка совпадений
        """
        normalized = normalize_text(text)
        if not normalized or not self._entries:
            return HistoricalMatch()

        matched = 0
        spam_matched = 0
        best_similarity = 0.0

        for record_text, record in self._entries:
            if self.brand_scoped and not brands_compatible(record.brand, brand):
                continue

            score = decision_similarity(
                normalized, record_text, self.min_similarity, self.scorer
            )
            if score <= 0:
                continue

            matched += 1
            if record.is_spam:
                spam_matched += 1
            best_similarity = max(best_similarity, score)

        if matched == 0:
            return HistoricalMatch()

        return HistoricalMatch(
            confidence=spam_matched / matched,
            matched=matched,
            spam_matched=spam_matched,
            best_similarity=best_similarity,
        )


def describe_historical_match(match: HistoricalMatch) -> Optional[str]:
    """Человекочитаемая причина для исторического сигнала."""
    if match.matched == 0:
        return None
    return (
        f"Historical match: {match.spam_matched} of {match.matched} similar "
        f"decisions marked spam ({match.confidence * 100:.0f}%)"
    )
