# caredesk/services/classification/fuzzy.py
"""
Нечеткое сравнение строк на основе расстояния Левенштейна.

Все функции ожидают нормализованный текст (см. normalize_text), но
дополнительно приводят аргументы к нижнему регистру и обрезают пробелы.
"""
from typing import Callable, Dict, List, Optional

from loguru import logger
from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

DEFAULT_THRESHOLD = 0.7

RatioScorer = Callable[..., float]

_SCORERS: Dict[str, RatioScorer] = {
    "token_set_ratio": fuzz.token_set_ratio,
    "token_sort_ratio": fuzz.token_sort_ratio,
    "partial_ratio": fuzz.partial_ratio,
    "ratio": fuzz.ratio,
}


def get_ratio_scorer(scorer_type: str) -> RatioScorer:
    """
    Получает функцию rapidfuzz по типу скорера.

    Args:
        scorer_type: "token_set_ratio", "token_sort_ratio", "partial_ratio" или "ratio"

    Returns:
        Функция скорера (результат 0-100)
    """
    if scorer_type not in _SCORERS:
        logger.warning(
            f"⚠️ Неизвестный тип скорера '{scorer_type}', "
            f"используется 'token_set_ratio'"
        )
        return _SCORERS["token_set_ratio"]
    return _SCORERS[scorer_type]


def edit_distance(a: str, b: str) -> int:
    """
    Расстояние Левенштейна: минимальное число вставок, удалений и замен
    одного символа для превращения a в b.
    """
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Схожесть строк в диапазоне [0, 1], где 1 - идентичные строки.

    Нормирует расстояние Левенштейна на длину более длинной строки.
    Пустая строка не похожа ни на что, кроме другой пустой строки.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    max_len = max(len(a), len(b))
    return 1.0 - edit_distance(a, b) / max_len


def _prepare(value: Optional[str]) -> str:
    return (value or "").lower().strip()


def _words(value: str) -> List[str]:
    return value.split()


def fuzzy_contains(text: str, pattern: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """
    Проверяет, содержит ли текст шаблон с учетом опечаток.

    - Непустой текст всегда содержит сам себя (даже из одних пробелов).
    - Точное вхождение подстроки принимается сразу.
    - Однословный шаблон: хотя бы одно слово текста со схожестью >= threshold.
    - Многословный шаблон: слова шаблона должны найтись в тексте по порядку
      (не обязательно подряд), каждое со схожестью >= threshold.

    Args:
        text: Нормализованный текст
        pattern: Нормализованный шаблон
        threshold: Порог схожести (0-1)

    Returns:
        True если шаблон найден
    """
    if text and text == pattern:
        return True

    text = _prepare(text)
    pattern = _prepare(pattern)

    if not pattern:
        return False

    if pattern in text:
        return True

    text_words = _words(text)
    pattern_words = _words(pattern)

    if len(pattern_words) == 1:
        return any(similarity(word, pattern) >= threshold for word in text_words)

    pattern_index = 0
    for word in text_words:
        if pattern_index >= len(pattern_words):
            break
        if similarity(word, pattern_words[pattern_index]) >= threshold:
            pattern_index += 1

    return pattern_index == len(pattern_words)


def find_best_fuzzy_match(
    text: str,
    pattern: str,
    threshold: float = DEFAULT_THRESHOLD,
) -> Optional[float]:
    """
    Находит лучшую оценку совпадения шаблона с текстом.

    Для однословного шаблона - лучшая схожесть среди слов текста.
    Для многословного - среднее лучших схожестей по всем словам шаблона,
    при условии что каждое слово шаблона по отдельности достигло порога.

    Returns:
        Оценка (0-1) или None, если порог не достигнут
    """
    text_words = _words(_prepare(text))
    pattern_words = _words(_prepare(pattern))

    if not text_words or not pattern_words:
        return None

    best_scores = [
        max(similarity(text_word, pattern_word) for text_word in text_words)
        for pattern_word in pattern_words
    ]

    if any(score < threshold for score in best_scores):
        return None

    return sum(best_scores) / len(best_scores)


def decision_coverage(text: str, decision_text: str) -> float:
    """
    Насколько слова сохраненного решения покрыты словами сообщения.

    Среднее по словам решения лучшей схожести с любым словом сообщения.
    Короткое сообщение, чьи слова лишь входят в длинное решение, покрывает
    его слабо: "yes" против "reply yes to claim your prize" дает ~0.2.

    Returns:
        Покрытие (0-1), 0.0 для пустых аргументов
    """
    text_words = _words(_prepare(text))
    decision_words = _words(_prepare(decision_text))

    if not text_words or not decision_words:
        return 0.0

    return sum(
        max(similarity(text_word, decision_word) for text_word in text_words)
        for decision_word in decision_words
    ) / len(decision_words)


def decision_similarity(
    text: str,
    decision_text: str,
    threshold: float,
    scorer: RatioScorer = fuzz.token_set_ratio,
) -> float:
    """
    Схожесть нового сообщения с текстом сохраненного решения.

    Решение считается похожим, только если его слова покрыты сообщением
    (decision_coverage >= threshold). Сообщение может содержать решение
    целиком, но не наоборот.

    Итог: максимум из пословного нечеткого совпадения (если решение
    "содержится" в тексте) и токенного коэффициента rapidfuzz, причем
    коэффициент не превышает покрытие.

    Args:
        text: Нормализованный текст сообщения
        decision_text: Нормализованный текст решения
        threshold: Порог схожести (0-1)
        scorer: Функция rapidfuzz (0-100)

    Returns:
        Схожесть (0-1) или 0.0, если порог не достигнут
    """
    if not text or not decision_text:
        return 0.0

    coverage = decision_coverage(text, decision_text)
    if coverage < threshold:
        return 0.0

    best = 0.0
    if fuzzy_contains(text, decision_text, threshold):
        best = find_best_fuzzy_match(text, decision_text, threshold) or threshold

    ratio = scorer(text, decision_text, score_cutoff=threshold * 100) / 100
    best = max(best, min(ratio, coverage))

    return best if best >= threshold else 0.0
