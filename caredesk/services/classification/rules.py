# caredesk/services/classification/rules.py
"""Сопоставление фразовых правил с текстом сообщения."""

from typing import Iterable, List, Optional, Sequence

from caredesk.services.classification.models import Rule, SpamMode, normalize_brand
from caredesk.utils.text import normalize_text


def rule_applies_to_brand(rule: Rule, brand: Optional[str]) -> bool:
    """Глобальное правило применяется всегда, брендовое - только к своему бренду."""
    if not rule.brand:
        return True
    return normalize_brand(rule.brand) == normalize_brand(brand)


def _contains_word_run(words: Sequence[str], pattern_words: Sequence[str]) -> bool:
    size = len(pattern_words)
    return any(
        list(words[i:i + size]) == list(pattern_words)
        for i in range(len(words) - size + 1)
    )


def rule_matches_text(rule: Rule, normalized_text: str) -> bool:
    """
    Проверяет одно правило против уже нормализованного текста.

    CONTAINS - точное вхождение подстроки (без нечеткости: правила пишут
    люди и ожидают буквального срабатывания).
    LONE - шаблон должен совпасть с целым словом (или целой группой слов
    подряд), а не с частью более длинного слова.
    """
    pattern = rule.effective_pattern
    if not pattern or not normalized_text:
        return False

    if rule.mode is SpamMode.CONTAINS:
        return pattern in normalized_text

    return _contains_word_run(normalized_text.split(), pattern.split())


def match_rules(text: str, brand: Optional[str], rules: Iterable[Rule]) -> List[str]:
    """
    Возвращает шаблоны всех сработавших правил.

    Учитываются только включенные правила, глобальные или привязанные к
    бренду сообщения. Порядок - порядок правил, без повторов.
    """
    normalized = normalize_text(text)
    if not normalized:
        return []

    matched: List[str] = []
    for rule in rules:
        if not rule.enabled or not rule_applies_to_brand(rule, brand):
            continue
        if rule_matches_text(rule, normalized) and rule.pattern not in matched:
            matched.append(rule.pattern)

    return matched
