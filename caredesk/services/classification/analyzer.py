# caredesk/services/classification/analyzer.py
"""
Эвристический анализ содержимого сообщения без внешних сервисов.

Результат сохраняется вместе с решением модератора и используется в
аналитике обучения. В итоговую оценку классификации не входит.
"""
import re
from collections import Counter
from typing import List, Tuple

from caredesk.services.classification.models import ContentAnalysis

SPAM_VOCABULARY = (
    "free", "win", "congratulations", "urgent", "limited time", "act now",
    "click here", "unsubscribe", "opt out", "special offer", "deal",
    "discount", "save", "money", "cash", "prize", "winner", "selected",
    "guaranteed", "risk free", "no obligation", "call now", "text stop",
)

_SPECIAL_CHARS_RE = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]""")
_DIGIT_RE = re.compile(r"\d")
_REPEATED_RE = re.compile(r"(.)\1{3,}")
_SENTENCE_END_RE = re.compile(r"[.!?]")
_URL_RE = re.compile(r"https?://\S+")
_PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")


class ContentAnalyzer:
    """
    Набор эвристик, каждая из которых добавляет баллы к оценке.

    Группы сигналов:
    - character: спецсимволы, цифры, повторы символов, капс
    - length / structure: длина, отсутствие пробелов, пунктуация
    - words: спам-лексика, повторяющиеся слова
    - indicators: ссылки, телефоны, восклицательные знаки
    """

    MAX_SCORE = 100.0

    def analyze(self, text: str) -> ContentAnalysis:
        """
        Анализирует текст.

        Args:
            text: Исходный (не нормализованный) текст

        Returns:
            Оценка 0-100 с причинами и сигналами
        """
        if not text:
            return ContentAnalysis(score=0.0)

        score = 0.0
        reasons: List[str] = []
        signals: List[str] = []

        for check in (
            self._character_patterns,
            self._structure_patterns,
            self._word_patterns,
            self._spam_indicators,
        ):
            for points, reason, signal in check(text):
                score += points
                reasons.append(reason)
                signals.append(signal)

        return ContentAnalysis(
            score=min(score, self.MAX_SCORE),
            reasons=reasons,
            signals=signals,
        )

    def _character_patterns(self, text: str) -> List[Tuple[float, str, str]]:
        hits = []

        special_ratio = len(_SPECIAL_CHARS_RE.findall(text)) / len(text)
        if special_ratio > 0.3:
            hits.append((
                25,
                f"High special character ratio: {special_ratio * 100:.1f}%",
                "character:excessive_special_chars",
            ))

        digit_ratio = len(_DIGIT_RE.findall(text)) / len(text)
        if digit_ratio > 0.4:
            hits.append((
                20,
                f"High number ratio: {digit_ratio * 100:.1f}%",
                "character:excessive_numbers",
            ))

        repeated = [m.group(0) for m in _REPEATED_RE.finditer(text)]
        if repeated:
            hits.append((
                15,
                f"Repeated characters: {', '.join(repeated)}",
                "character:repeated_chars",
            ))

        if len(text) > 10 and text == text.upper():
            hits.append((10, "All caps text", "character:all_caps"))

        return hits

    def _structure_patterns(self, text: str) -> List[Tuple[float, str, str]]:
        hits = []

        if len(text) < 5:
            hits.append((15, "Very short message", "length:very_short"))

        if len(text) > 500:
            hits.append((10, "Very long message", "length:very_long"))

        if " " not in text and len(text) > 20:
            hits.append((20, "No spaces in long text", "structure:no_spaces"))

        punctuation = len(_SENTENCE_END_RE.findall(text))
        if punctuation > 5:
            hits.append((
                15,
                f"Excessive punctuation: {punctuation} sentences",
                "structure:excessive_punctuation",
            ))

        return hits

    def _word_patterns(self, text: str) -> List[Tuple[float, str, str]]:
        hits = []
        words = text.lower().split()

        spam_words = [
            word for word in words
            if any(spam_word in word for spam_word in SPAM_VOCABULARY)
        ]
        if spam_words:
            hits.append((
                8 * len(spam_words),
                f"Spam words detected: {', '.join(spam_words)}",
                "words:spam_words",
            ))

        repetitive = [
            (word, count) for word, count in Counter(words).items() if count > 2
        ]
        if repetitive:
            listed = ", ".join(f"{word}({count})" for word, count in repetitive)
            hits.append((
                5 * len(repetitive),
                f"Repetitive words: {listed}",
                "words:repetitive_words",
            ))

        return hits

    def _spam_indicators(self, text: str) -> List[Tuple[float, str, str]]:
        hits = []

        urls = _URL_RE.findall(text)
        if urls:
            hits.append((10 * len(urls), f"Contains {len(urls)} URL(s)", "indicator:contains_urls"))

        phones = _PHONE_RE.findall(text)
        if phones:
            hits.append((
                8 * len(phones),
                f"Contains {len(phones)} phone number(s)",
                "indicator:contains_phones",
            ))

        exclamations = text.count("!")
        if exclamations > 3:
            hits.append((
                3 * exclamations,
                f"Excessive exclamation marks: {exclamations}",
                "indicator:excessive_exclamations",
            ))

        return hits
