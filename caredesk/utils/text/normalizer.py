# caredesk/utils/text/normalizer.py
"""
Нормализация текста для сравнения сообщений и правил.
"""
import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_INVISIBLE_RE = re.compile("[\u200b-\u200d\ufeff]")


def normalize_text(text: str) -> str:
    """
    Приводит текст к канонической форме для сравнения.

    Применяет:
    - Приведение к нижнему регистру
    - Удаление невидимых символов нулевой ширины
    - Разложение Unicode (NFD) и удаление диакритических знаков
    - Замена всего, кроме букв, цифр и пробелов, на пробел
    - Нормализация пробелов

    Функция тотальна: для пустой строки (и None) возвращает "".

    Args:
        text: Исходный текст

    Returns:
        Нормализованный текст
    """
    if not text:
        return ""

    normalized = _INVISIBLE_RE.sub("", text.lower())
    normalized = strip_diacritics(normalized)

    # Оставляем только буквы (L*), цифры (N*) и пробельные символы
    normalized = "".join(
        ch if ch.isspace() or unicodedata.category(ch)[0] in ("L", "N") else " "
        for ch in normalized
    )

    return normalize_whitespace(normalized)


def strip_diacritics(text: str) -> str:
    """
    Удаляет комбинируемые диакритические знаки ("café" -> "cafe").

    Args:
        text: Исходный текст

    Returns:
        Текст без диакритики
    """
    if not text:
        return ""

    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_whitespace(text: str) -> str:
    """
    Нормализует пробельные символы.

    - Заменяет любые последовательности пробелов, табов и переносов на один пробел
    - Удаляет пробелы в начале и конце

    Args:
        text: Исходный текст

    Returns:
        Текст с нормализованными пробелами
    """
    if not text:
        return ""

    return _WHITESPACE_RE.sub(" ", text).strip()
