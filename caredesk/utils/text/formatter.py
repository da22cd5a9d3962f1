# caredesk/utils/text/formatter.py
"""
Форматирование и обрезка текста.
"""


def clip_text(text: str, max_length: int, ellipsis: str = "...") -> str:
    """
    Обрезает текст до максимальной длины, стараясь не разрывать слова.

    Args:
        text: Исходный текст
        max_length: Максимальная длина
        ellipsis: Строка для обозначения обрезки

    Returns:
        Обрезанный текст
    """
    if not text or len(text) <= max_length:
        return text

    actual_length = max_length - len(ellipsis)
    if actual_length <= 0:
        return ellipsis

    clipped = text[:actual_length]

    # Ищем последний пробел, чтобы не разрывать слова
    last_space = clipped.rfind(" ")
    if last_space > actual_length * 0.8:
        clipped = clipped[:last_space]

    return clipped + ellipsis
