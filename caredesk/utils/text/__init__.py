# caredesk/utils/text/__init__.py
"""
Модуль текстовых утилит.
Предоставляет функции нормализации и обрезки текста.
"""

from caredesk.utils.text.formatter import clip_text
from caredesk.utils.text.normalizer import (
    normalize_text,
    normalize_whitespace,
    strip_diacritics,
)

__all__ = [
    "clip_text",
    "normalize_text",
    "normalize_whitespace",
    "strip_diacritics",
]
