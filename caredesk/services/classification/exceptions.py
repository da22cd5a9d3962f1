# caredesk/services/classification/exceptions.py
"""
Исключения движка классификации сообщений.
"""


class ClassificationError(Exception):
    """Базовое исключение движка классификации."""
    pass


class ClassificationStorageError(ClassificationError):
    """Хранилище правил или решений недоступно."""
    pass


class InvalidRuleError(ClassificationError):
    """Некорректные данные правила (например, пустой шаблон)."""
    pass


class DuplicateRuleError(ClassificationError):
    """Правило с таким же (pattern_norm, mode, brand) уже существует."""

    def __init__(self, pattern: str):
        super().__init__(f"Duplicate pattern: {pattern}")
        self.pattern = pattern


class RuleNotFoundError(ClassificationError):
    """Правило с указанным ID не найдено."""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule not found: {rule_id}")
        self.rule_id = rule_id
