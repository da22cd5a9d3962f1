# caredesk/utils/keys.py
class KeyFactory:
    """Генерирует стандартизированные ключи для Redis."""

    PREFIX = "classification"

    # --- Правила ---
    @staticmethod
    def spam_rules() -> str:
        """HASH rule_id -> JSON правила."""
        return f"{KeyFactory.PREFIX}:rules"

    @staticmethod
    def spam_rules_index() -> str:
        """HASH уникальный ключ (pattern_norm|mode|brand) -> rule_id."""
        return f"{KeyFactory.PREFIX}:rules:unique"

    # --- Обучение ---
    @staticmethod
    def learning_records() -> str:
        """LIST JSON решений модераторов (новые в начале)."""
        return f"{KeyFactory.PREFIX}:learning"
