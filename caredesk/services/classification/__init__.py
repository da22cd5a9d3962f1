# caredesk/services/classification/__init__.py
"""
Модуль классификации входящих сообщений службы поддержки.

Компоненты:
- MessageClassificationService - главный сервис (оценка, обучение, статистика)
- SpamRuleManager - управление фразовыми правилами
- RedisClassificationStorage - хранилище правил и решений на Redis
- ClassificationResult - результат классификации
"""

from caredesk.services.classification.exceptions import (
    ClassificationError,
    ClassificationStorageError,
    DuplicateRuleError,
    InvalidRuleError,
    RuleNotFoundError,
)
from caredesk.services.classification.management import SpamRuleManager
from caredesk.services.classification.models import (
    ClassificationItem,
    ClassificationResult,
    LearningRecord,
    Recommendation,
    Rule,
    SpamMode,
)
from caredesk.services.classification.service import MessageClassificationService
from caredesk.services.classification.storage import (
    ClassificationStorage,
    RedisClassificationStorage,
)

__all__ = [
    "MessageClassificationService",
    "SpamRuleManager",
    "ClassificationStorage",
    "RedisClassificationStorage",
    "ClassificationItem",
    "ClassificationResult",
    "LearningRecord",
    "Recommendation",
    "Rule",
    "SpamMode",
    "ClassificationError",
    "ClassificationStorageError",
    "DuplicateRuleError",
    "InvalidRuleError",
    "RuleNotFoundError",
]
