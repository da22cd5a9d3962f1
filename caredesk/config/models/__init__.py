# caredesk/config/models/__init__.py
from caredesk.config.models.classification import ClassificationConfig, ScorerType
from caredesk.config.models.core import LoggingConfig

__all__ = [
    "ClassificationConfig",
    "LoggingConfig",
    "ScorerType",
]
