# caredesk/config/models/classification.py
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ScorerType = Literal["token_set_ratio", "token_sort_ratio", "partial_ratio", "ratio"]


class ClassificationConfig(BaseModel):
    """Веса и пороги движка классификации сообщений."""

    model_config = ConfigDict(protected_namespaces=())

    # Веса итоговой оценки (0-100)
    rule_match_weight: float = Field(default=75.0, ge=0, le=100)
    extra_rule_weight: float = Field(default=5.0, ge=0, le=100)
    historical_weight: float = Field(default=70.0, ge=0, le=100)

    # Границы уровней рекомендации
    suspicious_threshold: float = 40.0
    spam_threshold: float = 70.0

    # Историческое обучение
    learning_min_similarity: float = Field(default=0.8, gt=0, le=1)
    learning_scorer_type: ScorerType = "token_set_ratio"
    learning_brand_scoped: bool = True
    learning_corpus_limit: int = Field(default=5000, ge=1)

    # Локальный кэш правил
    rule_cache_enabled: bool = True
    rule_cache_ttl_seconds: int = Field(default=60, ge=1, le=3600)

    @model_validator(mode="after")
    def check_tier_order(self) -> "ClassificationConfig":
        if not 0 < self.suspicious_threshold < self.spam_threshold <= 100:
            raise ValueError(
                "Пороги должны удовлетворять 0 < suspicious_threshold < spam_threshold <= 100"
            )
        return self
