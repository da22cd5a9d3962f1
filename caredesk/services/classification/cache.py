# caredesk/services/classification/cache.py
"""
Кэш включенных правил для снижения числа обращений к хранилищу.
"""
import time
from typing import List, Optional

from loguru import logger

from caredesk.services.classification.models import Rule


class RuleCache:
    """
    Локальный кэш включенных правил с TTL.

    Пустой список правил - валидное закэшированное значение (правил нет),
    поэтому состояние "загружено" хранится отдельно от содержимого.
    """

    DEFAULT_TTL = 60
    MIN_TTL = 1
    MAX_TTL = 3600

    def __init__(self, ttl_seconds: int = DEFAULT_TTL):
        """
        Args:
            ttl_seconds: Время жизни кэша в секундах

        Raises:
            ValueError: Если TTL вне допустимого диапазона
        """
        if not self.MIN_TTL <= ttl_seconds <= self.MAX_TTL:
            raise ValueError(
                f"TTL должен быть в диапазоне "
                f"[{self.MIN_TTL}, {self.MAX_TTL}] секунд"
            )

        self._rules: List[Rule] = []
        self._loaded = False
        self._expiry_time: float = 0.0
        self._ttl_seconds = ttl_seconds
        self._hit_count = 0
        self._miss_count = 0

    def get(self) -> Optional[List[Rule]]:
        """
        Возвращает закэшированные правила, если кэш валиден.

        Returns:
            Копия списка правил или None, если кэш устарел
        """
        if self.is_valid():
            self._hit_count += 1
            return list(self._rules)

        self._miss_count += 1
        return None

    def set(self, rules: List[Rule]) -> None:
        """Сохраняет правила в кэш."""
        self._rules = list(rules)
        self._loaded = True
        self._expiry_time = time.monotonic() + self._ttl_seconds

        logger.debug(
            f"📦 Кэш правил обновлен: {len(rules)} правил, "
            f"истекает через {self._ttl_seconds}s"
        )

    def is_valid(self) -> bool:
        return self._loaded and time.monotonic() < self._expiry_time

    def invalidate(self) -> None:
        """Принудительно инвалидирует кэш."""
        rules_count = len(self._rules)
        self._rules = []
        self._loaded = False
        self._expiry_time = 0.0

        logger.debug(f"🔄 Кэш правил инвалидирован ({rules_count} правил удалено)")

    def size(self) -> int:
        return len(self._rules)

    def get_hit_rate(self) -> float:
        """Hit rate кэша в процентах (0-100)."""
        total = self._hit_count + self._miss_count
        if total == 0:
            return 0.0
        return (self._hit_count / total) * 100

    def get_stats(self) -> dict:
        return {
            "size": self.size(),
            "valid": self.is_valid(),
            "hits": self._hit_count,
            "misses": self._miss_count,
            "hit_rate": self.get_hit_rate(),
        }
