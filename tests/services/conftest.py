from typing import Iterable, List, Optional

import fakeredis.aioredis
import pytest
import pytest_asyncio

from caredesk.config.models import ClassificationConfig
from caredesk.services.classification.exceptions import ClassificationStorageError
from caredesk.services.classification.learning import brands_compatible
from caredesk.services.classification.models import LearningRecord, Rule
from caredesk.services.classification.service import MessageClassificationService
from caredesk.services.classification.storage import (
    ClassificationStorage,
    RedisClassificationStorage,
    decision_matches,
)


class MemoryStorage(ClassificationStorage):
    """Хранилище в памяти со счетчиками чтений."""

    def __init__(self):
        self.rules: List[Rule] = []
        self.records: List[LearningRecord] = []
        self.rule_reads = 0
        self.decision_reads = 0

    async def list_rules(self):
        self.rule_reads += 1
        return sorted(self.rules, key=lambda r: r.created_at, reverse=True)

    async def list_enabled_rules(self):
        return [rule for rule in await self.list_rules() if rule.enabled]

    async def get_rule(self, rule_id):
        return next((rule for rule in self.rules if rule.id == rule_id), None)

    async def add_rule(self, rule):
        if any(existing.unique_key == rule.unique_key for existing in self.rules):
            return False
        self.rules.append(rule)
        return True

    async def update_rule(self, rule):
        if any(r.unique_key == rule.unique_key and r.id != rule.id for r in self.rules):
            return False
        self.rules = [rule if r.id == rule.id else r for r in self.rules]
        return True

    async def delete_rule(self, rule_id):
        before = len(self.rules)
        self.rules = [r for r in self.rules if r.id != rule_id]
        return len(self.rules) < before

    async def find_similar_decisions(self, brands: Optional[Iterable] = None, limit: int = 5000):
        self.decision_reads += 1
        records = self.records[:limit]
        if brands is None:
            return records
        brand_list = list(brands)
        return [r for r in records if any(brands_compatible(r.brand, b) for b in brand_list)]

    async def list_decisions(self, brand=None, limit=None):
        records = [r for r in self.records if brand is None or r.brand == brand]
        return records[:limit] if limit is not None else records

    async def append_decision(self, record):
        self.records.insert(0, record)

    async def delete_decisions(self, text, brand, is_spam):
        before = len(self.records)
        self.records = [r for r in self.records if not decision_matches(r, text, brand, is_spam)]
        return before - len(self.records)

    async def clear_decisions(self):
        count = len(self.records)
        self.records = []
        return count

    async def count_decisions(self):
        return len(self.records)


class FailingStorage(MemoryStorage):
    """Хранилище, у которого недоступны правила и/или решения."""

    def __init__(self, rules_down: bool = True, decisions_down: bool = True):
        super().__init__()
        self.rules_down = rules_down
        self.decisions_down = decisions_down

    async def list_rules(self):
        if self.rules_down:
            raise ClassificationStorageError("rules: connection refused")
        return await super().list_rules()

    async def find_similar_decisions(self, brands=None, limit=5000):
        if self.decisions_down:
            raise ClassificationStorageError("decisions: connection refused")
        return await super().find_similar_decisions(brands, limit)

    async def append_decision(self, record):
        if self.decisions_down:
            raise ClassificationStorageError("decisions: connection refused")
        await super().append_decision(record)


@pytest_asyncio.fixture
async def redis():
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    await r.flushall()
    yield r
    await r.flushall()
    await r.aclose()


@pytest.fixture
def redis_storage(redis):
    return RedisClassificationStorage(redis)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def config():
    return ClassificationConfig()


@pytest.fixture
def service(redis_storage, config):
    return MessageClassificationService(redis_storage, config=config)


@pytest.fixture
def memory_service(memory_storage, config):
    return MessageClassificationService(memory_storage, config=config)


@pytest.fixture
def rules_down_service(config):
    return MessageClassificationService(FailingStorage(rules_down=True, decisions_down=False), config=config)


@pytest.fixture
def decisions_down_service(config):
    return MessageClassificationService(FailingStorage(rules_down=False, decisions_down=True), config=config)


@pytest.fixture
def storage_down_service(config):
    return MessageClassificationService(FailingStorage(), config=config)
