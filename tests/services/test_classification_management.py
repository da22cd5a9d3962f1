import pytest

from caredesk.services.classification.cache import RuleCache
from caredesk.services.classification.exceptions import (
    DuplicateRuleError,
    InvalidRuleError,
    RuleNotFoundError,
)
from caredesk.services.classification.management import SpamRuleManager, iter_import_rows
from caredesk.services.classification.models import Rule, SpamMode


@pytest.fixture
def cache():
    return RuleCache()


@pytest.fixture
def manager(redis_storage, cache):
    return SpamRuleManager(redis_storage, cache=cache)


@pytest.mark.asyncio
async def test_create_rule_and_duplicates(manager):
    rule = await manager.create_rule("  Free Gift  ", brand="BrandX")
    assert rule.pattern == "Free Gift"
    assert rule.pattern_norm == "free gift"

    with pytest.raises(DuplicateRuleError) as exc:
        await manager.create_rule("free gift!!", brand="brandx")
    assert "Duplicate pattern" in str(exc.value)

    await manager.create_rule("free gift", mode=SpamMode.LONE, brand="BrandX")
    await manager.create_rule("free gift")
    assert len(await manager.list_rules()) == 3


@pytest.mark.asyncio
async def test_create_rule_rejects_blank_patterns(manager):
    with pytest.raises(InvalidRuleError):
        await manager.create_rule("   ")
    with pytest.raises(InvalidRuleError):
        await manager.create_rule("!!!")


@pytest.mark.asyncio
async def test_mutations_invalidate_cache(manager, cache):
    cache.set([])
    rule = await manager.create_rule("free gift")
    assert not cache.is_valid()

    cache.set([rule])
    await manager.toggle_rule(rule.id, False)
    assert not cache.is_valid()

    cache.set([])
    await manager.delete_rule(rule.id)
    assert not cache.is_valid()


@pytest.mark.asyncio
async def test_update_rule(manager):
    rule = await manager.create_rule("free gift", brand="BrandX")

    updated = await manager.update_rule(rule.id, pattern="Free Cruise", mode=SpamMode.LONE)
    assert updated.pattern_norm == "free cruise"
    assert updated.mode is SpamMode.LONE
    assert updated.brand == "BrandX"

    global_rule = await manager.update_rule(rule.id, brand=None)
    assert global_rule.brand is None

    with pytest.raises(InvalidRuleError):
        await manager.update_rule(rule.id, pattern="  ")


@pytest.mark.asyncio
async def test_update_rule_rejects_pattern_without_letters(manager):
    rule = await manager.create_rule("free gift")

    with pytest.raises(InvalidRuleError):
        await manager.update_rule(rule.id, pattern="!!!")

    stored = await manager.get_rule(rule.id)
    assert stored.pattern == "free gift"
    assert stored.pattern_norm == "free gift"


@pytest.mark.asyncio
async def test_missing_rule(manager):
    with pytest.raises(RuleNotFoundError):
        await manager.get_rule("missing")
    with pytest.raises(RuleNotFoundError):
        await manager.delete_rule("missing")
    with pytest.raises(RuleNotFoundError):
        await manager.toggle_rule("missing", True)


def test_iter_import_rows_plain_list():
    rows = list(iter_import_rows("\ufefffree gift\n\nwin a prize\r\n"))
    assert rows == [
        ("free gift", SpamMode.CONTAINS, None, True),
        ("win a prize", SpamMode.CONTAINS, None, True),
    ]


def test_iter_import_rows_csv_with_header():
    content = 'Phrase,Mode,Brand,Enabled\n"free, gift",lone,BrandX,true\nwin,,,false\n,,,\n'
    rows = list(iter_import_rows(content))
    assert rows == [
        ("free, gift", SpamMode.LONE, "BrandX", True),
        ("win", SpamMode.CONTAINS, None, False),
    ]


@pytest.mark.asyncio
async def test_import_rules(manager):
    await manager.create_rule("free gift")
    report = await manager.import_rules("pattern,mode\nfree gift,contains\nwin big,lone\n!!!,\n")
    assert report.total_read == 3
    assert report.inserted == 1
    assert report.skipped_existing == 1
    assert report.skipped_blank == 1


@pytest.mark.asyncio
async def test_import_without_phrases_fails(manager):
    with pytest.raises(InvalidRuleError, match="No phrases found."):
        await manager.import_rules("pattern\n!!!\n")
    with pytest.raises(InvalidRuleError):
        await manager.import_rules("")


@pytest.mark.asyncio
async def test_enable_all_fixes_stale_norms(manager, redis_storage):
    stale = Rule(pattern="Free Gift", pattern_norm="", enabled=False)
    await redis_storage.add_rule(stale)
    await manager.create_rule("win big")

    report = await manager.enable_all()
    assert report.scanned == 2
    assert report.enabled_changed == 1
    assert report.normalized_fixed == 1
    assert report.enabled_now == 2
    assert report.conflicts == 0


@pytest.mark.asyncio
async def test_enable_all_reports_conflicting_norms(manager, redis_storage):
    stale = Rule(pattern="Free Gift", pattern_norm="freegift", enabled=False)
    await redis_storage.add_rule(stale)
    await manager.create_rule("free gift")

    report = await manager.enable_all()
    assert report.scanned == 2
    assert report.conflicts == 1
    assert report.normalized_fixed == 0
    assert report.enabled_changed == 0
    assert report.enabled_now == 1

    kept = await manager.get_rule(stale.id)
    assert kept.pattern_norm == "freegift"
    assert kept.enabled is False


@pytest.mark.asyncio
async def test_repair_rules_keeps_first_csv_cell(manager, redis_storage):
    broken = Rule.create('"free gift",Contains,BrandX,true')
    await redis_storage.add_rule(broken)
    await manager.create_rule("win big")

    report = await manager.repair_rules()
    assert report.scanned == 2
    assert report.updated == 1

    repaired = await manager.get_rule(broken.id)
    assert repaired.pattern == "free gift"
    assert repaired.pattern_norm == "free gift"
