# caredesk/services/classification/management.py
"""
Управление фразовыми правилами: CRUD, массовый импорт и обслуживание.
"""
import csv
import io
import re
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

from loguru import logger

from caredesk.services.classification.cache import RuleCache
from caredesk.services.classification.exceptions import (
    DuplicateRuleError,
    InvalidRuleError,
    RuleNotFoundError,
)
from caredesk.services.classification.models import (
    EnableAllReport,
    ImportReport,
    RepairReport,
    Rule,
    SpamMode,
    clean_brand,
)
from caredesk.services.classification.storage import ClassificationStorage
from caredesk.utils.text import normalize_text

PATTERN_COLUMNS = ("pattern", "phrase", "text", "spam", "value")
ENABLED_COLUMNS = ("enabled", "on")

_UNSET = object()
_SURROUNDING_QUOTES_RE = re.compile(r'^"+|"+$')


def parse_mode(value: Optional[str]) -> SpamMode:
    """Режим из строки импорта: "lone" -> LONE, все остальное -> CONTAINS."""
    if value and value.strip().lower() == "lone":
        return SpamMode.LONE
    return SpamMode.CONTAINS


def _first_value(row: dict, columns: Tuple[str, ...]) -> str:
    for column in columns:
        value = (row.get(column) or "").strip()
        if value:
            return value
    return ""


def iter_import_rows(content: str) -> Iterator[Tuple[str, SpamMode, Optional[str], bool]]:
    """
    Разбирает файл импорта в кортежи (pattern, mode, brand, enabled).

    Поддерживаются:
    - CSV с заголовком (pattern|phrase|text|spam|value, mode, brand, enabled|on)
    - простой список: одна фраза на строку

    Пустые шаблоны отдаются как "" и учитываются вызывающим кодом.
    """
    text = content.replace("\r\n", "\n").lstrip("\ufeff")
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return

    header = [cell.strip().lower() for cell in next(csv.reader([lines[0]]))]
    if not any(column in header for column in PATTERN_COLUMNS):
        for line in lines:
            yield line.strip(), SpamMode.CONTAINS, None, True
        return

    reader = csv.reader(io.StringIO("\n".join(lines[1:])))
    for fields in reader:
        fields = [field.strip() for field in fields]
        if all(field == "" for field in fields):
            continue
        row = dict(zip(header, fields))
        brand = (row.get("brand") or "").strip() or None
        enabled = _first_value(row, ENABLED_COLUMNS).lower() != "false"
        yield _first_value(row, PATTERN_COLUMNS), parse_mode(row.get("mode")), brand, enabled


class SpamRuleManager:
    """
    Управление правилами модераторов.

    Каждая мутация инвалидирует кэш правил движка, поэтому изменения
    видны следующей классификации в этом процессе сразу.
    """

    def __init__(self, storage: ClassificationStorage, cache: Optional[RuleCache] = None):
        """
        Args:
            storage: Хранилище правил
            cache: Кэш правил движка классификации
        """
        self.storage = storage
        self.cache = cache

    def _invalidate(self) -> None:
        if self.cache is not None:
            self.cache.invalidate()

    async def list_rules(self) -> List[Rule]:
        return await self.storage.list_rules()

    async def get_rule(self, rule_id: str) -> Rule:
        """
        Raises:
            RuleNotFoundError: Если правила нет
        """
        rule = await self.storage.get_rule(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    async def create_rule(
        self,
        pattern: str,
        mode: SpamMode = SpamMode.CONTAINS,
        brand: Optional[str] = None,
        enabled: bool = True,
    ) -> Rule:
        """
        Создает правило.

        Raises:
            InvalidRuleError: Пустой шаблон (или пустой после нормализации)
            DuplicateRuleError: Такое правило уже есть
        """
        pattern = (pattern or "").strip()
        if not pattern:
            raise InvalidRuleError("Pattern is required")

        rule = Rule.create(pattern, mode=mode, brand=brand, enabled=enabled)
        if not rule.pattern_norm:
            raise InvalidRuleError(f"Pattern has no letters or digits: {pattern!r}")

        if not await self.storage.add_rule(rule):
            raise DuplicateRuleError(pattern)

        self._invalidate()
        logger.info(f"✅ Создано правило '{rule.pattern}' ({rule.mode.value}, brand: {rule.brand})")
        return rule

    async def update_rule(
        self,
        rule_id: str,
        pattern: Optional[str] = None,
        enabled: Optional[bool] = None,
        mode: Optional[SpamMode] = None,
        brand=_UNSET,
    ) -> Rule:
        """
        Обновляет правило. Передайте brand=None, чтобы сделать правило глобальным.

        Raises:
            RuleNotFoundError, InvalidRuleError, DuplicateRuleError
        """
        rule = await self.get_rule(rule_id)
        changes = {"updated_at": datetime.now(timezone.utc)}

        if pattern is not None:
            next_pattern = pattern.strip()
            if not next_pattern:
                raise InvalidRuleError("pattern cannot be empty")
            norm = normalize_text(next_pattern)
            if not norm:
                raise InvalidRuleError(f"pattern has no letters or digits: {next_pattern!r}")
            changes["pattern"] = next_pattern
            changes["pattern_norm"] = norm
        if enabled is not None:
            changes["enabled"] = enabled
        if mode is not None:
            changes["mode"] = mode
        if brand is not _UNSET:
            changes["brand"] = clean_brand(brand)

        updated = rule.model_copy(update=changes)
        if not await self.storage.update_rule(updated):
            raise DuplicateRuleError(updated.pattern)

        self._invalidate()
        return updated

    async def toggle_rule(self, rule_id: str, enabled: bool) -> Rule:
        return await self.update_rule(rule_id, enabled=enabled)

    async def delete_rule(self, rule_id: str) -> None:
        """
        Raises:
            RuleNotFoundError: Если правила нет
        """
        if not await self.storage.delete_rule(rule_id):
            raise RuleNotFoundError(rule_id)

        self._invalidate()
        logger.info(f"🗑️ Правило {rule_id} удалено")

    async def import_rules(self, content: str) -> ImportReport:
        """
        Массовый импорт правил из CSV или списка фраз.

        Дубликаты (по pattern_norm, mode, brand) пропускаются.

        Raises:
            InvalidRuleError: В файле нет ни одной фразы
        """
        total_read = 0
        inserted = 0
        skipped_existing = 0
        skipped_blank = 0

        for pattern, mode, brand, enabled in iter_import_rows(content or ""):
            total_read += 1
            rule = Rule.create(pattern, mode=mode, brand=brand, enabled=enabled) if pattern else None
            if rule is None or not rule.pattern_norm:
                skipped_blank += 1
                continue

            if await self.storage.add_rule(rule):
                inserted += 1
            else:
                skipped_existing += 1

        if inserted + skipped_existing == 0:
            raise InvalidRuleError("No phrases found.")

        self._invalidate()
        report = ImportReport(
            total_read=total_read,
            inserted=inserted,
            skipped_existing=skipped_existing,
            skipped_blank=skipped_blank,
        )
        logger.success(f"✅ Импорт правил завершен: {report.to_dict()}")
        return report

    async def enable_all(self) -> EnableAllReport:
        """Включает все правила и восстанавливает устаревшие pattern_norm."""
        rules = await self.storage.list_rules()
        enabled_changed = 0
        normalized_fixed = 0
        conflicts = 0

        for rule in rules:
            changes = {}
            if not rule.enabled:
                changes["enabled"] = True
            expected_norm = normalize_text(rule.pattern)
            if rule.pattern_norm != expected_norm:
                changes["pattern_norm"] = expected_norm
            if not changes:
                continue

            changes["updated_at"] = datetime.now(timezone.utc)
            if not await self.storage.update_rule(rule.model_copy(update=changes)):
                # Восстановленный ключ занят другим правилом
                conflicts += 1
                logger.warning(f"⚠️ Правило '{rule.pattern}' ({rule.id}) конфликтует с существующим, пропущено")
                continue
            if "enabled" in changes:
                enabled_changed += 1
            if "pattern_norm" in changes:
                normalized_fixed += 1

        self._invalidate()
        enabled_now = len(await self.storage.list_enabled_rules())
        return EnableAllReport(
            scanned=len(rules),
            enabled_changed=enabled_changed,
            normalized_fixed=normalized_fixed,
            enabled_now=enabled_now,
            conflicts=conflicts,
        )

    async def repair_rules(self) -> RepairReport:
        """
        Чинит правила, импортированные целой CSV-строкой ("phrase,Mode,Brand,true"):
        оставляет только первую ячейку без окружающих кавычек.
        """
        rules = sorted(await self.storage.list_rules(), key=lambda r: r.created_at)
        updated = 0

        for rule in rules:
            first_cell = rule.pattern.split(",")[0].strip()
            cleaned = _SURROUNDING_QUOTES_RE.sub("", first_cell)
            norm = normalize_text(cleaned)

            if cleaned == rule.pattern and norm == rule.pattern_norm:
                continue
            if not norm:
                logger.warning(f"⚠️ Правило {rule.id} пустое после очистки, пропущено")
                continue

            repaired = rule.model_copy(
                update={
                    "pattern": cleaned,
                    "pattern_norm": norm,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            if await self.storage.update_rule(repaired):
                updated += 1
            else:
                logger.warning(f"⚠️ Правило '{cleaned}' после очистки дублирует существующее")

        self._invalidate()
        return RepairReport(scanned=len(rules), updated=updated)
