# caredesk/services/classification/insights.py
"""
Аналитика накопленных решений модераторов.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from caredesk.services.classification.models import (
    DailyLearningStats,
    LearningInsights,
    LearningRecord,
)

TOP_LIMIT = 10
PATTERN_SAMPLE_SIZE = 100
RECENT_ACTIVITY_SIZE = 20
DAILY_WINDOW_DAYS = 30

SCORE_BUCKETS = ("0-20", "21-40", "41-60", "61-80", "81-100")


def _score_bucket(score: float) -> str:
    if score <= 20:
        return "0-20"
    if score <= 40:
        return "21-40"
    if score <= 60:
        return "41-60"
    if score <= 80:
        return "61-80"
    return "81-100"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_daily_stats(
    records: Sequence[LearningRecord],
    now: Optional[datetime] = None,
    days: int = DAILY_WINDOW_DAYS,
) -> List[DailyLearningStats]:
    """
    Дневная статистика решений за последние `days` дней.

    Args:
        records: Решения
        now: Текущий момент (для тестов)
        days: Размер окна

    Returns:
        Статистика по дням в хронологическом порядке
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    since = now - timedelta(days=days)

    buckets: Dict[str, List[LearningRecord]] = defaultdict(list)
    for record in records:
        created = _as_utc(record.created_at)
        if created >= since:
            buckets[created.date().isoformat()].append(record)

    daily = []
    for date in sorted(buckets):
        items = buckets[date]
        spam = sum(1 for r in items if r.is_spam)
        daily.append(
            DailyLearningStats(
                date=date,
                total=len(items),
                spam=spam,
                avg_score=round(sum(r.score for r in items) / len(items), 2),
                spam_rate=round(spam / len(items) * 100, 2),
            )
        )
    return daily


def build_insights(
    records: Sequence[LearningRecord],
    now: Optional[datetime] = None,
) -> LearningInsights:
    """
    Собирает аналитику по решениям.

    Частые сигналы, причины и распределение оценок считаются по последним
    100 решениям "спам".

    Args:
        records: Решения (в любом порядке)
        now: Текущий момент (для тестов)
    """
    ordered = sorted(records, key=lambda r: _as_utc(r.created_at), reverse=True)
    spam_records = [r for r in ordered if r.is_spam]
    total = len(ordered)
    spam_total = len(spam_records)

    sample = spam_records[:PATTERN_SAMPLE_SIZE]
    signal_counts = Counter(signal for r in sample for signal in r.signals)
    reason_counts = Counter(reason for r in sample for reason in r.reasons)

    distribution = {bucket: 0 for bucket in SCORE_BUCKETS}
    for record in sample:
        distribution[_score_bucket(record.score)] += 1

    return LearningInsights(
        total_decisions=total,
        spam_decisions=spam_total,
        legitimate_decisions=total - spam_total,
        spam_rate=round(spam_total / total * 100, 2) if total else 0.0,
        top_signals=signal_counts.most_common(TOP_LIMIT),
        top_reasons=reason_counts.most_common(TOP_LIMIT),
        score_distribution=distribution,
        recent_activity=ordered[:RECENT_ACTIVITY_SIZE],
        daily=build_daily_stats(ordered, now=now),
    )
