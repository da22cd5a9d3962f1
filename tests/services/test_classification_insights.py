from datetime import datetime, timedelta, timezone

from caredesk.services.classification.insights import build_daily_stats, build_insights
from caredesk.services.classification.models import LearningRecord

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _record(is_spam, score, signals=(), days_ago=0):
    return LearningRecord(
        text="some text",
        is_spam=is_spam,
        score=score,
        signals=list(signals),
        reasons=[f"reason {signal}" for signal in signals],
        created_at=NOW - timedelta(days=days_ago),
    )


def test_build_insights():
    records = [
        _record(True, 90, ["words:spam_words", "character:all_caps"]),
        _record(True, 55, ["words:spam_words"], days_ago=1),
        _record(False, 5, days_ago=1),
        _record(True, 10, ["indicator:contains_urls"], days_ago=45),
    ]
    insights = build_insights(records, now=NOW)

    assert insights.total_decisions == 4
    assert insights.spam_decisions == 3
    assert insights.legitimate_decisions == 1
    assert insights.spam_rate == 75.0
    assert insights.top_signals[0] == ("words:spam_words", 2)
    assert insights.top_reasons[0] == ("reason words:spam_words", 2)
    assert insights.score_distribution == {
        "0-20": 1,
        "21-40": 0,
        "41-60": 1,
        "61-80": 0,
        "81-100": 1,
    }
    assert insights.recent_activity[0].score == 90
    assert [day.date for day in insights.daily] == ["2026-03-09", "2026-03-10"]


def test_daily_stats():
    records = [_record(True, 80, days_ago=0), _record(False, 20, days_ago=0)]
    (day,) = build_daily_stats(records, now=NOW)
    assert day.total == 2
    assert day.spam == 1
    assert day.avg_score == 50.0
    assert day.spam_rate == 50.0


def test_empty_insights():
    insights = build_insights([], now=NOW)
    assert insights.total_decisions == 0
    assert insights.spam_rate == 0.0
    assert insights.daily == []
