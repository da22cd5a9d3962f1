import pytest

from caredesk.config.models import ClassificationConfig
from caredesk.services.classification.models import Recommendation
from caredesk.services.classification.scorer import ClassificationScorer


@pytest.fixture
def scorer():
    return ClassificationScorer()


@pytest.mark.parametrize(
    "score, tier",
    [
        (0, Recommendation.LIKELY_LEGITIMATE),
        (39.99, Recommendation.LIKELY_LEGITIMATE),
        (40, Recommendation.SUSPICIOUS),
        (69.99, Recommendation.SUSPICIOUS),
        (70, Recommendation.LIKELY_SPAM),
        (100, Recommendation.LIKELY_SPAM),
    ],
)
def test_tier_boundaries(scorer, score, tier):
    assert scorer.tier_for(score) is tier


def test_rule_hit_alone_is_spam(scorer):
    assert scorer.compute(1, 0.0) == 75
    assert scorer.tier_for(scorer.compute(1, 0.0)) is Recommendation.LIKELY_SPAM


def test_full_historical_confidence_reaches_spam_boundary(scorer):
    assert scorer.compute(0, 1.0) == 70
    assert scorer.compute(0, 0.5) == 35


def test_score_is_clamped(scorer):
    assert scorer.compute(10, 1.0) == 100
    assert scorer.compute(0, -1.0) == 0
    assert scorer.compute(0, 5.0) == 70


@pytest.mark.parametrize("confidence", [0.0, 0.25, 0.5, 1.0])
def test_adding_rules_never_lowers_score(scorer, confidence):
    scores = [scorer.compute(rules, confidence) for rules in range(5)]
    assert scores == sorted(scores)


def test_custom_weights_hit_exact_suspicious_boundary():
    scorer = ClassificationScorer(ClassificationConfig(historical_weight=40))
    result = scorer.build_result([], 1.0, ["history"])
    assert result.score == 40
    assert result.recommendation is Recommendation.SUSPICIOUS


def test_build_result(scorer):
    result = scorer.build_result(["free gift"], 0.333333, ['Matched rule: "free gift"'])
    assert result.patterns == ["free gift"]
    assert result.historical_confidence == 0.3333
    assert result.score == round(75 + 70 * 0.333333, 2)
    assert result.is_spam
    assert result.to_dict()["recommendation"] == "likely_spam"
