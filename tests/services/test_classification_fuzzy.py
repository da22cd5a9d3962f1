import pytest
from rapidfuzz import fuzz

from caredesk.services.classification.fuzzy import (
    decision_coverage,
    decision_similarity,
    edit_distance,
    find_best_fuzzy_match,
    fuzzy_contains,
    get_ratio_scorer,
    similarity,
)


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("abc", "", 3),
        ("same", "same", 0),
        ("flaw", "lawn", 2),
    ],
)
def test_edit_distance(a, b, expected):
    assert edit_distance(a, b) == expected


def test_similarity_edges():
    assert similarity("", "") == 1.0
    assert similarity("abc", "") == 0.0
    assert similarity("", "abc") == 0.0
    assert similarity("word", "word") == 1.0
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


@pytest.mark.parametrize(
    "a, b",
    [("free", "fre"), ("gift", "lift"), ("cruise", "cruse"), ("a", "xyz"), ("", "q")],
)
def test_similarity_symmetric_and_bounded(a, b):
    assert similarity(a, b) == similarity(b, a)
    assert 0.0 <= similarity(a, b) <= 1.0


def test_fuzzy_contains_substring_fast_path():
    assert fuzzy_contains("claim your free gift today", "free gift")


def test_fuzzy_contains_single_word_typo():
    assert fuzzy_contains("claim your fre gift", "free")
    assert not fuzzy_contains("claim your prize", "free")


def test_fuzzy_contains_multi_word_in_order():
    assert fuzzy_contains("you won a fre big cruize", "free cruise")
    assert not fuzzy_contains("cruise was free", "free cruise")


@pytest.mark.parametrize("text", ["hello", "win a free cruise", "x", "  ", "!!!"])
@pytest.mark.parametrize("threshold", [0.5, 0.8, 1.0])
def test_fuzzy_contains_reflexive(text, threshold):
    assert fuzzy_contains(text, text, threshold)


def test_fuzzy_contains_empty_inputs():
    assert fuzzy_contains("some text", "") is False
    assert fuzzy_contains("", "pattern") is False
    assert fuzzy_contains("  ", "pattern") is False
    assert fuzzy_contains("some text", "  ") is False


def test_find_best_fuzzy_match():
    assert find_best_fuzzy_match("free gift", "free") == 1.0
    assert find_best_fuzzy_match("fre gift", "free gift", 0.7) == pytest.approx((0.75 + 1.0) / 2)
    assert find_best_fuzzy_match("hello world", "free gift", 0.7) is None
    assert find_best_fuzzy_match("", "free") is None
    assert find_best_fuzzy_match("free", "") is None


def test_decision_similarity_cruise():
    score = decision_similarity("you just won a free cruise", "win a free cruise", 0.8)
    assert score >= 0.8


def test_decision_similarity_below_threshold():
    assert decision_similarity("what is my order status", "win a free cruise", 0.8) == 0.0
    assert decision_similarity("", "win a free cruise", 0.8) == 0.0


def test_decision_coverage():
    assert decision_coverage("win a free cruise", "win a free cruise") == 1.0
    assert decision_coverage("claim your free gift card now", "free gift card") == 1.0
    assert decision_coverage("free gift", "free gift card") == pytest.approx(2 / 3)
    assert decision_coverage("yes", "reply yes to claim your free prize now") < 0.5
    assert decision_coverage("", "free gift") == 0.0
    assert decision_coverage("free gift", "!!!") == 0.0


@pytest.mark.parametrize(
    "text, decision_text",
    [
        ("yes", "reply yes to claim your free prize now"),
        ("order", "order now and get a free gift card"),
        ("free gift", "free gift card for every new order today"),
    ],
)
def test_decision_similarity_needs_decision_covered(text, decision_text):
    assert decision_similarity(text, decision_text, 0.8) == 0.0


def test_decision_similarity_message_containing_decision():
    score = decision_similarity("please reply yes to claim your free prize now", "reply yes to claim your free prize now", 0.8)
    assert score == 1.0


def test_get_ratio_scorer_fallback():
    assert get_ratio_scorer("token_sort_ratio") is fuzz.token_sort_ratio
    assert get_ratio_scorer("unknown") is fuzz.token_set_ratio
