from caredesk.services.classification.analyzer import ContentAnalyzer


def test_empty_text():
    result = ContentAnalyzer().analyze("")
    assert result.score == 0
    assert result.signals == []


def test_legitimate_message_has_no_signals():
    result = ContentAnalyzer().analyze("Hi, what's the status of my order #1234?")
    assert result.score == 0
    assert result.reasons == []


def test_caps_and_spam_words():
    result = ContentAnalyzer().analyze("WIN FREE CASH NOW")
    assert result.signals == ["character:all_caps", "words:spam_words"]
    assert result.score == 10 + 8 * 3
    assert "Spam words detected: win, free, cash" in result.reasons


def test_links_and_phones():
    result = ContentAnalyzer().analyze("Call 555-123-4567 or visit https://x.io")
    assert "indicator:contains_urls" in result.signals
    assert "indicator:contains_phones" in result.signals
    assert result.score == 18


def test_score_is_capped():
    result = ContentAnalyzer().analyze("!" * 24)
    assert result.score == 100
    assert "indicator:excessive_exclamations" in result.signals
