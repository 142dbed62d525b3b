"""Test playback timing math."""
import pytest
from ingestion.sequencer import PARAGRAPH_MARKER
from playback.timing import (
    TimingConfig, average_wpm, clamp_wpm, orp_index, punctuation_pause, ramp_wpm,
    split_word, word_delay_ms
)


def test_orp_index():
    """Test ORP positions by word length."""
    for length in (1, 2, 3):
        assert orp_index("a" * length) == 0
    for length in (4, 5, 6, 7):
        assert orp_index("a" * length) == 1
    assert orp_index("a" * 8) == 2
    assert orp_index("a" * 20) == 7


def test_split_word():
    """Test splitting around the focus letter."""
    assert split_word("reading") == ("r", "e", "ading")
    assert split_word("a") == ("", "a", "")
    assert split_word("") == ("", "", "")


def test_word_delay():
    """Test base delay and punctuation pauses."""
    assert word_delay_ms("word", 200) == pytest.approx(300)
    assert word_delay_ms("end.", 200) == pytest.approx(350)
    assert word_delay_ms("wait!", 200) == pytest.approx(350)
    assert word_delay_ms("so,", 200) == pytest.approx(325)
    assert word_delay_ms("note:", 200) == pytest.approx(325)


def test_paragraph_pause():
    """Test the extra hold before a paragraph break."""
    assert word_delay_ms("end.", 200, next_token=PARAGRAPH_MARKER) == pytest.approx(450)
    assert word_delay_ms(PARAGRAPH_MARKER, 200) == pytest.approx(400)
    assert punctuation_pause("") == 0


def test_clamp_wpm():
    """Test rate bounds."""
    assert clamp_wpm(10) == 50
    assert clamp_wpm(5000) == 1200
    assert clamp_wpm(300) == 300


def test_ramp_monotonic_and_reaches_target():
    """Test the warm-up ramp."""
    rates = [ramp_wpm(ms) for ms in range(0, 30001, 500)]

    assert rates[0] == 200
    assert rates[-1] == 700
    assert all(a <= b for a, b in zip(rates, rates[1:]))
    assert ramp_wpm(45000) == 700


def test_ramp_eases_out():
    """Test that the ramp climbs faster at the start."""
    assert ramp_wpm(15000) - 200 > 700 - ramp_wpm(15000)


def test_average_wpm():
    """Test session average rules."""
    assert average_wpm(0, 10) == 0
    assert average_wpm(2, 10) == 0
    assert average_wpm(100, 60) == 100
    assert average_wpm(3, 0) == 0
    assert average_wpm(10000, 1) == 2000


def test_custom_timing():
    """Test injected timing constants."""
    timing = TimingConfig(sentence_pause_ms=200, min_wpm=100)
    assert word_delay_ms("end.", 200, timing=timing) == pytest.approx(500)
    assert clamp_wpm(50, timing) == 100


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
