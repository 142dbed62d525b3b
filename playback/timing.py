"""Timing math for RSVP playback: delays, ORP, ramp and session stats."""
import math
from typing import Tuple

from pydantic import BaseModel, ConfigDict

from ingestion.sequencer import is_marker
import config


class TimingConfig(BaseModel):
    """Named timing constants, injectable for tests."""
    model_config = ConfigDict(frozen=True)

    min_wpm: int = config.MIN_WPM
    max_wpm: int = config.MAX_WPM
    wpm_step: int = config.WPM_STEP
    skip_words: int = config.SKIP_WORDS
    sentence_pause_ms: int = config.SENTENCE_PAUSE_MS
    clause_pause_ms: int = config.CLAUSE_PAUSE_MS
    paragraph_pause_ms: int = config.PARAGRAPH_PAUSE_MS
    fade_ms: int = config.FADE_MS
    chapter_pause_ms: int = config.CHAPTER_PAUSE_MS
    ramp_start_wpm: int = config.RAMP_START_WPM
    ramp_end_wpm: int = config.RAMP_END_WPM
    ramp_duration_ms: int = config.RAMP_DURATION_MS
    ramp_tick_ms: int = config.RAMP_TICK_MS
    min_session_words: int = config.MIN_SESSION_WORDS
    min_stats_words: int = config.MIN_STATS_WORDS
    max_reported_wpm: int = config.MAX_REPORTED_WPM
    autosave_interval_ms: int = config.AUTOSAVE_INTERVAL_MS


DEFAULT_TIMING = TimingConfig()


def orp_index(word: str) -> int:
    """Index of the Optimal Recognition Point in a word.

    Args:
        word: Word as displayed, punctuation included

    Returns:
        0 for up to 3 chars, 1 for 4-7 chars, else floor(0.35 * length)
    """
    length = len(word)
    if length <= 3:
        return 0
    if length <= 7:
        return 1
    return math.floor(length * 0.35)


def split_word(word: str) -> Tuple[str, str, str]:
    """Split a word into (before, focus, after) around its ORP."""
    if not word:
        return '', '', ''
    i = orp_index(word)
    return word[:i], word[i], word[i + 1:]


def punctuation_pause(word: str, timing: TimingConfig = DEFAULT_TIMING) -> int:
    """Extra milliseconds to hold a word ending in punctuation."""
    if not word:
        return 0
    last = word[-1]
    if last in '.!?':
        return timing.sentence_pause_ms
    if last in ',;:':
        return timing.clause_pause_ms
    return 0


def word_delay_ms(
    word: str,
    wpm: int,
    next_token: str = None,
    timing: TimingConfig = DEFAULT_TIMING
) -> float:
    """Milliseconds the word stays on screen before the next advance.

    Args:
        word: Current token
        wpm: Current rate
        next_token: Following token, if any
        timing: Timing constants

    Returns:
        Base delay plus punctuation and paragraph pauses
    """
    delay = 60000 / wpm
    if is_marker(word):
        return delay + timing.paragraph_pause_ms

    delay += punctuation_pause(word, timing)
    if next_token is not None and is_marker(next_token):
        delay += timing.paragraph_pause_ms
    return delay


def clamp_wpm(wpm: int, timing: TimingConfig = DEFAULT_TIMING) -> int:
    return max(timing.min_wpm, min(timing.max_wpm, int(wpm)))


def ramp_wpm(elapsed_ms: float, timing: TimingConfig = DEFAULT_TIMING) -> int:
    """Rate during the warm-up ramp.

    Eases out from ramp_start_wpm to ramp_end_wpm over ramp_duration_ms,
    so the rate climbs fast at first and settles at the target.
    """
    t = min(max(elapsed_ms / timing.ramp_duration_ms, 0.0), 1.0)
    eased = 1 - (1 - t) ** 2
    return round(timing.ramp_start_wpm + (timing.ramp_end_wpm - timing.ramp_start_wpm) * eased)


def average_wpm(words_read: int, elapsed_seconds: float, timing: TimingConfig = DEFAULT_TIMING) -> int:
    """Average reading rate for a session.

    Args:
        words_read: Real words displayed
        elapsed_seconds: Active play time, pauses excluded

    Returns:
        Rounded words per minute, 0 below min_stats_words, capped at max_reported_wpm
    """
    if words_read < timing.min_stats_words or elapsed_seconds <= 0:
        return 0
    wpm = math.floor(words_read / elapsed_seconds * 60 + 0.5)
    return min(wpm, timing.max_reported_wpm)
