"""RSVP playback engine.

Shows one word at a time on a single-threaded timer. All operations and
timer callbacks are expected to run on the scheduler's thread; at most
one advancement is pending at any time, and every state change cancels
it before mutating.
"""
import math
from typing import Callable, List, Optional, Sequence, Tuple, Union

from utils.logger import setup_logger
from ingestion.models import ChapterWords, ReadingPlan
from ingestion.sequencer import count_words, is_marker
from playback.models import (
    ORP_THEMES, PlaybackState, PlayerState, ProgressCheckpoint, RenderState, SessionStats
)
from playback.scheduler import Scheduler
from playback.timing import (
    DEFAULT_TIMING, TimingConfig, average_wpm, clamp_wpm, punctuation_pause,
    ramp_wpm, split_word, word_delay_ms
)

logger = setup_logger(__name__)

PersistProgress = Callable[[str, ProgressCheckpoint], None]


class EngineStateError(Exception):
    """Raised when an operation is not valid in the current state."""
    pass


class RSVPEngine:
    """Drives word-by-word playback of a reading plan."""

    def __init__(
        self,
        plan: Union[ReadingPlan, Sequence[str]],
        scheduler: Scheduler,
        timing: TimingConfig = DEFAULT_TIMING,
        wpm: Optional[int] = None,
        auto_ramp: bool = True,
        theme: str = "focus",
        start_index: int = 0,
        on_tick: Optional[Callable[[RenderState], None]] = None,
        on_chapter_change: Optional[Callable[[int], None]] = None,
        on_done: Optional[Callable[[SessionStats], None]] = None,
        session_id: Optional[str] = None,
        authenticated: bool = False,
        persist_progress: Optional[PersistProgress] = None
    ):
        """
        Args:
            plan: ReadingPlan, or a bare word sequence read as one chapter
            scheduler: Timer source
            timing: Timing constants
            wpm: Starting rate when auto_ramp is off
            auto_ramp: Warm up from ramp_start_wpm to ramp_end_wpm
            theme: Key of ORP_THEMES
            start_index: Words into the whole plan to resume from
            on_tick: Receives a RenderState whenever the display changes
            on_chapter_change: Receives the new chapter index
            on_done: Receives final SessionStats
            session_id: Stored session to autosave into
            authenticated: Autosave only runs for authenticated readers
            persist_progress: Autosave collaborator
        """
        if not isinstance(plan, ReadingPlan):
            words = list(plan)
            plan = ReadingPlan(
                title="Untitled",
                chapters=[ChapterWords(title="Untitled", words=words)],
                word_count=count_words(words)
            )
        if theme not in ORP_THEMES:
            raise ValueError(f"Unknown theme: {theme}")

        self.plan = plan
        self.scheduler = scheduler
        self.timing = timing
        self.on_tick = on_tick
        self.on_chapter_change = on_chapter_change
        self.on_done = on_done
        self.session_id = session_id
        self.authenticated = authenticated
        self.persist_progress = persist_progress

        self._initial_wpm = clamp_wpm(wpm or timing.ramp_start_wpm, timing)
        self._initial_auto_ramp = auto_ramp

        chapter_index, index = self._locate(start_index)
        self._state = PlaybackState(
            index=index,
            wpm=timing.ramp_start_wpm if auto_ramp else self._initial_wpm,
            auto_ramp=auto_ramp,
            chapter_index=chapter_index,
            theme=theme
        )
        self.words: List[str] = list(plan.chapters[chapter_index].words)
        self._skip_marker(forward=True)

        self._advance_handle = None
        self._advance_step: Optional[str] = None  # word, fade or chapter
        self._ramp_handle = None
        self._autosave_handle = None
        self._play_started_at: Optional[float] = None
        self._count_pending = True  # current word not yet counted as read
        self._fading = False
        self._paragraph_break = False

    # Read-only views

    @property
    def state(self) -> PlayerState:
        return self._state.state

    @property
    def index(self) -> int:
        return self._state.index

    @property
    def wpm(self) -> int:
        return self._state.wpm

    @property
    def auto_ramp(self) -> bool:
        return self._state.auto_ramp

    @property
    def chapter_index(self) -> int:
        return self._state.chapter_index

    @property
    def theme(self) -> str:
        return self._state.theme

    @property
    def position(self) -> int:
        """Real words before the current word, across the whole plan."""
        before = sum(count_words(c.words) for c in self.plan.chapters[:self._state.chapter_index])
        return before + count_words(self.words[:self._state.index])

    # Controls

    def play(self) -> None:
        """Start or resume playback.

        Raises:
            EngineStateError: If the plan has fewer than min_session_words words
        """
        if self._state.state == PlayerState.PLAYING:
            return
        if self.plan.word_count < self.timing.min_session_words:
            raise EngineStateError(
                f"Need at least {self.timing.min_session_words} words to start, "
                f"got {self.plan.word_count}"
            )

        if self._state.state == PlayerState.COMPLETED:
            self._reset_for_replay()

        self._state.state = PlayerState.PLAYING
        self._play_started_at = self.scheduler.time()
        if self._state.auto_ramp:
            self._state.wpm = ramp_wpm(self._state.ramp_elapsed_ms, self.timing)

        self._count_current()
        self._emit_tick()

        if self._state.auto_ramp:
            self._ramp_handle = self.scheduler.call_later(self.timing.ramp_tick_ms / 1000, self._ramp_tick)
        if self._autosave_enabled:
            self._autosave_handle = self.scheduler.call_later(
                self.timing.autosave_interval_ms / 1000, self._autosave_tick
            )

        self._schedule_next()

    def pause(self) -> None:
        if self._state.state != PlayerState.PLAYING:
            return
        self._halt()
        self._state.state = PlayerState.PAUSED
        if self._autosave_enabled:
            self._persist()
        self._emit_tick()

    def toggle(self) -> None:
        if self._state.state == PlayerState.PLAYING:
            self.pause()
        else:
            self.play()

    def stop(self) -> None:
        """Cancel all timers and return to IDLE, keeping the position."""
        self._halt()
        self._state.state = PlayerState.IDLE

    def seek(self, delta: int) -> None:
        """Move by delta tokens, clamped to the current chapter.

        The play state is unchanged; playing a COMPLETED engine after a
        seek still starts over.
        """
        last = len(self.words) - 1
        target = max(0, min(last, self._state.index + delta))
        if target == self._state.index:
            return

        playing = self._state.state == PlayerState.PLAYING
        if playing:
            self._cancel_advance()

        self._state.index = target
        self._skip_marker(forward=delta > 0)
        self._count_pending = True
        self._fading = False
        self._paragraph_break = False

        if playing:
            self._count_current()
            self._emit_tick()
            self._schedule_next()
        else:
            self._emit_tick()

    def skip_back(self) -> None:
        self.seek(-self.timing.skip_words)

    def skip_forward(self) -> None:
        self.seek(self.timing.skip_words)

    def adjust_rate(self, delta: int) -> None:
        """Change the rate manually. Turns the ramp off for good.

        A pending word delay is restarted at the new rate. A running fade
        or chapter pause is left alone; the new rate applies from the word
        that follows it.
        """
        self._state.auto_ramp = False
        self._cancel_ramp()
        self._state.wpm = clamp_wpm(self._state.wpm + delta, self.timing)

        if self._state.state == PlayerState.PLAYING and self._advance_step == "word":
            self._cancel_advance()
            self._schedule_next()
        self._emit_tick()

    def faster(self) -> None:
        self.adjust_rate(self.timing.wpm_step)

    def slower(self) -> None:
        self.adjust_rate(-self.timing.wpm_step)

    def goto_chapter(self, chapter_index: int) -> None:
        """Jump to the start of a chapter. Playback pauses.

        Raises:
            EngineStateError: If there is no such chapter
        """
        if not 0 <= chapter_index < len(self.plan.chapters):
            raise EngineStateError(f"No chapter {chapter_index}")

        was_idle = self._state.state == PlayerState.IDLE
        self._halt()
        self._load_chapter(chapter_index)
        self._state.state = PlayerState.IDLE if was_idle else PlayerState.PAUSED

        self._notify(self.on_chapter_change, chapter_index)
        self._emit_tick()

    def next_chapter(self) -> None:
        if self._state.chapter_index < len(self.plan.chapters) - 1:
            self.goto_chapter(self._state.chapter_index + 1)

    def prev_chapter(self) -> None:
        if self._state.chapter_index > 0:
            self.goto_chapter(self._state.chapter_index - 1)

    def set_theme(self, theme: str) -> None:
        if theme not in ORP_THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self._state.theme = theme
        self._emit_tick()

    # Snapshots

    def stats(self) -> SessionStats:
        """Statistics for the session so far. Pauses are not counted."""
        play_ms = self._state.play_ms
        if self._play_started_at is not None:
            play_ms += (self.scheduler.time() - self._play_started_at) * 1000
        seconds = play_ms / 1000

        return SessionStats(
            words_read=self._state.words_read,
            elapsed_seconds=round(seconds),
            avg_wpm=average_wpm(self._state.words_read, seconds, self.timing)
        )

    def checkpoint(self) -> ProgressCheckpoint:
        stats = self.stats()
        return ProgressCheckpoint(
            position=self.position,
            chapter_index=self._state.chapter_index,
            elapsed_seconds=stats.elapsed_seconds,
            avg_wpm=stats.avg_wpm
        )

    def render_state(self) -> RenderState:
        """Build the view model for the current word."""
        index = self._state.index
        word = self.words[index] if self.words else ''
        if is_marker(word):
            word = ''
        before, focus, after = split_word(word)

        total = len(self.words)
        remaining = count_words(self.words[index + 1:])
        if self._state.state == PlayerState.COMPLETED:
            progress = 100.0
        else:
            progress = round((index + 1) / total * 100, 1) if total else 0.0

        chapter_count = len(self.plan.chapters)
        return RenderState(
            word=word,
            before=before,
            focus=focus,
            after=after,
            index=index,
            total=total,
            wpm=self._state.wpm,
            progress=progress,
            words_remaining=remaining,
            minutes_left=math.ceil(remaining / self._state.wpm),
            chapter_index=self._state.chapter_index,
            chapter_title=self.plan.chapters[self._state.chapter_index].title if chapter_count > 1 else None,
            chapter_count=chapter_count,
            fading=self._fading,
            paragraph_break=self._paragraph_break,
            ramping=self._state.auto_ramp,
            theme_color=ORP_THEMES[self._state.theme],
            state=self._state.state
        )

    # Timer callbacks

    def _schedule_next(self) -> None:
        index = self._state.index
        if index >= len(self.words) - 1:
            self._end_of_chapter()
            return

        delay = word_delay_ms(self.words[index], self._state.wpm, self.words[index + 1], self.timing)
        self._arm("word", delay, self._advance)

    def _advance(self) -> None:
        self._advance_handle = self._advance_step = None
        if self._state.state != PlayerState.PLAYING:
            return

        current = self.words[self._state.index]
        target = self._state.index + 1
        paragraph_break = is_marker(self.words[target])
        if paragraph_break:
            target += 1

        if paragraph_break or punctuation_pause(current, self.timing) >= self.timing.sentence_pause_ms:
            # Fade the old word out before showing the next one
            self._fading = True
            self._paragraph_break = paragraph_break
            self._emit_tick()
            self._arm("fade", self.timing.fade_ms, lambda: self._show(target))
        else:
            self._fading = False
            self._paragraph_break = False
            self._show(target)

    def _show(self, index: int) -> None:
        self._advance_handle = self._advance_step = None
        if self._state.state != PlayerState.PLAYING:
            return
        self._state.index = index
        self._fading = False
        self._count_pending = True
        self._count_current()
        self._emit_tick()
        self._paragraph_break = False
        self._schedule_next()

    def _end_of_chapter(self) -> None:
        next_chapter = self._state.chapter_index + 1
        if next_chapter >= len(self.plan.chapters):
            self._complete()
            return

        logger.debug(f"Auto-advancing to chapter {next_chapter + 1}")
        self._load_chapter(next_chapter)
        self._notify(self.on_chapter_change, next_chapter)
        self._emit_tick()
        self._arm("chapter", self.timing.chapter_pause_ms, self._resume_after_chapter)

    def _resume_after_chapter(self) -> None:
        self._advance_handle = self._advance_step = None
        if self._state.state != PlayerState.PLAYING:
            return
        self._count_current()
        self._emit_tick()
        self._schedule_next()

    def _complete(self) -> None:
        self._halt()
        self._state.state = PlayerState.COMPLETED
        stats = self.stats()
        logger.info(
            f"Finished: {stats.words_read} words in {stats.elapsed_seconds}s "
            f"({stats.avg_wpm} wpm)"
        )
        self._emit_tick()
        self._notify(self.on_done, stats)

    def _ramp_tick(self) -> None:
        self._ramp_handle = None
        if self._state.state != PlayerState.PLAYING or not self._state.auto_ramp:
            return

        self._state.ramp_elapsed_ms += self.timing.ramp_tick_ms
        self._state.wpm = ramp_wpm(self._state.ramp_elapsed_ms, self.timing)

        if self._state.ramp_elapsed_ms >= self.timing.ramp_duration_ms:
            self._state.auto_ramp = False
            return
        self._ramp_handle = self.scheduler.call_later(self.timing.ramp_tick_ms / 1000, self._ramp_tick)

    def _autosave_tick(self) -> None:
        self._autosave_handle = None
        if self._state.state != PlayerState.PLAYING:
            return
        self._persist()
        self._autosave_handle = self.scheduler.call_later(
            self.timing.autosave_interval_ms / 1000, self._autosave_tick
        )

    # Helpers

    @property
    def _autosave_enabled(self) -> bool:
        return bool(self.authenticated and self.session_id and self.persist_progress)

    def _persist(self) -> None:
        try:
            self.persist_progress(self.session_id, self.checkpoint())
        except Exception as e:
            logger.warning(f"Progress save failed for {self.session_id}: {e}")

    def _notify(self, callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Playback callback {getattr(callback, '__name__', callback)} failed: {e}")

    def _emit_tick(self) -> None:
        self._notify(self.on_tick, self.render_state())

    def _count_current(self) -> None:
        if self._count_pending and self.words and not is_marker(self.words[self._state.index]):
            self._state.words_read += 1
        self._count_pending = False

    def _load_chapter(self, chapter_index: int) -> None:
        self._state.chapter_index = chapter_index
        self._state.index = 0
        self.words = list(self.plan.chapters[chapter_index].words)
        self._count_pending = True
        self._fading = False
        self._paragraph_break = False

    def _locate(self, position: int) -> Tuple[int, int]:
        """Map a plan-wide word position to (chapter, token index)."""
        position = max(0, position)
        for chapter_index, chapter in enumerate(self.plan.chapters):
            for index, token in enumerate(chapter.words):
                if is_marker(token):
                    continue
                if position == 0:
                    return chapter_index, index
                position -= 1
        last = len(self.plan.chapters) - 1
        return last, max(0, len(self.plan.chapters[last].words) - 1)

    def _skip_marker(self, forward: bool) -> None:
        if self.words and is_marker(self.words[self._state.index]):
            self._state.index += 1 if forward else -1

    def _reset_for_replay(self) -> None:
        if self._state.chapter_index != 0:
            self._load_chapter(0)
            self._notify(self.on_chapter_change, 0)
        else:
            self._state.index = 0
            self._count_pending = True
        self._state.wpm = self._initial_wpm
        self._state.auto_ramp = self._initial_auto_ramp
        self._state.ramp_elapsed_ms = 0.0
        self._state.play_ms = 0.0
        self._state.words_read = 0

    def _halt(self) -> None:
        """Cancel every timer and bank the active play time."""
        self._cancel_advance()
        self._cancel_ramp()
        self._fading = False
        if self._autosave_handle is not None:
            self._autosave_handle.cancel()
            self._autosave_handle = None
        if self._play_started_at is not None:
            self._state.play_ms += (self.scheduler.time() - self._play_started_at) * 1000
            self._play_started_at = None

    def _arm(self, step: str, delay_ms: float, callback: Callable[[], None]) -> None:
        self._advance_step = step
        self._advance_handle = self.scheduler.call_later(delay_ms / 1000, callback)

    def _cancel_advance(self) -> None:
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None
        self._advance_step = None

    def _cancel_ramp(self) -> None:
        if self._ramp_handle is not None:
            self._ramp_handle.cancel()
            self._ramp_handle = None
