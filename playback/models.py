"""Pydantic models for the playback engine."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

import config

# Focus letter colours
ORP_THEMES = {
    "focus": "#FF4444",
    "calm": "#22D3EE",
    "energy": "#39FF14",
    "sunset": "#FBBF24",
}
DEFAULT_THEME = "focus"


class PlayerState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"


class PlaybackState(BaseModel):
    """Mutable engine state. Owned by RSVPEngine only."""
    index: int = 0
    wpm: int = config.RAMP_START_WPM
    state: PlayerState = PlayerState.IDLE
    auto_ramp: bool = True
    ramp_elapsed_ms: float = 0.0
    chapter_index: int = 0
    play_ms: float = 0.0
    words_read: int = 0
    theme: str = DEFAULT_THEME


class SessionStats(BaseModel):
    """Snapshot of reading statistics."""
    model_config = ConfigDict(frozen=True)

    words_read: int
    elapsed_seconds: int
    avg_wpm: int


class ProgressCheckpoint(BaseModel):
    """Payload written by the autosave collaborator."""
    model_config = ConfigDict(frozen=True)

    position: int
    chapter_index: int = 0
    elapsed_seconds: int
    avg_wpm: int


class RenderState(BaseModel):
    """Everything a view needs to draw the current word."""
    model_config = ConfigDict(frozen=True)

    word: str
    before: str
    focus: str
    after: str
    index: int
    total: int
    wpm: int
    progress: float  # percent
    words_remaining: int
    minutes_left: int
    chapter_index: int
    chapter_title: Optional[str] = None
    chapter_count: int = 1
    fading: bool = False
    paragraph_break: bool = False
    ramping: bool = False
    theme_color: str = ORP_THEMES[DEFAULT_THEME]
    state: PlayerState = PlayerState.IDLE
