"""Data models for podcast episode assembly."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ScriptSegment:
    buffer: bytes              # encoded MP3 or WAV as produced by TTS
    speaker: str               # "HOST" or "GUEST"
    text: str                  # raw line text, emotion tags included
    overlapping: bool = False  # explicit "talks over the previous line"


@dataclass
class ScriptLine:
    speaker: str
    text: str
    overlapping: bool = False


@dataclass
class TextFeatures:
    word_count: int
    is_short_reaction: bool
    is_interrupting: bool
    is_overlapping: bool
    is_question: bool
    ends_with_trail_off: bool


@dataclass
class AnalyzedSegment:
    pcm: np.ndarray            # shape (2, n), float32
    speaker: str
    text: str
    sample_rate: int
    word_count: int = 0
    is_short_reaction: bool = False
    is_interrupting: bool = False
    is_overlapping: bool = False
    is_question: bool = False
    ends_with_trail_off: bool = False
    silence_at_start_ms: float = 0.0
    silence_at_end_ms: float = 0.0

    @property
    def duration_ms(self) -> float:
        return self.pcm.shape[1] / self.sample_rate * 1000.0


@dataclass(frozen=True)
class OverlapDecision:
    rule: str                  # name of the heuristic that fired
    overlap_ms: float
    additive: bool = False     # both voices stay up instead of crossfading
