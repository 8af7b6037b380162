"""Text and signal analysis of dialogue lines."""

import logging
import re

import numpy as np

from podcast_mixer.models import AnalyzedSegment, ScriptSegment, TextFeatures
from podcast_mixer.settings import MixConfig

logger = logging.getLogger(__name__)

EMOTION_TAGS = (
    "cheerfully", "thoughtfully", "seriously", "excitedly", "skeptically",
    "laughing", "sighing", "whispering", "interrupting", "curiously",
    "dramatically", "calmly", "enthusiastically",
)

_EMOTION_TAG_RE = re.compile(
    r"\[(?:" + "|".join(EMOTION_TAGS) + r")\]\s*",
    re.IGNORECASE,
)
_INTERRUPTING_RE = re.compile(r"\[interrupting\]", re.IGNORECASE)
_OVERLAPPING_RE = re.compile(r"\(overlapping\)\s*", re.IGNORECASE)
_TRAILING_PUNCT_RE = re.compile(r"[!?.,]+$")

# Interjections that read as a quick back-channel (German & English)
SHORT_REACTIONS = frozenset({
    # German
    "ja", "nein", "mhm", "hmm", "aha", "oh", "genau", "richtig", "stimmt",
    "klar", "okay", "ok", "echt", "wirklich", "interessant", "wow", "krass",
    "absolut", "definitiv", "natürlich", "na klar",
    # English
    "yes", "no", "yeah", "right", "exactly", "sure", "interesting", "really",
    "absolutely", "definitely", "of course", "true",
})


def strip_emotion_tags(text: str) -> str:
    """Remove the known bracketed emotion tags and the (overlapping) marker."""
    text = _EMOTION_TAG_RE.sub("", text)
    return _OVERLAPPING_RE.sub("", text).strip()


def has_overlapping_marker(text: str) -> bool:
    return bool(_OVERLAPPING_RE.search(text))


def analyze_text(text: str) -> TextFeatures:
    clean = strip_emotion_tags(text)
    words = clean.split()
    word_count = len(words)
    normalized = _TRAILING_PUNCT_RE.sub("", clean.lower()).strip()

    return TextFeatures(
        word_count=word_count,
        is_short_reaction=word_count <= 3 and normalized in SHORT_REACTIONS,
        is_interrupting=bool(_INTERRUPTING_RE.search(text)),
        is_overlapping=has_overlapping_marker(text),
        is_question=clean.endswith("?"),
        ends_with_trail_off=clean.endswith("..."),
    )


def detect_trailing_silence(pcm: np.ndarray, config: MixConfig) -> float:
    """Milliseconds of silence at the end of the first channel."""
    loud = np.flatnonzero(np.abs(pcm[0]) >= config.silence_threshold)
    silent = pcm.shape[1] if loud.size == 0 else pcm.shape[1] - 1 - loud[-1]
    return silent / config.sample_rate * 1000.0


def detect_leading_silence(pcm: np.ndarray, config: MixConfig) -> float:
    """Milliseconds of silence at the start of the first channel."""
    loud = np.flatnonzero(np.abs(pcm[0]) >= config.silence_threshold)
    silent = pcm.shape[1] if loud.size == 0 else loud[0]
    return silent / config.sample_rate * 1000.0


def trim_trailing_silence(pcm: np.ndarray, silence_ms: float, config: MixConfig) -> np.ndarray:
    """Cut trailing silence down to config.keep_silence_ms.

    Returns the input untouched when there is nothing to trim or the trim
    would remove the whole clip.
    """
    trim = config.ms_to_samples(max(0.0, silence_ms - config.keep_silence_ms))
    if trim <= 0 or trim >= pcm.shape[1]:
        return pcm
    return pcm[:, : pcm.shape[1] - trim]


def analyze_segment(segment: ScriptSegment, pcm: np.ndarray, config: MixConfig) -> AnalyzedSegment:
    features = analyze_text(segment.text)
    analyzed = AnalyzedSegment(
        pcm=pcm,
        speaker=segment.speaker,
        text=segment.text,
        sample_rate=config.sample_rate,
        word_count=features.word_count,
        is_short_reaction=features.is_short_reaction,
        is_interrupting=features.is_interrupting,
        is_overlapping=segment.overlapping or features.is_overlapping,
        is_question=features.is_question,
        ends_with_trail_off=features.ends_with_trail_off,
        silence_at_start_ms=detect_leading_silence(pcm, config),
        silence_at_end_ms=detect_trailing_silence(pcm, config),
    )
    logger.info(
        "%s | %d words | %.0fms | silence: %.0fms",
        analyzed.speaker, analyzed.word_count, analyzed.duration_ms, analyzed.silence_at_end_ms,
    )
    return analyzed
