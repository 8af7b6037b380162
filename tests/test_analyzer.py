"""Tests for analyzer module (Layer 1)."""

import numpy as np
import pytest

from podcast_mixer.analyzer import (
    analyze_segment,
    analyze_text,
    detect_leading_silence,
    detect_trailing_silence,
    strip_emotion_tags,
    trim_trailing_silence,
)
from podcast_mixer.models import ScriptSegment


def _with_silence(tone, lead_sec, body_sec, tail_sec):
    body = tone(body_sec, channels=2)
    return np.concatenate([
        np.zeros((2, int(lead_sec * 44100)), dtype=np.float32),
        body,
        np.zeros((2, int(tail_sec * 44100)), dtype=np.float32),
    ], axis=1)


# --- Text features ---

def test_strip_emotion_tags():
    assert strip_emotion_tags("[cheerfully] Hello (overlapping) there") == "Hello there"


def test_unknown_tags_are_kept():
    assert strip_emotion_tags("[mumbling] Hello") == "[mumbling] Hello"


def test_word_count_ignores_tags():
    assert analyze_text("[excitedly] That is great news").word_count == 4


def test_short_reaction_with_punctuation():
    assert analyze_text("Yeah!").is_short_reaction
    assert analyze_text("[laughing] Genau.").is_short_reaction
    assert analyze_text("Of course!").is_short_reaction


def test_short_reaction_needs_known_word():
    assert not analyze_text("Go on").is_short_reaction


def test_long_line_is_not_short_reaction():
    assert not analyze_text("Yes I think so too").is_short_reaction


def test_interrupting_tag():
    assert analyze_text("[interrupting] Wait").is_interrupting
    assert not analyze_text("Wait").is_interrupting


def test_overlapping_marker():
    assert analyze_text("(overlapping) Right right").is_overlapping


def test_question_and_trail_off():
    f = analyze_text("Do you think so?")
    assert f.is_question and not f.ends_with_trail_off
    f = analyze_text("Well, I was going to say...")
    assert f.ends_with_trail_off and not f.is_question


# --- Silence ---

def test_detect_silence(config, tone):
    pcm = _with_silence(tone, 0.2, 1.0, 0.5)
    assert abs(detect_leading_silence(pcm, config) - 200) < 5
    assert abs(detect_trailing_silence(pcm, config) - 500) < 5


def test_all_silent_clip(config):
    pcm = np.zeros((2, 4410), dtype=np.float32)
    assert detect_trailing_silence(pcm, config) == pytest.approx(100.0)


def test_trim_keeps_a_little_silence(config, tone):
    pcm = _with_silence(tone, 0.0, 1.0, 0.5)
    trimmed = trim_trailing_silence(pcm, detect_trailing_silence(pcm, config), config)
    remaining = detect_trailing_silence(trimmed, config)
    assert abs(remaining - config.keep_silence_ms) < 2


def test_trim_silent_clip_keeps_tail(config):
    pcm = np.zeros((2, 4410), dtype=np.float32)
    trimmed = trim_trailing_silence(pcm, 100.0, config)
    assert trimmed.shape == (2, config.ms_to_samples(config.keep_silence_ms))


def test_trim_never_empties_clip(config):
    """A trim at least as long as the clip leaves it alone."""
    pcm = np.zeros((2, 4410), dtype=np.float32)
    assert trim_trailing_silence(pcm, 200.0, config) is pcm


def test_trim_noop_below_keep(config, tone):
    pcm = tone(0.5, channels=2)
    assert trim_trailing_silence(pcm, 10.0, config) is pcm


# --- Segment analysis ---

def test_analyze_segment_combines_flag_and_marker(config, tone):
    pcm = tone(1.0, channels=2)
    flagged = analyze_segment(ScriptSegment(b"", "GUEST", "Right", overlapping=True), pcm, config)
    marked = analyze_segment(ScriptSegment(b"", "GUEST", "(overlapping) Right"), pcm, config)
    plain = analyze_segment(ScriptSegment(b"", "GUEST", "Right"), pcm, config)
    assert flagged.is_overlapping and marked.is_overlapping
    assert not plain.is_overlapping
    assert abs(plain.duration_ms - 1000) < 1
