"""Tests for overlap heuristics (Layer 1)."""

import numpy as np
import pytest

from podcast_mixer.analyzer import analyze_segment
from podcast_mixer.models import ScriptSegment
from podcast_mixer.overlap import calculate_overlap, classify_overlap
from podcast_mixer.settings import MixingSettings


def _seg(config, speaker, text, duration_sec, overlapping=False):
    """AnalyzedSegment of the given length (content is irrelevant here)."""
    pcm = np.full((2, int(duration_sec * config.sample_rate)), 0.5, dtype=np.float32)
    return analyze_segment(ScriptSegment(b"", speaker, text, overlapping), pcm, config)


# --- Priority ---

def test_overlapping_beats_short_reaction(config, settings):
    """Both flags set: the explicit annotation decides, additively."""
    prev = _seg(config, "HOST", "That was a long story about things.", 3.0)
    curr = _seg(config, "GUEST", "(overlapping) Yeah!", 1.0)
    assert curr.is_short_reaction and curr.is_overlapping
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "overlapping"
    assert d.additive
    assert d.overlap_ms == pytest.approx(500)


def test_overlapping_ignores_minimum_length(config, settings):
    prev = _seg(config, "HOST", "Hi.", 0.2)
    curr = _seg(config, "GUEST", "Hi!", 0.2, overlapping=True)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "overlapping"
    assert d.overlap_ms == pytest.approx(0.2 * 1000 * 0.40)


def test_overlapping_capped_by_current(config, settings):
    prev = _seg(config, "HOST", "A long sentence here.", 5.0)
    curr = _seg(config, "GUEST", "Mm.", 0.4, overlapping=True)
    assert calculate_overlap(prev, curr, settings, config) == pytest.approx(400 * 0.95)


def test_too_short(config, settings):
    prev = _seg(config, "HOST", "Okay.", 0.25)
    curr = _seg(config, "GUEST", "So what now?", 2.0)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "too_short" and d.overlap_ms == 0


def test_same_speaker(config, settings):
    prev = _seg(config, "HOST", "First part.", 2.0)
    curr = _seg(config, "HOST", "Yeah!", 1.0)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "same_speaker" and d.overlap_ms == 0


def test_short_reaction(config, settings):
    prev = _seg(config, "HOST", "This is how it works.", 2.0)
    curr = _seg(config, "GUEST", "Genau!", 0.6)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "short_reaction"
    assert d.overlap_ms == pytest.approx(min(250, 2000 * 0.30, 600 * 0.50))
    assert not d.additive


def test_interrupting(config, settings):
    prev = _seg(config, "HOST", "Welcome to the show!", 2.0)
    curr = _seg(config, "GUEST", "[interrupting] Wait, actually...", 1.5)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "interrupting"
    assert d.overlap_ms == pytest.approx(180)


def test_interrupting_capped_by_previous(config, settings):
    prev = _seg(config, "HOST", "Look.", 0.4)
    curr = _seg(config, "GUEST", "[interrupting] No way", 1.0)
    assert calculate_overlap(prev, curr, settings, config) == pytest.approx(100)


def test_after_question(config, settings):
    prev = _seg(config, "HOST", "What do you think?", 2.0)
    curr = _seg(config, "GUEST", "I think it works", 2.0)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "after_question"
    assert d.overlap_ms == pytest.approx(80)


def test_trail_off(config, settings):
    prev = _seg(config, "GUEST", "Wait, actually...", 1.5)
    curr = _seg(config, "HOST", "Sure, go ahead", 1.0)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "trail_off"
    assert d.overlap_ms == pytest.approx(min(180, 1500 * 0.20))


def test_plain_speaker_change(config, settings):
    prev = _seg(config, "HOST", "Here is a statement.", 2.0)
    curr = _seg(config, "GUEST", "And here is mine", 2.0)
    d = classify_overlap(prev, curr, settings, config)
    assert d.rule == "speaker_change"
    assert d.overlap_ms == pytest.approx(50)


def test_settings_override_durations(config):
    settings = MixingSettings(speaker_ms=30)
    prev = _seg(config, "HOST", "Here is a statement.", 2.0)
    curr = _seg(config, "GUEST", "And here is mine", 2.0)
    assert calculate_overlap(prev, curr, settings, config) == pytest.approx(30)
