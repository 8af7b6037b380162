"""Tests for dialogue stitching (Layer 2)."""

import numpy as np
import pytest

from podcast_mixer.dialogue import join, mix_dialogue, prepare_segment
from podcast_mixer.errors import DecodeError
from podcast_mixer.models import ScriptSegment

SR = 44100


def test_prepare_segment_pans_by_speaker(config, settings, make_segment):
    host = prepare_segment(0, make_segment("HOST", "Hello there.", 1.0), settings, config)
    guest = prepare_segment(1, make_segment("GUEST", "Hi.", 1.0), settings, config)
    assert np.max(np.abs(host.pcm[0])) > np.max(np.abs(host.pcm[1]))
    assert np.max(np.abs(guest.pcm[1])) > np.max(np.abs(guest.pcm[0]))


def test_prepare_segment_trims_trailing_silence(config, settings, tone, wav_bytes):
    pcm = np.concatenate([tone(1.0), np.zeros((1, SR), dtype=np.float32)], axis=1)
    seg = ScriptSegment(wav_bytes(pcm), "HOST", "Hello there.")
    trimmed = prepare_segment(0, seg, settings, config, trim=True)
    untrimmed = prepare_segment(0, seg, settings, config, trim=False)
    assert untrimmed.duration_ms == pytest.approx(2000, abs=1)
    assert trimmed.duration_ms == pytest.approx(1000 + config.keep_silence_ms, abs=2)
    # silence is measured before trimming
    assert trimmed.silence_at_end_ms == pytest.approx(1000, abs=2)


def test_prepare_segment_tags_decode_errors(config, settings):
    seg = ScriptSegment(b"RIFF\x00\x00\x00\x00WAVE", "HOST", "Broken.")
    with pytest.raises(DecodeError) as exc:
        prepare_segment(7, seg, settings, config)
    assert exc.value.segment_index == 7
    assert "(segment 7)" in str(exc.value)


def test_prepare_segment_unknown_speaker(config, settings, make_segment):
    with pytest.raises(ValueError, match="Unknown speaker"):
        prepare_segment(0, make_segment("NARRATOR", "Once upon a time.", 1.0), settings, config)


def test_join_reports_applied_overlap(config, settings, make_segment):
    prev = prepare_segment(0, make_segment("HOST", "Here is a statement.", 2.0), settings, config)
    curr = prepare_segment(1, make_segment("GUEST", "And here is mine.", 2.0), settings, config)
    track, overlap_ms = join(prev.pcm, prev, curr, settings, config)
    assert overlap_ms == pytest.approx(50, abs=0.1)
    assert track.shape[1] == prev.pcm.shape[1] + curr.pcm.shape[1] - int(0.05 * SR)


def test_example_exchange_duration(config, settings, example_segments):
    """Interrupt (180ms) then trail-off (180ms) overlaps."""
    track, overlap_ms = mix_dialogue(example_segments, settings, config)
    assert overlap_ms == pytest.approx(360, abs=0.1)
    assert track.shape[1] / SR == pytest.approx(4.5 - 0.36, abs=0.001)


def test_additive_overlap_in_track_never_clips(config, settings, tone, wav_bytes):
    loud = wav_bytes(tone(1.0, amp=1.0))
    segments = [
        ScriptSegment(loud, "HOST", "Here is a statement."),
        ScriptSegment(loud, "GUEST", "Right right right.", overlapping=True),
    ]
    track, overlap_ms = mix_dialogue(segments, settings, config)
    assert overlap_ms == pytest.approx(400, abs=0.1)
    assert np.max(np.abs(track)) <= 1.0
