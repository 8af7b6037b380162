"""Per-segment preparation and pairwise joining of the dialogue track."""

import logging

import numpy as np

from podcast_mixer.analyzer import analyze_segment, trim_trailing_silence
from podcast_mixer.crossfade import splice
from podcast_mixer.decoder import decode
from podcast_mixer.errors import MixError
from podcast_mixer.models import AnalyzedSegment, ScriptSegment
from podcast_mixer.overlap import classify_overlap
from podcast_mixer.settings import MixConfig, MixingSettings
from podcast_mixer.stereo import apply_pan

logger = logging.getLogger(__name__)


def prepare_segment(
    index: int,
    segment: ScriptSegment,
    settings: MixingSettings,
    config: MixConfig,
    trim: bool = True,
) -> AnalyzedSegment:
    """Decode, analyze, trim trailing silence and pan one script line."""
    try:
        pcm = decode(segment.buffer, config)
    except MixError as e:
        e.segment_index = index
        raise

    analyzed = analyze_segment(segment, pcm, config)
    if trim:
        pcm = trim_trailing_silence(pcm, analyzed.silence_at_end_ms, config)
    analyzed.pcm = apply_pan(pcm, settings.pan_for(segment.speaker))
    return analyzed


def join(
    track: np.ndarray,
    prev: AnalyzedSegment,
    curr: AnalyzedSegment,
    settings: MixingSettings,
    config: MixConfig,
) -> tuple[np.ndarray, float]:
    """Append curr to track, overlapping it with prev's tail as the heuristics decide.

    Returns the new track and the overlap actually applied in milliseconds.
    """
    decision = classify_overlap(prev, curr, settings, config)
    samples = min(config.ms_to_samples(decision.overlap_ms), track.shape[1], curr.pcm.shape[1])
    if samples > 0:
        logger.info(
            "%s -> %s: %s overlap %.0fms%s",
            prev.speaker, curr.speaker, decision.rule, decision.overlap_ms,
            " (additive)" if decision.additive else "",
        )
    return splice(track, curr.pcm, samples, decision.additive, config), max(samples, 0) / config.sample_rate * 1000.0


def stitch_dialogue(
    segments: list[ScriptSegment],
    settings: MixingSettings,
    config: MixConfig,
) -> tuple[np.ndarray, list[float]]:
    """Stitch every segment in memory. Returns the track and the overlap ms applied at each join."""
    track = None
    prev = None
    overlaps = []

    for i, seg in enumerate(segments):
        curr = prepare_segment(i, seg, settings, config, trim=i < len(segments) - 1)
        if track is None:
            track = curr.pcm
        else:
            track, overlap_ms = join(track, prev, curr, settings, config)
            overlaps.append(overlap_ms)
        prev = curr

    logger.info(
        "Dialogue audio: %.1fs | Total overlap: %.1fs saved",
        track.shape[1] / config.sample_rate, sum(overlaps) / 1000,
    )
    return track, overlaps


def mix_dialogue(
    segments: list[ScriptSegment],
    settings: MixingSettings,
    config: MixConfig,
) -> tuple[np.ndarray, float]:
    """Stitch every segment in memory. Returns (track, total overlap ms)."""
    track, overlaps = stitch_dialogue(segments, settings, config)
    return track, sum(overlaps)


# --- Outro placement ---

def tail_segment_count(segment_count: int, config: MixConfig) -> int:
    """Segments mixed together with the outro at the end of an episode."""
    return max(0, min(config.large_scale_tail_segments, segment_count - 1))


def outro_lead_sec(overlaps: list[float], segment_count: int, outro, config: MixConfig) -> float:
    """How much earlier the outro music starts.

    The overlap consumed before the tail segments shortens the episode, so
    the musical cue moves up by that much, never by more than the outro window.
    """
    before_tail = overlaps[:len(overlaps) - tail_segment_count(segment_count, config)]
    return min(sum(before_tail) / 1000.0, outro.window_sec)
