"""Turn-taking heuristics: how much two adjacent lines should overlap.

Rules are checked in priority order and the first match wins. The explicit
(overlapping) annotation outranks everything, including the minimum-length
gate, because the script author asked for it.

``classify_overlap`` is what the mixer uses, since it also needs the rule
name and the additive flag. ``calculate_overlap`` is the plain duration for
callers that only want the number.
"""

import logging

from podcast_mixer.models import AnalyzedSegment, OverlapDecision
from podcast_mixer.settings import MixConfig, MixingSettings

logger = logging.getLogger(__name__)


def classify_overlap(
    prev: AnalyzedSegment,
    curr: AnalyzedSegment,
    settings: MixingSettings,
    config: MixConfig,
) -> OverlapDecision:
    """Pick the overlap rule for the transition prev -> curr."""
    prev_ms = prev.duration_ms
    curr_ms = curr.duration_ms

    if curr.is_overlapping:
        return OverlapDecision(
            "overlapping",
            min(
                settings.overlapping_ms,
                prev_ms * config.overlapping_max_prev,
                curr_ms * config.overlapping_max_curr,
            ),
            additive=True,
        )

    if prev_ms < config.min_segment_for_overlap_ms or curr_ms < config.min_segment_for_overlap_ms:
        return OverlapDecision("too_short", 0.0)

    if prev.speaker == curr.speaker:
        return OverlapDecision("same_speaker", 0.0)

    if curr.is_short_reaction:
        return OverlapDecision(
            "short_reaction",
            min(settings.reaction_ms, prev_ms * config.reaction_max_prev, curr_ms * config.reaction_max_curr),
        )

    if curr.is_interrupting:
        return OverlapDecision("interrupting", min(settings.interrupt_ms, prev_ms * config.interrupt_max_prev))

    if prev.is_question:
        return OverlapDecision("after_question", min(settings.question_ms, prev_ms * config.question_max_prev))

    if prev.ends_with_trail_off:
        return OverlapDecision("trail_off", min(settings.interrupt_ms, prev_ms * config.trail_off_max_prev))

    return OverlapDecision("speaker_change", min(settings.speaker_ms, prev_ms * config.speaker_change_max_prev))


def calculate_overlap(
    prev: AnalyzedSegment,
    curr: AnalyzedSegment,
    settings: MixingSettings,
    config: MixConfig,
) -> float:
    """Overlap in milliseconds between prev and curr."""
    decision = classify_overlap(prev, curr, settings, config)
    if decision.overlap_ms > 0:
        logger.debug("Overlap %s: %.0fms (%r)", decision.rule, decision.overlap_ms, curr.text[:30])
    return decision.overlap_ms
