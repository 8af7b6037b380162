"""Mix script segments into one MP3 episode.

Strategy is picked once up front:

- in_memory: every segment decoded and stitched, bookends applied to the
  whole dialogue track, encoded in one go;
- streaming: bounded-memory path for long episodes (see streaming.py).
"""

import logging
from typing import Callable

from podcast_mixer.assets import load_music
from podcast_mixer.bookends import Bookends, select_bookends
from podcast_mixer.dialogue import outro_lead_sec, stitch_dialogue
from podcast_mixer.encoder import encode_mp3
from podcast_mixer.models import ScriptSegment
from podcast_mixer.settings import MixConfig, MixingSettings
from podcast_mixer.streaming import mix_streaming

logger = logging.getLogger(__name__)

STRATEGIES = ("auto", "in_memory", "streaming")


def choose_strategy(segment_count: int, config: MixConfig, requested: str = "auto") -> str:
    """Resolve "auto" to a concrete strategy by episode size."""
    if requested not in STRATEGIES:
        raise ValueError(f"Unknown strategy {requested!r}, expected one of {', '.join(STRATEGIES)}")
    if requested != "auto":
        return requested
    return "streaming" if segment_count > config.large_scale_threshold else "in_memory"


def mix_in_memory(
    segments: list[ScriptSegment],
    settings: MixingSettings,
    config: MixConfig,
    bookends: Bookends,
) -> bytes:
    track, overlaps = stitch_dialogue(segments, settings, config)

    if bookends.intro is not None:
        music = load_music(settings.resolved_intro_url(config), config)
        track = bookends.intro.apply(music, track)
    if bookends.outro is not None:
        music = load_music(settings.resolved_outro_url(config), config)
        lead_sec = outro_lead_sec(overlaps, len(segments), bookends.outro, config)
        track = bookends.outro.apply(track, music, lead_sec=lead_sec)

    logger.info("Final audio: %.1fs", track.shape[1] / config.sample_rate)
    return encode_mp3(track, config)


def concatenate_with_crossfade(
    segments: list[ScriptSegment],
    settings: MixingSettings | None = None,
    config: MixConfig | None = None,
    progress: Callable[[int], None] | None = None,
    strategy: str = "auto",
) -> bytes:
    """Mix dialogue segments (and optional intro/outro music) into MP3 bytes.

    Zero segments give b"". A single segment with no bookends is returned
    untouched. progress only fires on the streaming path.
    """
    settings = settings or MixingSettings()
    config = config or MixConfig()

    if not segments:
        return b""
    for seg in segments:
        settings.pan_for(seg.speaker)

    if len(segments) == 1 and not settings.include_intro and not settings.include_outro:
        logger.info("Single segment without intro/outro, returning input unchanged")
        return segments[0].buffer

    plan = choose_strategy(len(segments), config, strategy)
    bookends = select_bookends(settings, config)
    logger.info(
        "Mixing %d segments (%s, intro=%s, outro=%s)",
        len(segments), plan,
        type(bookends.intro).__name__ if bookends.intro else "none",
        type(bookends.outro).__name__ if bookends.outro else "none",
    )

    if plan == "streaming":
        return mix_streaming(segments, settings, config, bookends, progress)
    return mix_in_memory(segments, settings, config, bookends)
