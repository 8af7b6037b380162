"""Large-episode mixing with bounded memory.

Segments are decoded one at a time and stitched onto a short "held" track.
Everything a later overlap can no longer reach is pushed to the MP3
encoder immediately, so peak memory is one segment plus the intro/outro
windows, regardless of episode length.

Layout of an episode of n segments:

    head    segment 0 (plus more if needed to cover the intro window)
    middle  streamed, flushed as soon as they are settled
    tail    the last min(2, n - 1) segments, mixed in memory with the outro
"""

import logging
from typing import Callable

import numpy as np

from podcast_mixer.assets import load_music
from podcast_mixer.bookends import Bookends
from podcast_mixer.dialogue import join, outro_lead_sec, prepare_segment, tail_segment_count
from podcast_mixer.encoder import Mp3StreamEncoder
from podcast_mixer.models import ScriptSegment
from podcast_mixer.settings import MixConfig, MixingSettings

logger = logging.getLogger(__name__)


class StreamingMixer:
    """Mix and encode one episode incrementally."""

    def __init__(
        self,
        settings: MixingSettings,
        config: MixConfig,
        bookends: Bookends,
        progress: Callable[[int], None] | None = None,
    ):
        self.settings = settings
        self.config = config
        self.bookends = bookends
        self.progress = progress
        self.middle_overlap_ms = 0.0
        self.overlaps = []
        self.flushed_samples = 0

    def _report(self, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress(int(round(100 * done / total)))

    def _retain_samples(self) -> int:
        """Samples the outro may still reach back into once the episode ends."""
        if self.bookends.outro is None:
            return 0
        # dialogue window plus the music lead, which is capped at the window
        return self.config.sec_to_samples(2 * self.bookends.outro.window_sec)

    def mix(self, segments: list[ScriptSegment]) -> bytes:
        n = len(segments)
        tail_count = tail_segment_count(n, self.config)
        streamed = n - tail_count
        total_units = n
        retain = self._retain_samples()

        intro = self.bookends.intro
        intro_music = None
        if intro is not None:
            intro_music = load_music(self.settings.resolved_intro_url(self.config), self.config)
        outro_music = None
        if self.bookends.outro is not None:
            outro_music = load_music(self.settings.resolved_outro_url(self.config), self.config)

        logger.info(
            "Streaming %d segments: %d streamed, %d in tail", n, streamed, tail_count,
        )

        held = None
        prev = None

        with Mp3StreamEncoder(self.config) as encoder:
            for i in range(streamed):
                curr = prepare_segment(i, segments[i], self.settings, self.config, trim=i < n - 1)
                if held is None:
                    held = curr.pcm
                else:
                    held, overlap_ms = join(held, prev, curr, self.settings, self.config)
                    self.middle_overlap_ms += overlap_ms
                    self.overlaps.append(overlap_ms)
                prev = curr

                if intro_music is not None and held.shape[1] >= intro.dialogue_span():
                    held = intro.apply(intro_music, held)
                    intro_music = None
                if intro_music is None:
                    held = self._flush(encoder, held, max(curr.pcm.shape[1], retain))
                self._report(i + 1, total_units)

            for i in range(streamed, n):
                curr = prepare_segment(i, segments[i], self.settings, self.config, trim=i < n - 1)
                held, overlap_ms = join(held, prev, curr, self.settings, self.config)
                self.overlaps.append(overlap_ms)
                prev = curr
                self._report(i + 1, total_units)

            if intro_music is not None:
                held = intro.apply(intro_music, held)
            if outro_music is not None:
                lead_sec = outro_lead_sec(self.overlaps, n, self.bookends.outro, self.config)
                held = self.bookends.outro.apply(held, outro_music, lead_sec=lead_sec)

            encoder.write(held)
            self.flushed_samples += held.shape[1]
            logger.info(
                "Streamed %.1fs of audio | Mid-episode overlap: %.1fs",
                self.flushed_samples / self.config.sample_rate, self.middle_overlap_ms / 1000,
            )
            return encoder.close()

    def _flush(self, encoder: Mp3StreamEncoder, held: np.ndarray, keep: int) -> np.ndarray:
        """Encode everything but the last keep samples of held."""
        cut = held.shape[1] - keep
        if cut <= 0:
            return held
        encoder.write(held[:, :cut])
        self.flushed_samples += cut
        return np.ascontiguousarray(held[:, cut:])


def mix_streaming(
    segments: list[ScriptSegment],
    settings: MixingSettings,
    config: MixConfig,
    bookends: Bookends,
    progress: Callable[[int], None] | None = None,
) -> bytes:
    return StreamingMixer(settings, config, bookends, progress).mix(segments)
