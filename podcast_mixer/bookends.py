"""Intro and outro music around the dialogue track.

Two interchangeable compositors exist for each end of the episode:

- parametric: fixed phases (music solo, bed under dialogue, fade) driven by
  the durations, bed volumes and curve names in MixingSettings;
- envelope: free-form music/dialog gain envelopes evaluated per sample.

``select_bookends`` picks one per end, once, before any mixing happens.
Both keep every gain change continuous and never cut dialogue short.
"""

import logging
from dataclasses import dataclass

import numpy as np

from podcast_mixer.crossfade import soft_limit
from podcast_mixer.envelope import EnvelopePair, envelope_end, envelope_gains_at, envelope_to_gain_array
from podcast_mixer.settings import MixConfig, MixingSettings

logger = logging.getLogger(__name__)


def fade_in_curve(u: np.ndarray, curve: str) -> np.ndarray:
    """0 -> 1 over u in [0, 1]; "exponential" rises fast and settles."""
    u = np.clip(u, 0.0, 1.0)
    if curve == "exponential":
        return 1.0 - (1.0 - u) ** 2
    return u


def fade_out_curve(u: np.ndarray, curve: str) -> np.ndarray:
    """1 -> 0 over u in [0, 1]; "exponential" drops fast and tails off."""
    u = np.clip(u, 0.0, 1.0)
    if curve == "exponential":
        return (1.0 - u) ** 2
    return 1.0 - u


def _place(pcm: np.ndarray, start: int, total: int) -> np.ndarray:
    out = np.zeros((2, total), dtype=np.float32)
    if start >= total:
        return out
    n = min(pcm.shape[1], total - start)
    out[:, start:start + n] = pcm[:, :n]
    return out


def _ramp(position: np.ndarray, length: int) -> np.ndarray:
    """Progress 0..1 through a phase of length samples; instant phases are done."""
    if length <= 0:
        return np.where(position >= 0, 1.0, 0.0)
    return position / length


def _mix(music: np.ndarray, music_gain: np.ndarray, dialogue: np.ndarray, dialog_gain: np.ndarray,
         config: MixConfig) -> np.ndarray:
    out = music * music_gain.astype(np.float32) + dialogue * dialog_gain.astype(np.float32)
    peak = float(np.max(np.abs(out))) if out.size else 0.0
    if peak > 1.0:
        logger.debug("Bookend mix peaked at %.3f, soft limiting", peak)
        out = _limit_overshoots(out, config.soft_limit_knee)
    return out.astype(np.float32)


def _limit_overshoots(out: np.ndarray, knee: float) -> np.ndarray:
    """Soft limit only the runs above the knee that actually exceed 1.0.

    Each run starts and ends at the knee, where the limiter is still linear,
    so the limited stretches join the untouched audio without a step.
    """
    magnitude = np.max(np.abs(out), axis=0)
    above = magnitude > knee
    starts = above & ~np.concatenate(([False], above[:-1]))
    run_id = np.cumsum(starts) * above
    clipping = np.zeros(int(run_id.max()) + 1, dtype=bool)
    clipping[run_id[magnitude > 1.0]] = True
    clipping[0] = False
    mask = clipping[run_id]
    out = out.copy()
    out[:, mask] = soft_limit(out[:, mask], knee)
    return out


def _silent_lead(envelope) -> float:
    """Time until the envelope first leaves zero; dialogue starts there."""
    lead = 0.0
    for p in envelope.points:
        if p.vol > 0:
            break
        lead = p.sec
    return lead


# --- Parametric ---

class ParametricIntro:
    """Music solo, then a bed under the fading-in dialogue, then a music fade."""

    def __init__(self, settings: MixingSettings, config: MixConfig):
        self.settings = settings
        self.config = config

    def dialogue_span(self) -> int:
        """Dialogue samples the intro window reaches into."""
        s, cfg = self.settings, self.config
        return cfg.sec_to_samples(s.intro_bed_sec) + cfg.sec_to_samples(s.intro_fadeout_sec)

    def apply(self, music: np.ndarray, dialogue: np.ndarray) -> np.ndarray:
        s, cfg = self.settings, self.config
        full = cfg.sec_to_samples(s.intro_full_sec)
        bed = cfg.sec_to_samples(s.intro_bed_sec)
        fadeout = cfg.sec_to_samples(s.intro_fadeout_sec)
        fadein = min(cfg.sec_to_samples(s.intro_dialog_fadein_sec), bed + fadeout)
        window = full + bed + fadeout
        total = max(window, full + dialogue.shape[1])

        i = np.arange(total, dtype=np.float64)
        bed_v = s.intro_bed_gain

        # Music ducks to the bed level while the dialogue fades in
        duck = fade_in_curve(_ramp(i - full, fadein), s.intro_dialog_curve)
        music_gain = np.where(i < full, 1.0, 1.0 - (1.0 - bed_v) * duck)
        fade = fade_out_curve(_ramp(i - (full + bed), fadeout), s.intro_fadeout_curve)
        music_gain = np.where(i >= full + bed, bed_v * fade, music_gain)
        music_gain = np.where(i >= window, 0.0, music_gain)

        dialog_gain = np.where(i < full, 0.0, duck)

        logger.info(
            "Intro (parametric): %.1fs window, dialogue %.1fs",
            window / cfg.sample_rate, dialogue.shape[1] / cfg.sample_rate,
        )
        return _mix(_place(music, 0, total), music_gain, _place(dialogue, full, total), dialog_gain, cfg)


class ParametricOutro:
    """Music rises to a bed under the dialogue, then takes over as it fades."""

    def __init__(self, settings: MixingSettings, config: MixConfig):
        self.settings = settings
        self.config = config

    @property
    def window_sec(self) -> float:
        return self.settings.outro_crossfade_sec

    def apply(self, dialogue: np.ndarray, music: np.ndarray, lead_sec: float = 0.0) -> np.ndarray:
        s, cfg = self.settings, self.config
        window = cfg.sec_to_samples(s.outro_crossfade_sec)
        rise = min(cfg.sec_to_samples(s.outro_rise_sec), window)
        final_start = min(max(cfg.sec_to_samples(s.outro_final_start_sec), rise), window)
        final_len = window - final_start
        dlen = dialogue.shape[1]

        dialog_start = max(0, dlen - window)
        music_start = max(0, dialog_start - cfg.sec_to_samples(lead_sec))
        total = max(dlen, music_start + music.shape[1])

        i = np.arange(total, dtype=np.float64)
        bed_v = s.outro_bed_gain

        m = i - music_start
        music_gain = bed_v * fade_in_curve(_ramp(m, rise), s.outro_rise_curve)
        takeover = fade_in_curve(_ramp(m - final_start, final_len), s.outro_final_curve)
        music_gain = np.where(m >= final_start, bed_v + (1.0 - bed_v) * takeover, music_gain)
        music_gain = np.where(m < 0, 0.0, music_gain)

        d = i - dialog_start
        dialog_gain = np.where(
            d < final_start,
            1.0,
            fade_out_curve(_ramp(d - final_start, final_len), s.outro_final_curve),
        )

        logger.info(
            "Outro (parametric): %.1fs window, music starts at %.1fs",
            window / cfg.sample_rate, music_start / cfg.sample_rate,
        )
        return _mix(_place(music, music_start, total), music_gain, _place(dialogue, 0, total), dialog_gain, cfg)


# --- Envelope driven ---

class EnvelopeIntro:
    def __init__(self, pair: EnvelopePair, config: MixConfig):
        self.pair = pair
        self.config = config

    def dialogue_span(self) -> int:
        sr = self.config.sample_rate
        return max(0, int(np.ceil(self.pair.duration * sr)) - self.config.sec_to_samples(_silent_lead(self.pair.dialog)))

    def apply(self, music: np.ndarray, dialogue: np.ndarray) -> np.ndarray:
        cfg = self.config
        sr = cfg.sample_rate
        dialog_start = cfg.sec_to_samples(_silent_lead(self.pair.dialog))
        window = int(np.ceil(self.pair.duration * sr))
        total = max(window, dialog_start + dialogue.shape[1])

        music_gain = envelope_to_gain_array(self.pair.music, sr, total / sr)
        dialog_gain = envelope_to_gain_array(self.pair.dialog, sr, total / sr)

        logger.info("Intro (envelope): %.1fs window", self.pair.duration)
        return _mix(_place(music, 0, total), music_gain, _place(dialogue, dialog_start, total), dialog_gain, cfg)


class EnvelopeOutro:
    def __init__(self, pair: EnvelopePair, config: MixConfig):
        self.pair = pair
        self.config = config

    @property
    def window_sec(self) -> float:
        return envelope_end(self.pair.dialog)

    def apply(self, dialogue: np.ndarray, music: np.ndarray, lead_sec: float = 0.0) -> np.ndarray:
        cfg = self.config
        sr = cfg.sample_rate
        dlen = dialogue.shape[1]
        dialog_start = max(0, dlen - int(round(envelope_end(self.pair.dialog) * sr)))
        music_start = max(0, dialog_start - cfg.sec_to_samples(lead_sec))
        total = max(dlen, music_start + music.shape[1])

        i = np.arange(total, dtype=np.float64)
        music_gain = envelope_gains_at(self.pair.music, (i - music_start) / sr)
        music_gain = np.where(i < music_start, 0.0, music_gain)
        dialog_gain = envelope_gains_at(self.pair.dialog, (i - dialog_start) / sr)

        logger.info("Outro (envelope): %.1fs window, music starts at %.1fs", self.pair.duration, music_start / sr)
        return _mix(_place(music, music_start, total), music_gain, _place(dialogue, 0, total), dialog_gain, cfg)


@dataclass
class Bookends:
    intro: ParametricIntro | EnvelopeIntro | None
    outro: ParametricOutro | EnvelopeOutro | None


def select_bookends(settings: MixingSettings, config: MixConfig) -> Bookends:
    """Choose the compositor for each end once, from the shape of the settings.

    A complete envelope pair overrides the parametric phases for that end.
    """
    intro = outro = None
    if settings.include_intro:
        if settings.intro_music_envelope is not None and settings.intro_dialog_envelope is not None:
            intro = EnvelopeIntro(EnvelopePair(settings.intro_music_envelope, settings.intro_dialog_envelope), config)
        else:
            intro = ParametricIntro(settings, config)
    if settings.include_outro:
        if settings.outro_music_envelope is not None and settings.outro_dialog_envelope is not None:
            outro = EnvelopeOutro(EnvelopePair(settings.outro_music_envelope, settings.outro_dialog_envelope), config)
        else:
            outro = ParametricOutro(settings, config)
    return Bookends(intro, outro)
