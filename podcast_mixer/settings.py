"""Engine configuration and user-facing mixing settings.

``MixConfig`` is the immutable set of engine constants, built once per
invocation and passed to every stage. ``MixingSettings`` holds what an
editor tweaks per episode, in the units they are authored in (percent for
volumes and pan, seconds for phases, milliseconds for overlaps).
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields

from podcast_mixer import constants as C
from podcast_mixer.envelope import AudioEnvelope, envelope_from_dict, envelope_to_dict

logger = logging.getLogger(__name__)

CURVES = ("linear", "exponential")

_ENVELOPE_FIELDS = (
    "intro_music_envelope",
    "intro_dialog_envelope",
    "outro_music_envelope",
    "outro_dialog_envelope",
)


def _default_base_url() -> str:
    return os.environ.get(C.ASSET_BASE_URL_ENV, C.DEFAULT_ASSET_BASE_URL).rstrip("/")


@dataclass(frozen=True)
class MixConfig:
    sample_rate: int = C.SAMPLE_RATE
    bitrate_kbps: int = C.MP3_BITRATE_KBPS
    frame_samples: int = C.MP3_FRAME_SAMPLES
    min_compression_ratio: float = C.MIN_COMPRESSION_RATIO

    min_segment_for_overlap_ms: float = C.MIN_SEGMENT_FOR_OVERLAP_MS
    overlapping_max_prev: float = C.OVERLAPPING_MAX_PREV
    overlapping_max_curr: float = C.OVERLAPPING_MAX_CURR
    reaction_max_prev: float = C.REACTION_MAX_PREV
    reaction_max_curr: float = C.REACTION_MAX_CURR
    interrupt_max_prev: float = C.INTERRUPT_MAX_PREV
    question_max_prev: float = C.QUESTION_MAX_PREV
    trail_off_max_prev: float = C.TRAIL_OFF_MAX_PREV
    speaker_change_max_prev: float = C.SPEAKER_CHANGE_MAX_PREV

    silence_threshold_dbfs: float = C.SILENCE_THRESHOLD_DBFS
    keep_silence_ms: float = C.KEEP_SILENCE_MS

    crossfade_out_exponent: float = C.CROSSFADE_OUT_EXPONENT
    crossfade_in_exponent: float = C.CROSSFADE_IN_EXPONENT
    additive_edge_fraction: float = C.ADDITIVE_EDGE_FRACTION
    soft_limit_knee: float = C.SOFT_LIMIT_KNEE

    large_scale_threshold: int = C.LARGE_SCALE_THRESHOLD
    large_scale_tail_segments: int = C.LARGE_SCALE_TAIL_SEGMENTS

    fetch_timeout: float = C.FETCH_TIMEOUT_SEC
    asset_base_url: str = field(default_factory=_default_base_url)

    @property
    def silence_threshold(self) -> float:
        """Linear amplitude below which a sample counts as silence."""
        return 10 ** (self.silence_threshold_dbfs / 20)

    def ms_to_samples(self, ms: float) -> int:
        return int(ms / 1000.0 * self.sample_rate)

    def sec_to_samples(self, sec: float) -> int:
        return int(sec * self.sample_rate)


_PERCENT_FIELDS = ("host_pan", "guest_pan", "intro_bed_volume", "outro_bed_volume")
_DURATION_FIELDS = (
    "reaction_ms", "interrupt_ms", "question_ms", "speaker_ms", "overlapping_ms",
    "intro_full_sec", "intro_bed_sec", "intro_fadeout_sec", "intro_dialog_fadein_sec",
    "outro_crossfade_sec", "outro_rise_sec", "outro_final_start_sec",
)


def _as_number(name: str, value) -> float:
    """Accept ints, floats and numeric strings from JSON; anything else is a ValueError."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


@dataclass
class MixingSettings:
    include_intro: bool = False
    include_outro: bool = False

    host_pan: float = C.HOST_PAN * 100
    guest_pan: float = C.GUEST_PAN * 100

    reaction_ms: float = C.OVERLAP_SHORT_REACTION_MS
    interrupt_ms: float = C.OVERLAP_INTERRUPTING_MS
    question_ms: float = C.OVERLAP_AFTER_QUESTION_MS
    speaker_ms: float = C.OVERLAP_SPEAKER_CHANGE_MS
    overlapping_ms: float = C.OVERLAP_OVERLAPPING_MS

    intro_full_sec: float = C.INTRO_FULL_SEC
    intro_bed_sec: float = C.INTRO_BED_SEC
    intro_bed_volume: float = C.INTRO_BED_VOLUME
    intro_fadeout_sec: float = C.INTRO_FADEOUT_SEC
    intro_dialog_fadein_sec: float = C.INTRO_DIALOG_FADEIN_SEC
    intro_fadeout_curve: str = C.INTRO_FADEOUT_CURVE
    intro_dialog_curve: str = C.INTRO_DIALOG_CURVE

    outro_crossfade_sec: float = C.OUTRO_CROSSFADE_SEC
    outro_rise_sec: float = C.OUTRO_RISE_SEC
    outro_bed_volume: float = C.OUTRO_BED_VOLUME
    outro_final_start_sec: float = C.OUTRO_FINAL_START_SEC
    outro_rise_curve: str = C.OUTRO_RISE_CURVE
    outro_final_curve: str = C.OUTRO_FINAL_CURVE

    intro_url: str | None = None
    outro_url: str | None = None

    intro_music_envelope: AudioEnvelope | None = None
    intro_dialog_envelope: AudioEnvelope | None = None
    outro_music_envelope: AudioEnvelope | None = None
    outro_dialog_envelope: AudioEnvelope | None = None

    def __post_init__(self):
        for name in ("include_intro", "include_outro"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be true or false, got {getattr(self, name)!r}")
        for name in _PERCENT_FIELDS + _DURATION_FIELDS:
            setattr(self, name, _as_number(name, getattr(self, name)))
        for name in _PERCENT_FIELDS:
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be a percentage in 0..100, got {value}")
        for name in _DURATION_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        for name in ("intro_fadeout_curve", "intro_dialog_curve", "outro_rise_curve", "outro_final_curve"):
            if getattr(self, name) not in CURVES:
                raise ValueError(f"{name} must be one of {CURVES}, got {getattr(self, name)!r}")
        for name in ("intro_url", "outro_url"):
            if getattr(self, name) is not None and not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string, got {getattr(self, name)!r}")

    def pan_for(self, speaker: str) -> float:
        """Pan position (0..1) for a speaker."""
        if speaker == "HOST":
            return self.host_pan / 100
        if speaker == "GUEST":
            return self.guest_pan / 100
        raise ValueError(f"Unknown speaker: {speaker!r}")

    @property
    def intro_bed_gain(self) -> float:
        return self.intro_bed_volume / 100

    @property
    def outro_bed_gain(self) -> float:
        return self.outro_bed_volume / 100

    def resolved_intro_url(self, config: MixConfig) -> str:
        return self.intro_url or config.asset_base_url + C.INTRO_ASSET_PATH

    def resolved_outro_url(self, config: MixConfig) -> str:
        return self.outro_url or config.asset_base_url + C.OUTRO_ASSET_PATH

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _ENVELOPE_FIELDS:
                value = envelope_to_dict(value) if value is not None else None
            data[f.name] = value
        return data


def settings_from_dict(data: dict | None) -> MixingSettings:
    """Build MixingSettings from a JSON-style dict.

    Missing keys fall back to the defaults, unknown keys are ignored with a
    warning. Envelope fields are parsed into AudioEnvelope objects.
    """
    if not data:
        return MixingSettings()

    known = {f.name for f in fields(MixingSettings)}
    kwargs = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown mixing setting %r", key)
            continue
        if value is None:
            continue
        if key in _ENVELOPE_FIELDS:
            value = envelope_from_dict(value)
        kwargs[key] = value
    return MixingSettings(**kwargs)


def load_settings(path: str) -> MixingSettings:
    """Read mixing settings from a JSON file."""
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a JSON object: {path}")
    return settings_from_dict(data)
