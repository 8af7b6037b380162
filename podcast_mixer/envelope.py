"""Breakpoint gain envelopes with linear and cubic bezier segments.

An envelope is N breakpoints (time in seconds, volume 0..1) joined by N-1
segments. Bezier segments carry two control points in the same
(time, volume) space, so evaluating one at a given time means first solving
the time polynomial for the curve parameter, then evaluating the volume
polynomial at that parameter.
"""

from dataclasses import dataclass

import numpy as np

from podcast_mixer.constants import (
    BEZIER_MAX_ITERATIONS,
    BEZIER_MIN_DERIVATIVE,
    BEZIER_TOLERANCE_SEC,
)


@dataclass(frozen=True)
class EnvelopePoint:
    sec: float
    vol: float


@dataclass(frozen=True)
class EnvelopeSegment:
    curve: str = "linear"                # "linear" or "bezier"
    cp1: EnvelopePoint | None = None     # control point near the start
    cp2: EnvelopePoint | None = None     # control point near the end

    @property
    def is_bezier(self) -> bool:
        return self.curve == "bezier" and self.cp1 is not None and self.cp2 is not None


@dataclass(frozen=True)
class AudioEnvelope:
    points: tuple
    segments: tuple


@dataclass(frozen=True)
class EnvelopePair:
    music: AudioEnvelope
    dialog: AudioEnvelope

    @property
    def duration(self) -> float:
        return max(envelope_end(self.music), envelope_end(self.dialog))


def _p(sec: float, vol: float) -> EnvelopePoint:
    return EnvelopePoint(float(sec), float(vol))


def _linear() -> EnvelopeSegment:
    return EnvelopeSegment("linear")


def _bezier_seg(cp1: EnvelopePoint, cp2: EnvelopePoint) -> EnvelopeSegment:
    return EnvelopeSegment("bezier", cp1, cp2)


def make_envelope(points, segments=None) -> AudioEnvelope:
    """Build a validated envelope; segments default to linear."""
    points = tuple(points)
    if segments is None:
        segments = tuple(_linear() for _ in range(max(0, len(points) - 1)))
    envelope = AudioEnvelope(points, tuple(segments))
    validate_envelope(envelope)
    return envelope


# --- Bezier math ---

def _cubic(p0, p1, p2, p3, u):
    mt = 1 - u
    return mt * mt * mt * p0 + 3 * mt * mt * u * p1 + 3 * mt * u * u * p2 + u * u * u * p3


def _cubic_deriv(p0, p1, p2, p3, u):
    mt = 1 - u
    return 3 * mt * mt * (p1 - p0) + 6 * mt * u * (p2 - p1) + 3 * u * u * (p3 - p2)


def _solve_bezier_u(s0, c1, c2, s3, target):
    """Newton-Raphson for the curve parameter whose time equals target.

    Works on arrays; each element stops updating once its time error is
    under tolerance or the derivative flattens out.
    """
    target = np.asarray(target, dtype=np.float64)
    span = s3 - s0
    if span <= 0:
        return np.ones_like(target)
    u = np.clip((target - s0) / span, 0.0, 1.0)
    active = np.ones(target.shape, dtype=bool)

    for _ in range(BEZIER_MAX_ITERATIONS):
        err = _cubic(s0, c1, c2, s3, u) - target
        deriv = _cubic_deriv(s0, c1, c2, s3, u)
        active &= (np.abs(err) >= BEZIER_TOLERANCE_SEC) & (np.abs(deriv) >= BEZIER_MIN_DERIVATIVE)
        if not active.any():
            break
        safe_deriv = np.where(active, deriv, 1.0)
        u = np.clip(np.where(active, u - err / safe_deriv, u), 0.0, 1.0)

    return u


def _evaluate_segment(p0: EnvelopePoint, p1: EnvelopePoint, seg: EnvelopeSegment, t):
    span = p1.sec - p0.sec
    if span <= 0:
        return np.full(np.shape(t), p1.vol, dtype=np.float64)
    if not seg.is_bezier:
        return p0.vol + (p1.vol - p0.vol) * ((np.asarray(t, dtype=np.float64) - p0.sec) / span)
    u = _solve_bezier_u(p0.sec, seg.cp1.sec, seg.cp2.sec, p1.sec, t)
    return _cubic(p0.vol, seg.cp1.vol, seg.cp2.vol, p1.vol, u)


# --- Sampling ---

def sample_envelope(envelope: AudioEnvelope, time_sec: float) -> float:
    """Gain at time_sec, clamped to the boundary volumes outside the range."""
    points = envelope.points
    if not points:
        return 0.0
    if time_sec <= points[0].sec:
        return points[0].vol
    if time_sec >= points[-1].sec:
        return points[-1].vol

    for i, seg in enumerate(envelope.segments):
        p0, p1 = points[i], points[i + 1]
        if p0.sec <= time_sec <= p1.sec:
            return float(_evaluate_segment(p0, p1, seg, time_sec))

    return points[-1].vol


def envelope_to_gain_array(envelope: AudioEnvelope, sample_rate: int, duration_sec: float) -> np.ndarray:
    """Per-sample gains for the first duration_sec seconds."""
    n = int(np.ceil(round(duration_sec * sample_rate, 6)))
    return envelope_gains_at(envelope, np.arange(n, dtype=np.float64) / sample_rate)


def envelope_gains_at(envelope: AudioEnvelope, times: np.ndarray) -> np.ndarray:
    """Vectorised sample_envelope over an array of times."""
    times = np.asarray(times, dtype=np.float64)
    points = envelope.points
    if not points:
        return np.zeros(times.shape, dtype=np.float32)

    gains = np.empty(times.shape, dtype=np.float64)
    done = times <= points[0].sec
    gains[done] = points[0].vol
    after = ~done & (times >= points[-1].sec)
    gains[after] = points[-1].vol
    done |= after

    # Earlier segments win on shared boundaries, matching sample_envelope
    for i, seg in enumerate(envelope.segments):
        p0, p1 = points[i], points[i + 1]
        mask = ~done & (times >= p0.sec) & (times <= p1.sec)
        if mask.any():
            gains[mask] = _evaluate_segment(p0, p1, seg, times[mask])
            done |= mask

    gains[~done] = points[-1].vol
    return gains.astype(np.float32)


def envelope_end(envelope: AudioEnvelope) -> float:
    return envelope.points[-1].sec if envelope.points else 0.0


def default_bezier_control_points(p0: EnvelopePoint, p1: EnvelopePoint) -> tuple[EnvelopePoint, EnvelopePoint]:
    """Control points at the thirds of the straight line, so the curve starts linear."""
    d_sec = p1.sec - p0.sec
    d_vol = p1.vol - p0.vol
    return (
        _p(p0.sec + d_sec / 3, p0.vol + d_vol / 3),
        _p(p0.sec + d_sec * 2 / 3, p0.vol + d_vol * 2 / 3),
    )


def validate_envelope(envelope: AudioEnvelope) -> None:
    """Raise ValueError unless the envelope is well formed."""
    points, segments = envelope.points, envelope.segments
    if not points:
        raise ValueError("Envelope needs at least one breakpoint")
    if len(segments) != len(points) - 1:
        raise ValueError(
            f"Envelope with {len(points)} points needs {len(points) - 1} segments, got {len(segments)}"
        )
    for a, b in zip(points, points[1:]):
        if b.sec < a.sec:
            raise ValueError(f"Envelope breakpoints go backwards in time at {b.sec}s")
    for p in points:
        if not 0.0 <= p.vol <= 1.0:
            raise ValueError(f"Envelope volume {p.vol} outside 0..1")
    for seg in segments:
        if seg.curve not in ("linear", "bezier"):
            raise ValueError(f"Unknown envelope curve: {seg.curve!r}")
        if seg.curve == "bezier" and (seg.cp1 is None or seg.cp2 is None):
            raise ValueError("Bezier segment needs both control points")


# --- Serialization ---

def _point_from_dict(data: dict) -> EnvelopePoint:
    return _p(data["sec"], data["vol"])


def envelope_from_dict(data: dict) -> AudioEnvelope:
    """Parse {"points": [...], "segments": [...]}; missing segments are linear.

    A bezier segment given without control points gets the defaults, so it
    starts out as a straight line between its breakpoints.
    """
    try:
        points = [_point_from_dict(p) for p in data["points"]]
        raw_segments = data.get("segments")
        segments = None
        if raw_segments is not None:
            segments = []
            for i, s in enumerate(raw_segments):
                curve = s.get("curve", "linear")
                cp1 = _point_from_dict(s["cp1"]) if s.get("cp1") else None
                cp2 = _point_from_dict(s["cp2"]) if s.get("cp2") else None
                if curve == "bezier" and (cp1 is None or cp2 is None) and i + 1 < len(points):
                    d1, d2 = default_bezier_control_points(points[i], points[i + 1])
                    cp1, cp2 = cp1 or d1, cp2 or d2
                segments.append(EnvelopeSegment(curve=curve, cp1=cp1, cp2=cp2))
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed envelope: {e}") from e
    return make_envelope(points, segments)


def envelope_to_dict(envelope: AudioEnvelope) -> dict:
    segments = []
    for seg in envelope.segments:
        entry = {"curve": seg.curve}
        if seg.cp1 is not None:
            entry["cp1"] = {"sec": seg.cp1.sec, "vol": seg.cp1.vol}
        if seg.cp2 is not None:
            entry["cp2"] = {"sec": seg.cp2.sec, "vol": seg.cp2.vol}
        segments.append(entry)
    return {
        "points": [{"sec": p.sec, "vol": p.vol} for p in envelope.points],
        "segments": segments,
    }


# --- Defaults ---

DEFAULT_INTRO_MUSIC = make_envelope(
    [_p(0, 1.0), _p(3, 1.0), _p(4, 0.2), _p(10, 0.2), _p(13, 0)],
    [_linear(), _bezier_seg(_p(3.3, 0.6), _p(3.8, 0.28)), _linear(), _bezier_seg(_p(11, 0.14), _p(12.1, 0.004))],
)

DEFAULT_INTRO_DIALOG = make_envelope(
    [_p(0, 0), _p(3, 0), _p(4, 1.0), _p(13, 1.0)],
    [_linear(), _bezier_seg(_p(3.3, 0.5), _p(3.8, 0.9)), _linear()],
)

DEFAULT_OUTRO_MUSIC = make_envelope(
    [_p(0, 0), _p(3, 0.2), _p(7, 0.2), _p(10, 1.0)],
    [_bezier_seg(_p(0.9, 0.06), _p(2.1, 0.16)), _linear(), _bezier_seg(_p(7.9, 0.35), _p(9.3, 0.9))],
)

DEFAULT_OUTRO_DIALOG = make_envelope(
    [_p(0, 1.0), _p(7, 1.0), _p(10, 0)],
    [_linear(), _bezier_seg(_p(7.8, 0.6), _p(9.2, 0.1))],
)


# --- Conversion from the fixed-phase model ---

def legacy_intro_to_envelopes(settings) -> EnvelopePair:
    """Express the parametric intro phases as a music/dialog envelope pair.

    The music ducks to the bed level over the same window in which the
    dialogue fades in, so neither curve has a step.
    """
    full = settings.intro_full_sec
    bed = settings.intro_bed_sec
    bed_v = settings.intro_bed_gain
    fadeout = settings.intro_fadeout_sec
    fadein_end = full + min(settings.intro_dialog_fadein_sec, bed)
    fadein = fadein_end - full
    total = full + bed + fadeout

    if settings.intro_dialog_curve == "exponential":
        duck_seg = _bezier_seg(
            _p(full + fadein * 0.3, 1.0 - (1.0 - bed_v) * 0.5),
            _p(full + fadein * 0.8, 1.0 - (1.0 - bed_v) * 0.9),
        )
        dialog_seg = _bezier_seg(_p(full + fadein * 0.3, 0.5), _p(full + fadein * 0.8, 0.9))
    else:
        duck_seg = dialog_seg = _linear()
    if settings.intro_fadeout_curve == "exponential":
        fade_seg = _bezier_seg(
            _p(full + bed + fadeout * 0.3, bed_v * 0.5),
            _p(full + bed + fadeout * 0.7, min(0.02, bed_v)),
        )
    else:
        fade_seg = _linear()

    music = make_envelope(
        [_p(0, 1.0), _p(full, 1.0), _p(fadein_end, bed_v), _p(full + bed, bed_v), _p(total, 0)],
        [_linear(), duck_seg, _linear(), fade_seg],
    )
    dialog = make_envelope(
        [_p(0, 0), _p(full, 0), _p(fadein_end, 1.0), _p(total, 1.0)],
        [_linear(), dialog_seg, _linear()],
    )
    return EnvelopePair(music, dialog)


def legacy_outro_to_envelopes(settings) -> EnvelopePair:
    """Express the parametric outro phases as a music/dialog envelope pair."""
    window = settings.outro_crossfade_sec
    rise = min(settings.outro_rise_sec, window)
    bed_v = settings.outro_bed_gain
    final_start = min(max(settings.outro_final_start_sec, rise), window)
    final_len = window - final_start

    if settings.outro_rise_curve == "exponential":
        rise_seg = _bezier_seg(_p(rise * 0.3, bed_v * 0.3), _p(rise * 0.7, bed_v * 0.8))
    else:
        rise_seg = _linear()
    if settings.outro_final_curve == "exponential":
        final_seg = _bezier_seg(
            _p(final_start + final_len * 0.3, min(bed_v + 0.3, 1.0)),
            _p(final_start + final_len * 0.7, 0.9),
        )
    else:
        final_seg = _linear()
    music = make_envelope(
        [_p(0, 0), _p(rise, bed_v), _p(final_start, bed_v), _p(window, 1.0)],
        [rise_seg, _linear(), final_seg],
    )

    dialog = make_envelope(
        [_p(0, 1.0), _p(final_start, 1.0), _p(window, 0)],
        [
            _linear(),
            _bezier_seg(
                _p(final_start + final_len * 0.4, 0.6),
                _p(final_start + final_len * 0.8, 0.1),
            ),
        ],
    )
    return EnvelopePair(music, dialog)
