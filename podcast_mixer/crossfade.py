"""Blending of adjacent dialogue segments."""

import numpy as np

from podcast_mixer.settings import MixConfig


def crossfade_window(tail: np.ndarray, head: np.ndarray, config: MixConfig) -> np.ndarray:
    """Blend the outgoing tail into the incoming head.

    The outgoing voice falls as (1 - t)^1.5 and the incoming one rises as
    t^0.8. Whenever their sum exceeds 1 both are scaled back so the window
    never gets louder than either side, which leaves the incoming speaker
    dominant.
    """
    length = tail.shape[1]
    t = np.arange(length, dtype=np.float64) / max(length, 1)
    fade_out = (1.0 - t) ** config.crossfade_out_exponent
    fade_in = t ** config.crossfade_in_exponent
    norm = np.maximum(fade_out + fade_in, 1.0)
    return (tail * (fade_out / norm) + head * (fade_in / norm)).astype(np.float32)


def soft_limit(samples: np.ndarray, knee: float) -> np.ndarray:
    """Linear below knee, tanh saturation towards 1.0 above it."""
    magnitude = np.abs(samples)
    headroom = 1.0 - knee
    saturated = knee + headroom * np.tanh((magnitude - knee) / headroom)
    return np.where(magnitude <= knee, samples, np.sign(samples) * saturated).astype(np.float32)


def additive_window(tail: np.ndarray, head: np.ndarray, config: MixConfig) -> np.ndarray:
    """Keep both voices up for the whole window.

    Only short edge ramps (a fraction of the window) avoid clicks where the
    outgoing voice ends and the incoming one starts; the sum goes through
    the soft limiter because two voices at full level can exceed 1.0.
    """
    length = tail.shape[1]
    edge = max(1, int(length * config.additive_edge_fraction))
    i = np.arange(length, dtype=np.float64)
    out_gain = np.clip((length - i) / edge, 0.0, 1.0)
    in_gain = np.clip((i + 1) / edge, 0.0, 1.0)
    mixed = tail * out_gain + head * in_gain
    return soft_limit(mixed, config.soft_limit_knee)


def splice(a: np.ndarray, b: np.ndarray, overlap_samples: int, additive: bool, config: MixConfig) -> np.ndarray:
    """Join a and b, blending the last/first overlap_samples of each.

    Result: a without its tail, the blended window, b without its head.
    """
    length = min(overlap_samples, a.shape[1], b.shape[1])
    if length <= 0:
        return np.concatenate([a, b], axis=1)

    tail = a[:, a.shape[1] - length:]
    head = b[:, :length]
    if additive:
        window = additive_window(tail, head, config)
    else:
        window = crossfade_window(tail, head, config)
    return np.concatenate([a[:, : a.shape[1] - length], window, b[:, length:]], axis=1)
